"""Analytics reports over active customers and companies.

Reports are computed in-process from the lifecycle services and optionally
forwarded to a Cube analytics API. A failed push is logged and never fails
the report itself.
"""
from __future__ import annotations
import logging
from collections import Counter
from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional

import requests

from partner_bff.core.entities import LifecycleEntity, format_timestamp, parse_date
from partner_bff.core.lifecycle_service import LifecycleService

logger = logging.getLogger(__name__)

CUBE_TIMEOUT = 10
UNKNOWN_BUCKET = "unknown"


def count_by(entities: Iterable[LifecycleEntity], attribute: str) -> dict[str, int]:
    """Count entities per attribute value; missing values go under ``unknown``."""
    counts: Counter = Counter()
    for entity in entities:
        value = getattr(entity, attribute, None)
        if value is None or value == "":
            key = UNKNOWN_BUCKET
        else:
            key = value.value if hasattr(value, "value") else str(value)
        counts[key] += 1
    return dict(counts)


def count_by_month(entities: Iterable[LifecycleEntity]) -> dict[str, int]:
    counts: Counter = Counter(entity.create_date.strftime("%Y-%m") for entity in entities)
    return dict(sorted(counts.items()))


class ReportsService:
    """Aggregates customer/company data for the reporting endpoints."""

    def __init__(
        self,
        customers: LifecycleService,
        companies: LifecycleService,
        cube_api_url: str = "",
        cube_api_token: str = "",
    ):
        self.customers = customers
        self.companies = companies
        self.cube_api_url = cube_api_url.rstrip("/")
        self.cube_api_token = cube_api_token

    @property
    def cube_configured(self) -> bool:
        return bool(self.cube_api_url and self.cube_api_token)

    def _in_range(
        self,
        service: LifecycleService,
        date_from: Optional[str],
        date_to: Optional[str],
    ) -> list[LifecycleEntity]:
        start: Optional[date] = parse_date(date_from, "dateFrom") if date_from else None
        end: Optional[date] = parse_date(date_to, "dateTo") if date_to else None
        selected = []
        for entity in service.iter_all():
            created = entity.create_date.date()
            if start and created < start:
                continue
            if end and created > end:
                continue
            selected.append(entity)
        return selected

    def customer_report(self, date_from: Optional[str] = None, date_to: Optional[str] = None) -> dict[str, Any]:
        customers = self._in_range(self.customers, date_from, date_to)
        report = {
            "totalCustomers": len(customers),
            "byStatus": count_by(customers, "status"),
            "byGender": count_by(customers, "gender"),
            "byMonth": count_by_month(customers),
            "dateRange": {"from": date_from, "to": date_to},
        }
        self._push("customers", report)
        return report

    def company_report(self, date_from: Optional[str] = None, date_to: Optional[str] = None) -> dict[str, Any]:
        companies = self._in_range(self.companies, date_from, date_to)
        report = {
            "totalCompanies": len(companies),
            "byStatus": count_by(companies, "status"),
            "byMonth": count_by_month(companies),
            "dateRange": {"from": date_from, "to": date_to},
        }
        self._push("companies", report)
        return report

    def dashboard(self) -> dict[str, Any]:
        customers = self.customer_report()
        companies = self.company_report()
        dashboard = {
            "summary": {
                "totalCustomers": customers["totalCustomers"],
                "totalCompanies": companies["totalCompanies"],
                "timestamp": format_timestamp(datetime.now(timezone.utc)),
            },
            "customers": customers,
            "companies": companies,
        }
        self._push("dashboard", dashboard)
        return dashboard

    def _push(self, data_type: str, data: dict[str, Any]) -> None:
        """Send a report to Cube; failures are logged only."""
        if not self.cube_configured:
            return
        payload = {
            "query": {
                "measures": [f"{data_type}.count"],
                "timeDimensions": [{"dimension": f"{data_type}.createDate", "granularity": "month"}],
                "dimensions": [f"{data_type}.status"],
            },
            "metadata": data,
            "timestamp": format_timestamp(datetime.now(timezone.utc)),
        }
        try:
            resp = requests.post(
                f"{self.cube_api_url}/v1/load",
                json=payload,
                headers={"Authorization": f"Bearer {self.cube_api_token}"},
                timeout=CUBE_TIMEOUT,
            )
            if resp.status_code != 200:
                logger.warning("Cube API returned %s for %s report", resp.status_code, data_type)
        except requests.RequestException as exc:
            logger.warning("Failed to send %s report to Cube: %s", data_type, exc)
