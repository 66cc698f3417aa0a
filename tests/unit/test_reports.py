"""Tests for ReportsService aggregation and the optional Cube push."""
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
import requests

from partner_bff.core import reports as reports_module
from partner_bff.core.entities import Company, Customer
from partner_bff.core.exceptions import ValidationError
from partner_bff.core.lifecycle_service import LifecycleService
from partner_bff.core.reports import ReportsService, count_by, count_by_month
from partner_bff.core.storage.memory import InMemoryRepository
from tests.conftest import COMPANY_PAYLOAD, CUSTOMER_PAYLOAD


def seed_customer(service, identification, created, **overrides):
    customer = Customer.from_payload(dict(CUSTOMER_PAYLOAD, identification=identification, **overrides))
    customer.create_date = customer.update_date = created
    return service.repository.create(customer)


@pytest.fixture
def services():
    customers = LifecycleService(Customer, InMemoryRepository(Customer))
    companies = LifecycleService(Company, InMemoryRepository(Company))
    seed_customer(customers, "C1", datetime(2024, 1, 10, tzinfo=timezone.utc), status="active")
    seed_customer(customers, "C2", datetime(2024, 1, 20, tzinfo=timezone.utc), gender="female")
    seed_customer(customers, "C3", datetime(2024, 3, 5, tzinfo=timezone.utc), gender="female", status="active")
    deleted = seed_customer(customers, "C4", datetime(2024, 3, 6, tzinfo=timezone.utc))
    customers.soft_delete(deleted.id)
    companies.create(dict(COMPANY_PAYLOAD, status="active"))
    return customers, companies


@pytest.fixture
def reports(services):
    return ReportsService(*services)


def test_customer_report_counts_active_records(reports):
    report = reports.customer_report()

    assert report["totalCustomers"] == 3
    assert report["byStatus"] == {"active": 2, "pending": 1}
    assert report["byGender"] == {"male": 1, "female": 2}
    assert report["byMonth"] == {"2024-01": 2, "2024-03": 1}
    assert report["dateRange"] == {"from": None, "to": None}


def test_customer_report_date_range_is_inclusive(reports):
    report = reports.customer_report("2024-01-20", "2024-03-05")

    assert report["totalCustomers"] == 2
    assert report["byMonth"] == {"2024-01": 1, "2024-03": 1}
    assert report["dateRange"] == {"from": "2024-01-20", "to": "2024-03-05"}


def test_invalid_date_rejected(reports):
    with pytest.raises(ValidationError) as exc:
        reports.company_report(date_from="last week")
    assert "dateFrom" in str(exc.value)


def test_company_report_and_dashboard(reports):
    company_report = reports.company_report()
    assert company_report["totalCompanies"] == 1
    assert company_report["byStatus"] == {"active": 1}

    dashboard = reports.dashboard()
    assert dashboard["summary"]["totalCustomers"] == 3
    assert dashboard["summary"]["totalCompanies"] == 1
    assert dashboard["summary"]["timestamp"].endswith("Z")
    assert dashboard["customers"]["totalCustomers"] == 3


def test_count_by_month_sorted():
    entities = [
        Company(create_date=datetime(2024, 5, 1, tzinfo=timezone.utc)),
        Company(create_date=datetime(2023, 12, 1, tzinfo=timezone.utc)),
    ]
    assert list(count_by_month(entities)) == ["2023-12", "2024-05"]


def test_count_by_buckets_missing_values_as_unknown():
    entities = [Customer(gender=None), Customer.from_payload(dict(CUSTOMER_PAYLOAD)), Customer(gender=None)]
    assert count_by(entities, "gender") == {"unknown": 2, "male": 1}


def test_cube_not_called_when_unconfigured(monkeypatch, reports):
    post = Mock()
    monkeypatch.setattr(reports_module.requests, "post", post)

    reports.customer_report()

    post.assert_not_called()
    assert reports.cube_configured is False


def test_cube_push_sends_bearer_token(monkeypatch, services):
    post = Mock(return_value=Mock(status_code=200))
    monkeypatch.setattr(reports_module.requests, "post", post)
    reports = ReportsService(*services, cube_api_url="https://cube.example.com/", cube_api_token="cube-token")

    reports.company_report()

    args, kwargs = post.call_args
    assert args[0] == "https://cube.example.com/v1/load"
    assert kwargs["headers"] == {"Authorization": "Bearer cube-token"}
    assert kwargs["timeout"] == reports_module.CUBE_TIMEOUT
    assert kwargs["json"]["metadata"]["totalCompanies"] == 1


def test_cube_failure_does_not_fail_report(monkeypatch, services, caplog):
    def _fail(*args, **kwargs):
        raise requests.Timeout("cube timed out")

    monkeypatch.setattr(reports_module.requests, "post", _fail)
    reports = ReportsService(*services, cube_api_url="https://cube.example.com", cube_api_token="cube-token")

    report = reports.customer_report()

    assert report["totalCustomers"] == 3
    assert "Failed to send customers report to Cube" in caplog.text
