"""Wiring of repositories into services for one application instance."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from partner_bff.config.settings import AppConfig
from partner_bff.core.auth_token import TokenIssuer
from partner_bff.core.entities import Company, Customer
from partner_bff.core.lifecycle_service import LifecycleService
from partner_bff.core.reports import ReportsService
from partner_bff.core.storage import EntityRepository, build_repositories


@dataclass
class ServiceRegistry:
    customers: LifecycleService
    companies: LifecycleService
    reports: ReportsService
    tokens: TokenIssuer

    def check_storage(self) -> bool:
        return self.customers.check_health() and self.companies.check_health()


def build_services(
    cfg: AppConfig,
    customer_repository: Optional[EntityRepository] = None,
    company_repository: Optional[EntityRepository] = None,
) -> ServiceRegistry:
    """Build every service; repositories default to the configured backend."""
    if customer_repository is None or company_repository is None:
        default_customers, default_companies = build_repositories(cfg)
        customer_repository = customer_repository or default_customers
        company_repository = company_repository or default_companies

    customers = LifecycleService(Customer, customer_repository, cfg.default_page_size)
    companies = LifecycleService(Company, company_repository, cfg.default_page_size)
    return ServiceRegistry(
        customers=customers,
        companies=companies,
        reports=ReportsService(customers, companies, cfg.cube_api_url, cfg.cube_api_token),
        tokens=TokenIssuer(
            domain=cfg.auth_domain,
            client_id=cfg.auth_client_id,
            client_secret=cfg.auth_client_secret,
            audience=cfg.auth_audience,
            timeout=cfg.request_timeout,
        ),
    )
