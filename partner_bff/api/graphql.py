"""GraphQL surface (Strawberry) over the same lifecycle services as REST.

Every entity resolver authenticates the request like the REST blueprints do;
domain errors surface as GraphQL errors with ``extensions.code`` and
``extensions.status``.
"""
from __future__ import annotations
import dataclasses
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

import strawberry
from flask import current_app
from graphql import GraphQLError
from strawberry.flask.views import GraphQLView

from partner_bff.api.decorators import AuthorizationError, authenticate_request
from partner_bff.core.entities import LifecycleEntity, attribute_name, format_timestamp
from partner_bff.core.exceptions import ServiceError


def _services():
    return current_app.config["SERVICES"]


def _guarded(call: Callable[[], Any]) -> Any:
    """Authenticate, run the service call and map errors to GraphQLError."""
    try:
        authenticate_request()
        return call()
    except AuthorizationError as e:
        raise GraphQLError(e.message, extensions={"code": e.error, "status": e.status})
    except ServiceError as e:
        raise GraphQLError(e.detail, extensions={"code": e.error_type, "status": e.status})


def _input_payload(data: Any) -> dict[str, Any]:
    """Input object -> service payload, dropping fields the client left out."""
    return {
        f.name: getattr(data, f.name)
        for f in dataclasses.fields(data)
        if getattr(data, f.name) is not strawberry.UNSET
    }


def _fields(entity: LifecycleEntity) -> dict[str, Any]:
    return {attribute_name(key): value for key, value in entity.to_dict().items()}


# ─────────────────────────────────────────────────────────────────────────────
# Types
# ─────────────────────────────────────────────────────────────────────────────

@strawberry.type
class Health:
    status: str
    timestamp: str
    service: str


@strawberry.type
class Customer:
    id: str
    identification: str
    name: str
    lastname: str
    date_born: Optional[str]
    gender: Optional[str]
    status: str
    create_date: str
    update_date: str
    deleted_at: Optional[str]

    @classmethod
    def from_entity(cls, entity: LifecycleEntity) -> "Customer":
        return cls(**_fields(entity))


@strawberry.type
class Company:
    id: str
    identification: str
    name: str
    alias: str
    address: str
    status: str
    create_date: str
    update_date: str
    deleted_at: Optional[str]

    @classmethod
    def from_entity(cls, entity: LifecycleEntity) -> "Company":
        return cls(**_fields(entity))


@strawberry.type
class CustomerPage:
    items: List[Customer]
    next_cursor: Optional[str]
    count: int
    total: int


@strawberry.type
class CompanyPage:
    items: List[Company]
    next_cursor: Optional[str]
    count: int
    total: int


@strawberry.input
class CreateCustomerInput:
    identification: str
    name: str
    lastname: str
    date_born: str
    gender: str
    status: Optional[str] = strawberry.UNSET


@strawberry.input
class UpdateCustomerInput:
    identification: Optional[str] = strawberry.UNSET
    name: Optional[str] = strawberry.UNSET
    lastname: Optional[str] = strawberry.UNSET
    date_born: Optional[str] = strawberry.UNSET
    gender: Optional[str] = strawberry.UNSET
    status: Optional[str] = strawberry.UNSET


@strawberry.input
class CreateCompanyInput:
    identification: str
    name: str
    alias: str
    address: str
    status: Optional[str] = strawberry.UNSET


@strawberry.input
class UpdateCompanyInput:
    identification: Optional[str] = strawberry.UNSET
    name: Optional[str] = strawberry.UNSET
    alias: Optional[str] = strawberry.UNSET
    address: Optional[str] = strawberry.UNSET
    status: Optional[str] = strawberry.UNSET


# ─────────────────────────────────────────────────────────────────────────────
# Root types
# ─────────────────────────────────────────────────────────────────────────────

@strawberry.type
class Query:
    @strawberry.field
    def health(self) -> Health:
        cfg = current_app.config["APP_CONFIG"]
        return Health(
            status="ok",
            timestamp=format_timestamp(datetime.now(timezone.utc)),
            service=cfg.service_name,
        )

    @strawberry.field
    def customers(
        self,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
        status: Optional[str] = None,
    ) -> CustomerPage:
        page = _guarded(lambda: _services().customers.find_all(limit, cursor, status))
        return CustomerPage(
            items=[Customer.from_entity(e) for e in page.items],
            next_cursor=page.next_cursor,
            count=page.count,
            total=page.total,
        )

    @strawberry.field
    def customer(self, id: str) -> Customer:
        return Customer.from_entity(_guarded(lambda: _services().customers.find_one(id)))

    @strawberry.field
    def customer_by_identification(self, identification: str) -> Customer:
        return Customer.from_entity(
            _guarded(lambda: _services().customers.find_by_identification(identification))
        )

    @strawberry.field
    def companies(
        self,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
        status: Optional[str] = None,
    ) -> CompanyPage:
        page = _guarded(lambda: _services().companies.find_all(limit, cursor, status))
        return CompanyPage(
            items=[Company.from_entity(e) for e in page.items],
            next_cursor=page.next_cursor,
            count=page.count,
            total=page.total,
        )

    @strawberry.field
    def company(self, id: str) -> Company:
        return Company.from_entity(_guarded(lambda: _services().companies.find_one(id)))

    @strawberry.field
    def company_by_identification(self, identification: str) -> Company:
        return Company.from_entity(
            _guarded(lambda: _services().companies.find_by_identification(identification))
        )


@strawberry.type
class Mutation:
    @strawberry.mutation
    def create_customer(self, input: CreateCustomerInput) -> Customer:
        payload = _input_payload(input)
        return Customer.from_entity(_guarded(lambda: _services().customers.create(payload)))

    @strawberry.mutation
    def update_customer(self, id: str, input: UpdateCustomerInput) -> Customer:
        payload = _input_payload(input)
        return Customer.from_entity(_guarded(lambda: _services().customers.update(id, payload)))

    @strawberry.mutation
    def delete_customer(self, id: str) -> bool:
        _guarded(lambda: _services().customers.soft_delete(id))
        return True

    @strawberry.mutation
    def restore_customer(self, id: str) -> Customer:
        return Customer.from_entity(_guarded(lambda: _services().customers.restore(id)))

    @strawberry.mutation
    def create_company(self, input: CreateCompanyInput) -> Company:
        payload = _input_payload(input)
        return Company.from_entity(_guarded(lambda: _services().companies.create(payload)))

    @strawberry.mutation
    def update_company(self, id: str, input: UpdateCompanyInput) -> Company:
        payload = _input_payload(input)
        return Company.from_entity(_guarded(lambda: _services().companies.update(id, payload)))

    @strawberry.mutation
    def delete_company(self, id: str) -> bool:
        _guarded(lambda: _services().companies.soft_delete(id))
        return True

    @strawberry.mutation
    def restore_company(self, id: str) -> Company:
        return Company.from_entity(_guarded(lambda: _services().companies.restore(id)))


schema = strawberry.Schema(query=Query, mutation=Mutation)


def register_graphql(app, ide_enabled: bool = True) -> None:
    """Mount the GraphQL endpoint at /graphql."""
    app.add_url_rule(
        "/graphql",
        view_func=GraphQLView.as_view(
            "graphql_view",
            schema=schema,
            graphql_ide="graphiql" if ide_enabled else None,
        ),
    )
