"""Relational repository (SQLAlchemy ORM).

Uniqueness of active identifications is enforced by a partial unique index
(``identification WHERE deleted_at IS NULL``), so concurrent duplicate
creates are settled by the database and surface as DuplicateRecordError.
"""
from __future__ import annotations
import logging
from contextlib import contextmanager
from dataclasses import fields
from datetime import timezone
from enum import Enum
from typing import Iterator, Optional

from sqlalchemy import Column, Date, DateTime, Index, String, and_, create_engine, func, or_, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator

from partner_bff.core.entities import EntityChanges, EntityStatus, LifecycleEntity
from partner_bff.core.storage.base import (
    DuplicateRecordError,
    EntityRepository,
    Page,
    RepositoryError,
    decode_cursor,
    encode_cursor,
)

logger = logging.getLogger(__name__)

Base = declarative_base()

_ACTIVE_ONLY = "deleted_at IS NULL"


class UTCDateTime(TypeDecorator):
    """Stores naive UTC, hands back aware UTC datetimes."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class _LifecycleColumns:
    id = Column(String(36), primary_key=True)
    identification = Column(String(25), nullable=False)
    status = Column(String(16), nullable=False)
    create_date = Column(UTCDateTime, nullable=False, index=True)
    update_date = Column(UTCDateTime, nullable=False)
    deleted_at = Column(UTCDateTime, nullable=True)


class CustomerRow(_LifecycleColumns, Base):
    __tablename__ = "customers"
    __table_args__ = (
        Index(
            "uq_customers_active_identification",
            "identification",
            unique=True,
            sqlite_where=text(_ACTIVE_ONLY),
            postgresql_where=text(_ACTIVE_ONLY),
        ),
    )

    name = Column(String(50), nullable=False)
    lastname = Column(String(50), nullable=False)
    date_born = Column(Date, nullable=True)
    gender = Column(String(16), nullable=True)


class CompanyRow(_LifecycleColumns, Base):
    __tablename__ = "companies"
    __table_args__ = (
        Index(
            "uq_companies_active_identification",
            "identification",
            unique=True,
            sqlite_where=text(_ACTIVE_ONLY),
            postgresql_where=text(_ACTIVE_ONLY),
        ),
    )

    name = Column(String(50), nullable=False)
    alias = Column(String(100), nullable=False)
    address = Column(String(250), nullable=False)


ROW_TYPES = {
    "customer": CustomerRow,
    "company": CompanyRow,
}


def create_session_factory(database_url: str) -> sessionmaker:
    """Create the engine, ensure tables exist and return a session factory."""
    options: dict = {"pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise each session sees an empty database
            options["poolclass"] = StaticPool
    engine = create_engine(database_url, **options)
    Base.metadata.create_all(engine)
    logger.info("SQL storage ready (%s)", engine.url.render_as_string(hide_password=True))
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class SqlRepository(EntityRepository):
    """Repository over one ORM table."""

    def __init__(self, entity_type: type[LifecycleEntity], session_factory: sessionmaker):
        self.entity_type = entity_type
        self.row_type = ROW_TYPES[entity_type.kind]
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        except IntegrityError as exc:
            session.rollback()
            raise DuplicateRecordError(
                f"{self.entity_type.label} identification or id already exists"
            ) from exc
        except SQLAlchemyError as exc:
            session.rollback()
            raise RepositoryError(f"Database error: {exc}") from exc
        finally:
            session.close()

    def _to_entity(self, row) -> LifecycleEntity:
        return self.entity_type.from_dict({f.name: getattr(row, f.name) for f in fields(self.entity_type)})

    def _apply(self, row, entity: LifecycleEntity) -> None:
        for f in fields(entity):
            value = getattr(entity, f.name)
            if isinstance(value, Enum):
                value = value.value
            setattr(row, f.name, value)

    def _active(self):
        return select(self.row_type).where(self.row_type.deleted_at.is_(None))

    def create(self, entity: LifecycleEntity) -> LifecycleEntity:
        with self._session() as session:
            row = self.row_type()
            self._apply(row, entity)
            session.add(row)
            session.commit()
        return entity

    def find_all(self, limit: int, cursor: Optional[str] = None, status: Optional[EntityStatus] = None) -> Page:
        key = decode_cursor(cursor) if cursor else None
        Row = self.row_type
        query = self._active()
        if status is not None:
            query = query.where(Row.status == status.value)
        with self._session() as session:
            total = session.scalar(select(func.count()).select_from(query.subquery())) or 0
            if key is not None:
                created, last_id = key
                query = query.where(
                    or_(Row.create_date < created, and_(Row.create_date == created, Row.id > last_id))
                )
            rows = session.scalars(
                query.order_by(Row.create_date.desc(), Row.id.asc()).limit(limit + 1)
            ).all()
            items = [self._to_entity(row) for row in rows[:limit]]
        next_cursor = encode_cursor(items[-1]) if len(rows) > limit else None
        return Page(items=items, next_cursor=next_cursor, count=len(items), total=total)

    def find_one(self, entity_id: str) -> Optional[LifecycleEntity]:
        with self._session() as session:
            row = session.scalars(self._active().where(self.row_type.id == entity_id)).first()
            return self._to_entity(row) if row is not None else None

    def find_by_identification(self, identification: str) -> Optional[LifecycleEntity]:
        with self._session() as session:
            row = session.scalars(
                self._active().where(self.row_type.identification == identification)
            ).first()
            return self._to_entity(row) if row is not None else None

    def update(self, entity_id: str, changes: EntityChanges) -> Optional[LifecycleEntity]:
        with self._session() as session:
            row = session.get(self.row_type, entity_id)
            if row is None or row.deleted_at is not None:
                return None
            entity = self._to_entity(row)
            entity.update(changes)
            self._apply(row, entity)
            session.commit()
            return entity

    def soft_delete(self, entity_id: str) -> bool:
        with self._session() as session:
            row = session.get(self.row_type, entity_id)
            if row is None or row.deleted_at is not None:
                return False
            entity = self._to_entity(row)
            entity.soft_delete()
            self._apply(row, entity)
            session.commit()
            return True

    def restore(self, entity_id: str) -> Optional[LifecycleEntity]:
        with self._session() as session:
            row = session.get(self.row_type, entity_id)
            if row is None:
                return None
            entity = self._to_entity(row)
            entity.restore()
            self._apply(row, entity)
            session.commit()
            return entity

    def check_health(self) -> bool:
        try:
            with self._session() as session:
                session.execute(text("SELECT 1"))
            return True
        except RepositoryError as exc:
            logger.warning("SQL health check failed: %s", exc)
            return False
