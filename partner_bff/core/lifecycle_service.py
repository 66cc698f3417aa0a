"""Lifecycle service layer shared by Customer and Company.

Used by both the REST blueprints and the GraphQL resolvers so that
validation, uniqueness checks and error translation are identical across
interfaces:

    REST (/customers, /companies) ──┐
                                    ├──> LifecycleService ──> EntityRepository ──> storage
    GraphQL (/graphql) ─────────────┘

Error translation:
    ServiceError              -> propagated unchanged
    missing record (None)     -> NotFoundError (404)
    DuplicateRecordError      -> ConflictError (409)
    anything else             -> InternalError (500) carrying the cause
"""
from __future__ import annotations
import copy
import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from partner_bff.core.entities import EntityStatus, LifecycleEntity, parse_status
from partner_bff.core.exceptions import (
    ConflictError,
    InternalError,
    NotFoundError,
    ServiceError,
    ValidationError,
)
from partner_bff.core.storage.base import DuplicateRecordError, EntityRepository, Page

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10


class LifecycleService:
    """Create/read/update/soft-delete/restore for one entity type."""

    def __init__(
        self,
        entity_type: type[LifecycleEntity],
        repository: EntityRepository,
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self.entity_type = entity_type
        self.repository = repository
        self.default_page_size = default_page_size

    @property
    def label(self) -> str:
        return self.entity_type.label

    @contextmanager
    def _storage_call(self, action: str) -> Iterator[None]:
        try:
            yield
        except ServiceError:
            raise
        except DuplicateRecordError as exc:
            raise ConflictError(str(exc)) from exc
        except Exception as exc:
            logger.error("%s %s failed: %s", self.label, action, exc, exc_info=True)
            raise InternalError(f"Failed to {action} {self.entity_type.kind}: {exc}") from exc

    def _not_found(self, entity_id: str) -> NotFoundError:
        return NotFoundError(f"{self.label} with id {entity_id} not found")

    def _conflict(self, identification: str) -> ConflictError:
        return ConflictError(f"{self.label} with identification {identification} already exists")

    # ─────────────────────────────────────────────────────────────────────────
    # Operations
    # ─────────────────────────────────────────────────────────────────────────

    def create(self, payload: Any) -> LifecycleEntity:
        """Validate and persist a new entity.

        Raises:
            ValidationError: Invalid or unknown fields (no storage call made)
            ConflictError: Identification held by an active record
        """
        entity = self.entity_type.from_payload(payload)
        with self._storage_call("create"):
            if self.repository.find_by_identification(entity.identification) is not None:
                raise self._conflict(entity.identification)
            created = self.repository.create(entity)
        logger.info("%s created: id=%s identification=%s", self.label, created.id, created.identification)
        return created

    def find_all(self, limit: Any = None, cursor: Optional[str] = None, status: Any = None) -> Page:
        page_size = self._parse_limit(limit)
        status_filter = parse_status(status) if status not in (None, "") else None
        with self._storage_call("list"):
            return self.repository.find_all(page_size, cursor or None, status_filter)

    def find_one(self, entity_id: str) -> LifecycleEntity:
        with self._storage_call("get"):
            entity = self.repository.find_one(entity_id)
        if entity is None:
            raise self._not_found(entity_id)
        return entity

    def find_by_identification(self, identification: str) -> LifecycleEntity:
        with self._storage_call("get"):
            entity = self.repository.find_by_identification(identification)
        if entity is None:
            raise NotFoundError(f"{self.label} with identification {identification} not found")
        return entity

    def update(self, entity_id: str, payload: Any) -> LifecycleEntity:
        """Apply a partial update.

        Every supplied field is validated before storage is touched.

        Raises:
            ValidationError: Any supplied field invalid (no storage call made)
            NotFoundError: No active record with this id
            ConflictError: New identification held by another active record
        """
        changes = self.entity_type.changes_type.from_payload(payload)
        self.entity_type.check_changes(changes)
        current = self.find_one(entity_id)

        preview = copy.deepcopy(current)
        preview.update(changes)

        with self._storage_call("update"):
            if preview.identification != current.identification:
                holder = self.repository.find_by_identification(preview.identification)
                if holder is not None and holder.id != entity_id:
                    raise self._conflict(preview.identification)
            updated = self.repository.update(entity_id, changes)
        if updated is None:
            raise self._not_found(entity_id)
        return updated

    def soft_delete(self, entity_id: str) -> None:
        with self._storage_call("delete"):
            deleted = self.repository.soft_delete(entity_id)
        if not deleted:
            raise self._not_found(entity_id)
        logger.info("%s soft-deleted: id=%s", self.label, entity_id)

    def restore(self, entity_id: str) -> LifecycleEntity:
        with self._storage_call("restore"):
            restored = self.repository.restore(entity_id)
        if restored is None:
            raise self._not_found(entity_id)
        logger.info("%s restored: id=%s", self.label, entity_id)
        return restored

    def iter_all(self, status: Optional[EntityStatus] = None, page_size: int = 100) -> Iterator[LifecycleEntity]:
        """Walk every active record, page by page."""
        cursor = None
        while True:
            page = self.find_all(page_size, cursor, status)
            yield from page.items
            cursor = page.next_cursor
            if not cursor:
                return

    def check_health(self) -> bool:
        return self.repository.check_health()

    def _parse_limit(self, limit: Any) -> int:
        if limit is None or limit == "":
            return self.default_page_size
        if isinstance(limit, bool):
            raise ValidationError("limit must be a positive integer")
        try:
            value = int(limit)
        except (TypeError, ValueError):
            raise ValidationError("limit must be a positive integer")
        if value < 1:
            raise ValidationError("limit must be a positive integer")
        return value
