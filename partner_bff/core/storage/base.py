"""Repository contract shared by every storage backend.

A repository signals "no such non-deleted record" by returning ``None`` (or
``False`` for soft_delete); the lifecycle service turns that into a 404.
Technical failures are raised as RepositoryError subclasses.
"""
from __future__ import annotations
import base64
import binascii
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from partner_bff.core.entities import (
    EntityChanges,
    EntityStatus,
    LifecycleEntity,
    format_timestamp,
    parse_timestamp,
)
from partner_bff.core.exceptions import ValidationError


class RepositoryError(Exception):
    """Base exception for storage backend failures."""
    pass


class DuplicateRecordError(RepositoryError):
    """Conditional write rejected: id or active identification already taken."""
    pass


class RemoteAPIError(RepositoryError):
    """HTTP error from the proxied remote API.

    Attributes:
        status_code: HTTP status code (0 for network failures)
        message: Error message from response
        endpoint: API endpoint that failed
    """

    def __init__(self, status_code: int, message: str, endpoint: str):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {message}")


@dataclass
class Page:
    """One page of a find_all listing."""

    items: list = field(default_factory=list)
    next_cursor: Optional[str] = None
    count: int = 0
    total: int = 0

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "nextCursor": self.next_cursor,
            "count": self.count,
            "total": self.total,
        }


# ─────────────────────────────────────────────────────────────────────────────
# Keyset cursor (createDate desc, id asc)
# ─────────────────────────────────────────────────────────────────────────────

def encode_cursor(entity: LifecycleEntity) -> str:
    """Encode the sort key of the last item on a page as an opaque token."""
    raw = json.dumps({"createDate": format_timestamp(entity.create_date), "id": entity.id})
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def decode_cursor(token: str) -> tuple[datetime, str]:
    """Decode a token produced by encode_cursor.

    Raises:
        ValidationError: If the token is not a cursor issued by this service
    """
    try:
        padded = token + "=" * (-len(token) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
        created = parse_timestamp(data["createDate"])
        entity_id = data["id"]
    except (ValueError, KeyError, TypeError, binascii.Error, ValidationError):
        raise ValidationError("cursor is invalid")
    if created is None or not isinstance(entity_id, str):
        raise ValidationError("cursor is invalid")
    return created, entity_id


def sort_entities(entities: Iterable[LifecycleEntity]) -> list[LifecycleEntity]:
    """Order by create_date descending, ties broken by id ascending."""
    ordered = sorted(entities, key=lambda e: e.id)
    ordered.sort(key=lambda e: e.create_date, reverse=True)
    return ordered


def is_after(entity: LifecycleEntity, cursor: tuple[datetime, str]) -> bool:
    created, entity_id = cursor
    return entity.create_date < created or (entity.create_date == created and entity.id > entity_id)


def paginate(
    entities: Iterable[LifecycleEntity],
    limit: int,
    cursor: Optional[str] = None,
    status: Optional[EntityStatus] = None,
) -> Page:
    """Filter non-deleted entities and slice one keyset page out of them."""
    matching = [
        e for e in entities
        if e.deleted_at is None and (status is None or e.status == status)
    ]
    remaining = sort_entities(matching)
    if cursor:
        key = decode_cursor(cursor)
        remaining = [e for e in remaining if is_after(e, key)]
    items = remaining[:limit]
    next_cursor = encode_cursor(items[-1]) if len(remaining) > limit else None
    return Page(items=items, next_cursor=next_cursor, count=len(items), total=len(matching))


# ─────────────────────────────────────────────────────────────────────────────
# Contract
# ─────────────────────────────────────────────────────────────────────────────

class EntityRepository(ABC):
    """Persistence adapter for one entity type."""

    entity_type: type[LifecycleEntity]

    @abstractmethod
    def create(self, entity: LifecycleEntity) -> LifecycleEntity:
        """Persist a new entity; raise DuplicateRecordError on collision."""

    @abstractmethod
    def find_all(
        self,
        limit: int,
        cursor: Optional[str] = None,
        status: Optional[EntityStatus] = None,
    ) -> Page:
        """List non-deleted entities, newest first."""

    @abstractmethod
    def find_one(self, entity_id: str) -> Optional[LifecycleEntity]:
        """Return the non-deleted entity with this id, or None."""

    @abstractmethod
    def find_by_identification(self, identification: str) -> Optional[LifecycleEntity]:
        """Return the non-deleted entity holding this identification, or None."""

    @abstractmethod
    def update(self, entity_id: str, changes: EntityChanges) -> Optional[LifecycleEntity]:
        """Apply changes to a non-deleted entity; None if absent."""

    @abstractmethod
    def soft_delete(self, entity_id: str) -> bool:
        """Mark a non-deleted entity deleted; False if absent."""

    @abstractmethod
    def restore(self, entity_id: str) -> Optional[LifecycleEntity]:
        """Restore an entity (deleted or not); None if the id is unknown."""

    def check_health(self) -> bool:
        return True
