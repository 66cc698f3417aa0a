"""In-process repository used in demo mode and tests."""
from __future__ import annotations
import copy
import threading
from typing import Optional

from partner_bff.core.entities import EntityChanges, EntityStatus, LifecycleEntity
from partner_bff.core.storage.base import DuplicateRecordError, EntityRepository, Page, paginate


class InMemoryRepository(EntityRepository):
    """Dict-backed store; every read and write hands out copies."""

    def __init__(self, entity_type: type[LifecycleEntity]):
        self.entity_type = entity_type
        self._records: dict[str, LifecycleEntity] = {}
        self._lock = threading.RLock()

    def _holder_of(self, identification: str, exclude_id: Optional[str] = None) -> Optional[LifecycleEntity]:
        for record in self._records.values():
            if record.deleted_at is None and record.identification == identification and record.id != exclude_id:
                return record
        return None

    def create(self, entity: LifecycleEntity) -> LifecycleEntity:
        with self._lock:
            if entity.id in self._records:
                raise DuplicateRecordError(f"{self.entity_type.label} id {entity.id} already exists")
            if self._holder_of(entity.identification) is not None:
                raise DuplicateRecordError(
                    f"{self.entity_type.label} with identification {entity.identification} already exists"
                )
            self._records[entity.id] = copy.deepcopy(entity)
            return copy.deepcopy(entity)

    def find_all(self, limit: int, cursor: Optional[str] = None, status: Optional[EntityStatus] = None) -> Page:
        with self._lock:
            page = paginate(list(self._records.values()), limit, cursor, status)
            page.items = [copy.deepcopy(item) for item in page.items]
            return page

    def find_one(self, entity_id: str) -> Optional[LifecycleEntity]:
        with self._lock:
            record = self._records.get(entity_id)
            if record is None or record.deleted_at is not None:
                return None
            return copy.deepcopy(record)

    def find_by_identification(self, identification: str) -> Optional[LifecycleEntity]:
        with self._lock:
            record = self._holder_of(identification)
            return copy.deepcopy(record) if record is not None else None

    def update(self, entity_id: str, changes: EntityChanges) -> Optional[LifecycleEntity]:
        with self._lock:
            record = self._records.get(entity_id)
            if record is None or record.deleted_at is not None:
                return None
            candidate = copy.deepcopy(record)
            candidate.update(changes)
            if self._holder_of(candidate.identification, exclude_id=entity_id) is not None:
                raise DuplicateRecordError(
                    f"{self.entity_type.label} with identification {candidate.identification} already exists"
                )
            self._records[entity_id] = candidate
            return copy.deepcopy(candidate)

    def soft_delete(self, entity_id: str) -> bool:
        with self._lock:
            record = self._records.get(entity_id)
            if record is None or record.deleted_at is not None:
                return False
            record.soft_delete()
            return True

    def restore(self, entity_id: str) -> Optional[LifecycleEntity]:
        with self._lock:
            record = self._records.get(entity_id)
            if record is None:
                return None
            if self._holder_of(record.identification, exclude_id=entity_id) is not None:
                raise DuplicateRecordError(
                    f"{self.entity_type.label} with identification {record.identification} already exists"
                )
            record.restore()
            return copy.deepcopy(record)
