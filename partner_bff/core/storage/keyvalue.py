"""Key-value repository on Redis.

Layout per entity kind (``<prefix>:<kind>:...``):
    <id>                         JSON document (wire form)
    ids                          set of every stored id (deleted included)
    identification:<value>       id of the active record holding the value

The identification key is claimed with ``SET NX`` after the document is
written; a soft delete releases it and a restore claims it again. A key whose
holder document is missing, soft-deleted or carries another identification
is stale and may be taken over, so a failed release never blocks reuse.
"""
from __future__ import annotations
import json
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import redis

from partner_bff.core.entities import EntityChanges, EntityStatus, LifecycleEntity
from partner_bff.core.storage.base import (
    DuplicateRecordError,
    EntityRepository,
    Page,
    RepositoryError,
    paginate,
)

logger = logging.getLogger(__name__)


def create_redis_client(redis_url: str, timeout: float = 5) -> redis.Redis:
    return redis.Redis.from_url(
        redis_url,
        decode_responses=True,
        socket_timeout=timeout,
        socket_connect_timeout=timeout,
    )


class KeyValueRepository(EntityRepository):
    """Repository storing one JSON document per entity."""

    def __init__(self, entity_type: type[LifecycleEntity], client: redis.Redis, key_prefix: str = "partner-bff"):
        self.entity_type = entity_type
        self._client = client
        self._namespace = f"{key_prefix}:{entity_type.kind}"

    # -- keys -----------------------------------------------------------------

    def _doc_key(self, entity_id: str) -> str:
        return f"{self._namespace}:{entity_id}"

    def _ids_key(self) -> str:
        return f"{self._namespace}:ids"

    def _ident_key(self, identification: str) -> str:
        return f"{self._namespace}:identification:{identification}"

    @contextmanager
    def _guard(self) -> Iterator[None]:
        try:
            yield
        except redis.RedisError as exc:
            raise RepositoryError(f"Key-value store error: {exc}") from exc

    # -- helpers --------------------------------------------------------------

    def _load(self, entity_id: str) -> Optional[LifecycleEntity]:
        raw = self._client.get(self._doc_key(entity_id))
        if raw is None:
            return None
        return self.entity_type.from_dict(json.loads(raw))

    def _save(self, entity: LifecycleEntity) -> None:
        self._client.set(self._doc_key(entity.id), json.dumps(entity.to_dict()))

    def _claim(self, identification: str, entity_id: str) -> None:
        """Point the identification key at entity_id.

        A key left behind by a missing, soft-deleted or re-identified holder
        is stale and gets taken over under WATCH.
        """
        key = self._ident_key(identification)
        if self._client.set(key, entity_id, nx=True):
            return
        with self._client.pipeline() as pipe:
            try:
                pipe.watch(key)
                holder_id = pipe.get(key)
                if holder_id == entity_id:
                    return
                holder = self._load(holder_id) if holder_id else None
                if holder is not None and not holder.is_deleted and holder.identification == identification:
                    raise self._duplicate(identification)
                logger.warning("Taking over stale identification key %s (held by %s)", key, holder_id)
                pipe.multi()
                pipe.set(key, entity_id)
                pipe.execute()
            except redis.WatchError:
                raise self._duplicate(identification)

    def _duplicate(self, identification: str) -> DuplicateRecordError:
        return DuplicateRecordError(
            f"{self.entity_type.label} with identification {identification} already exists"
        )

    def _release(self, identification: str, entity_id: str) -> None:
        key = self._ident_key(identification)
        if self._client.get(key) == entity_id:
            self._client.delete(key)

    # -- contract -------------------------------------------------------------

    def create(self, entity: LifecycleEntity) -> LifecycleEntity:
        with self._guard():
            document = json.dumps(entity.to_dict())
            if not self._client.set(self._doc_key(entity.id), document, nx=True):
                raise DuplicateRecordError(f"{self.entity_type.label} id {entity.id} already exists")
            try:
                self._claim(entity.identification, entity.id)
            except DuplicateRecordError:
                self._client.delete(self._doc_key(entity.id))
                raise
            self._client.sadd(self._ids_key(), entity.id)
        return entity

    def find_all(self, limit: int, cursor: Optional[str] = None, status: Optional[EntityStatus] = None) -> Page:
        with self._guard():
            ids = sorted(self._client.smembers(self._ids_key()))
            documents = self._client.mget([self._doc_key(i) for i in ids]) if ids else []
        entities = [self.entity_type.from_dict(json.loads(doc)) for doc in documents if doc is not None]
        return paginate(entities, limit, cursor, status)

    def find_one(self, entity_id: str) -> Optional[LifecycleEntity]:
        with self._guard():
            entity = self._load(entity_id)
        if entity is None or entity.is_deleted:
            return None
        return entity

    def find_by_identification(self, identification: str) -> Optional[LifecycleEntity]:
        with self._guard():
            entity_id = self._client.get(self._ident_key(identification))
            entity = self._load(entity_id) if entity_id else None
        if entity is None or entity.is_deleted or entity.identification != identification:
            return None
        return entity

    def update(self, entity_id: str, changes: EntityChanges) -> Optional[LifecycleEntity]:
        with self._guard():
            entity = self._load(entity_id)
            if entity is None or entity.is_deleted:
                return None
            original = json.dumps(entity.to_dict())
            previous = entity.identification
            entity.update(changes)
            self._save(entity)
            if entity.identification != previous:
                self._claim_or_revert(entity, original)
                self._release(previous, entity.id)
        return entity

    def soft_delete(self, entity_id: str) -> bool:
        with self._guard():
            entity = self._load(entity_id)
            if entity is None or entity.is_deleted:
                return False
            entity.soft_delete()
            self._save(entity)
            self._release(entity.identification, entity.id)
        return True

    def restore(self, entity_id: str) -> Optional[LifecycleEntity]:
        with self._guard():
            entity = self._load(entity_id)
            if entity is None:
                return None
            original = json.dumps(entity.to_dict())
            entity.restore()
            self._save(entity)
            self._claim_or_revert(entity, original)
        return entity

    def _claim_or_revert(self, entity: LifecycleEntity, original: str) -> None:
        # Document already saved; on conflict put the previous version back.
        try:
            self._claim(entity.identification, entity.id)
        except DuplicateRecordError:
            self._client.set(self._doc_key(entity.id), original)
            raise

    def check_health(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError as exc:
            logger.warning("Key-value health check failed: %s", exc)
            return False
