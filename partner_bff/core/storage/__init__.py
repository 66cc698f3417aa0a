"""Storage backends behind one repository contract.

Backends:
    memory    - in-process dict (demo mode, tests)
    sql       - SQLAlchemy (SQLite, PostgreSQL...)
    keyvalue  - Redis documents with SET NX identification index
    remote    - HTTP proxy to another backend service
"""
from __future__ import annotations
import logging

from partner_bff.config.settings import STORAGE_BACKENDS, AppConfig
from partner_bff.core.entities import Company, Customer
from partner_bff.core.storage.base import (
    DuplicateRecordError,
    EntityRepository,
    Page,
    RemoteAPIError,
    RepositoryError,
)

logger = logging.getLogger(__name__)


def build_repositories(cfg: AppConfig) -> tuple[EntityRepository, EntityRepository]:
    """Create the (customers, companies) repositories for the configured backend.

    Raises:
        ValueError: If cfg.storage_backend is not a known backend
    """
    backend = cfg.storage_backend
    logger.info("Storage backend: %s", backend)

    if backend == "memory":
        from partner_bff.core.storage.memory import InMemoryRepository
        return InMemoryRepository(Customer), InMemoryRepository(Company)

    if backend == "sql":
        from partner_bff.core.storage.sql import SqlRepository, create_session_factory
        session_factory = create_session_factory(cfg.database_url)
        return SqlRepository(Customer, session_factory), SqlRepository(Company, session_factory)

    if backend == "keyvalue":
        from partner_bff.core.storage.keyvalue import KeyValueRepository, create_redis_client
        client = create_redis_client(cfg.redis_url, timeout=cfg.request_timeout)
        return (
            KeyValueRepository(Customer, client, cfg.kv_key_prefix),
            KeyValueRepository(Company, client, cfg.kv_key_prefix),
        )

    if backend == "remote":
        from partner_bff.core.storage.remote import RemoteApiClient, RemoteRepository
        client = RemoteApiClient(cfg.remote_api_url, timeout=cfg.request_timeout, token=cfg.remote_api_token or None)
        return RemoteRepository(Customer, client), RemoteRepository(Company, client)

    raise ValueError(f"Unknown storage backend: {backend!r} (expected one of {', '.join(STORAGE_BACKENDS)})")


__all__ = [
    "STORAGE_BACKENDS",
    "DuplicateRecordError",
    "EntityRepository",
    "Page",
    "RemoteAPIError",
    "RepositoryError",
    "build_repositories",
]
