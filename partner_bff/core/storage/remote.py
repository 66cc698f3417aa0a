"""Repository proxying a remote REST API.

The remote exposes the same resource layout as this service:

    GET    /customers?limit=&cursor=&status=
    POST   /customers
    GET    /customers/{id}
    GET    /customers/identification/{identification}
    PUT    /customers/{id}
    PATCH  /customers/{id}/soft-delete     (DELETE /customers/{id} when 405)
    PATCH  /customers/{id}/restore
"""
from __future__ import annotations
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from partner_bff.core.entities import EntityChanges, EntityStatus, LifecycleEntity
from partner_bff.core.exceptions import ValidationError
from partner_bff.core.storage.base import (
    DuplicateRecordError,
    EntityRepository,
    Page,
    RemoteAPIError,
)

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 5

RESOURCE_PATHS = {
    "customer": "/customers",
    "company": "/companies",
}


class RemoteApiClient:
    """Thin HTTP client for the remote backend.

    Usage:
        client = RemoteApiClient("http://backend:3000")
        resp = client.get("/customers", params={"limit": 10})
    """

    def __init__(self, base_url: str, timeout: float = REQUEST_TIMEOUT, token: Optional[str] = None):
        if not base_url:
            raise ValueError("Remote API base URL is required")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._token = token

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def request(self, method: str, path: str, **kwargs) -> requests.Response:
        """Execute a request against the remote API.

        Raises:
            RemoteAPIError: On network failure (status 0) or HTTP error status
        """
        url = f"{self.base_url}{path}"
        try:
            resp = requests.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise RemoteAPIError(0, str(exc), url) from exc
        self._handle_error(resp)
        return resp

    def get(self, path: str, params: Optional[Dict] = None) -> requests.Response:
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Optional[Dict] = None) -> requests.Response:
        return self.request("POST", path, json=json)

    def put(self, path: str, json: Optional[Dict] = None) -> requests.Response:
        return self.request("PUT", path, json=json)

    def patch(self, path: str, json: Optional[Dict] = None) -> requests.Response:
        return self.request("PATCH", path, json=json)

    def delete(self, path: str) -> requests.Response:
        return self.request("DELETE", path)

    def _handle_error(self, resp: requests.Response) -> None:
        if resp.status_code >= 400:
            raise RemoteAPIError(resp.status_code, _error_message(resp), resp.url)


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text
    if isinstance(body, dict):
        message = body.get("message") or body.get("detail") or body.get("error")
        if isinstance(message, list):
            return "; ".join(str(m) for m in message)
        if message:
            return str(message)
    return resp.text


class RemoteRepository(EntityRepository):
    """Repository whose source of truth is another HTTP service."""

    def __init__(self, entity_type: type[LifecycleEntity], client: RemoteApiClient):
        self.entity_type = entity_type
        self._client = client
        self._base_path = RESOURCE_PATHS[entity_type.kind]

    def _path(self, *parts: str) -> str:
        return "/".join([self._base_path, *(quote(part, safe="") for part in parts)])

    def _translate(self, exc: RemoteAPIError) -> None:
        """Map remote status codes onto repository semantics (404 handled by callers)."""
        if exc.status_code == 409:
            raise DuplicateRecordError(exc.message) from exc
        if exc.status_code == 400:
            raise ValidationError(exc.message) from exc
        raise exc

    def _entity(self, resp: requests.Response) -> LifecycleEntity:
        return self.entity_type.from_dict(resp.json())

    def _fetch(self, *parts: str) -> Optional[LifecycleEntity]:
        try:
            return self._entity(self._client.get(self._path(*parts)))
        except RemoteAPIError as exc:
            if exc.status_code == 404:
                return None
            self._translate(exc)

    def create(self, entity: LifecycleEntity) -> LifecycleEntity:
        payload = entity.to_dict()
        for read_only in ("createDate", "updateDate", "deletedAt"):
            payload.pop(read_only, None)
        try:
            return self._entity(self._client.post(self._base_path, json=payload))
        except RemoteAPIError as exc:
            self._translate(exc)

    def find_all(self, limit: int, cursor: Optional[str] = None, status: Optional[EntityStatus] = None) -> Page:
        params: Dict[str, Any] = {"limit": limit}
        if cursor:
            params["cursor"] = cursor
        if status is not None:
            params["status"] = status.value
        try:
            body = self._client.get(self._base_path, params=params).json()
        except RemoteAPIError as exc:
            self._translate(exc)
        raw_items = body.get("items")
        if raw_items is None:
            raw_items = body.get(self._base_path.strip("/"), [])
        items = [self.entity_type.from_dict(item) for item in raw_items]
        return Page(
            items=items,
            next_cursor=body.get("nextCursor"),
            count=body.get("count", len(items)),
            total=body.get("total", len(items)),
        )

    def find_one(self, entity_id: str) -> Optional[LifecycleEntity]:
        entity = self._fetch(entity_id)
        if entity is None or entity.is_deleted:
            return None
        return entity

    def find_by_identification(self, identification: str) -> Optional[LifecycleEntity]:
        entity = self._fetch("identification", identification)
        if entity is None or entity.is_deleted:
            return None
        return entity

    def update(self, entity_id: str, changes: EntityChanges) -> Optional[LifecycleEntity]:
        current = self.find_one(entity_id)
        if current is None:
            return None
        current.update(changes)
        try:
            return self._entity(self._client.put(self._path(entity_id), json=changes.to_wire()))
        except RemoteAPIError as exc:
            if exc.status_code == 404:
                return None
            self._translate(exc)

    def soft_delete(self, entity_id: str) -> bool:
        try:
            self._client.patch(self._path(entity_id, "soft-delete"))
            return True
        except RemoteAPIError as exc:
            if exc.status_code == 404:
                return False
            if exc.status_code != 405:
                self._translate(exc)
        logger.info("Remote has no soft-delete endpoint, falling back to DELETE %s", self._path(entity_id))
        try:
            self._client.delete(self._path(entity_id))
            return True
        except RemoteAPIError as exc:
            if exc.status_code == 404:
                return False
            self._translate(exc)

    def restore(self, entity_id: str) -> Optional[LifecycleEntity]:
        try:
            return self._entity(self._client.patch(self._path(entity_id, "restore")))
        except RemoteAPIError as exc:
            if exc.status_code == 404:
                return None
            self._translate(exc)

    def check_health(self) -> bool:
        try:
            self._client.get(self._base_path, params={"limit": 1})
            return True
        except RemoteAPIError as exc:
            logger.warning("Remote API health check failed: %s", exc)
            return False
