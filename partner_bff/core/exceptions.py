"""Domain error vocabulary shared by the REST and GraphQL surfaces.

Every error raised by the lifecycle services is a ServiceError subclass
carrying an HTTP status, a human-readable detail and a machine-readable
error code. Storage-level failures live in ``partner_bff.core.storage.base``
and are translated into these by the services.
"""
from __future__ import annotations
from typing import Optional


class ServiceError(Exception):
    """Domain error with HTTP status and error code."""

    status: int = 500
    error_type: str = "internal_error"

    def __init__(self, detail: str, status: Optional[int] = None, error_type: Optional[str] = None):
        if status is not None:
            self.status = status
        if error_type is not None:
            self.error_type = error_type
        self.detail = detail
        super().__init__(detail)

    def to_dict(self) -> dict:
        """Convert to the JSON error body returned by the API."""
        return {
            "error": self.error_type,
            "status": self.status,
            "message": self.detail,
        }


class ValidationError(ServiceError):
    """Input rejected before reaching storage (missing, too long, bad enum...)."""

    status = 400
    error_type = "validation_error"


class NotFoundError(ServiceError):
    """No non-deleted record matches the lookup."""

    status = 404
    error_type = "not_found"


class ConflictError(ServiceError):
    """Identification already held by another active record."""

    status = 409
    error_type = "conflict"


class InternalError(ServiceError):
    """Unexpected storage or runtime failure."""

    status = 500
    error_type = "internal_error"


class UpstreamError(ServiceError):
    """External dependency (identity provider) unavailable or refusing."""

    status = 503
    error_type = "upstream_unavailable"
