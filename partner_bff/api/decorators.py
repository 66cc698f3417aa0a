"""
Flask decorators for authentication and authorization.

Validates OAuth 2.0 Bearer tokens (RFC 6750) issued by the identity
provider and enforces role requirements on REST and GraphQL handlers.

Security:
- RSA-SHA256 signature verification via JWKS (RFC 7517)
- Expiration, issuer and (when configured) audience validation (RFC 7519)
- JWKS caching (1-hour refresh)
- AUTH_BYPASS short-circuits everything with a dev admin user (local only)
"""

import logging
from functools import wraps
from typing import Any, Dict, List, Optional

import jwt
from jwt import PyJWKClient
from jwt.exceptions import (
    DecodeError,
    ExpiredSignatureError,
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidSignatureError,
    InvalidTokenError,
    PyJWKClientError,
)
from flask import current_app, g, jsonify, request

logger = logging.getLogger(__name__)

# Global JWKS client (cached singleton, rebuilt when the JWKS URL changes)
_jwks_client: Optional[PyJWKClient] = None
_jwks_url: Optional[str] = None

DEV_USER = {
    "userId": "dev-user",
    "email": None,
    "roles": ["admin"],
    "permissions": [],
    "claims": {"sub": "dev-user"},
}


class TokenValidationError(Exception):
    """Exception raised when JWT token validation fails."""
    pass


class AuthorizationError(Exception):
    """Request rejected by authentication (401) or role checks (403)."""

    def __init__(self, status: int, message: str, error: str):
        self.status = status
        self.message = message
        self.error = error
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.error, "status": self.status, "message": self.message}


# ============================================================================
# JWT validation
# ============================================================================

def get_jwks_client() -> PyJWKClient:
    """
    Get cached JWKS client.

    Returns:
        PyJWKClient: Client for the configured identity provider JWKS endpoint
    """
    global _jwks_client, _jwks_url

    cfg = current_app.config["APP_CONFIG"]
    jwks_url = cfg.jwks_url

    if _jwks_client is None or _jwks_url != jwks_url:
        logger.info(f"Initializing JWKS client for: {jwks_url}")
        _jwks_client = PyJWKClient(
            jwks_url,
            cache_keys=True,
            max_cached_keys=16,
            lifespan=3600,
            headers={"User-Agent": "partner-hub-bff/1.0"},
        )
        _jwks_url = jwks_url

    return _jwks_client


def validate_jwt_token(token: str) -> Dict[str, Any]:
    """
    Validate JWT Bearer token with full security checks.

    Validations performed:
    1. Signature verification (RS256 via JWKS)
    2. Expiration (exp) and issued-at (iat) required
    3. Issuer (iss)
    4. Audience (aud), when AUTH_AUDIENCE is configured

    Args:
        token: JWT token string (without "Bearer " prefix)

    Returns:
        dict: Validated token claims

    Raises:
        TokenValidationError: If any validation fails
    """
    cfg = current_app.config["APP_CONFIG"]

    try:
        signing_key = get_jwks_client().get_signing_key_from_jwt(token)

        decode_kwargs: Dict[str, Any] = {
            "algorithms": ["RS256"],
            "issuer": cfg.expected_issuer,
            "options": {
                "verify_signature": True,
                "verify_exp": True,
                "verify_iss": True,
                "verify_aud": bool(cfg.auth_audience),
                "require": ["exp", "iat"],
            },
            "leeway": 5,
        }
        if cfg.auth_audience:
            decode_kwargs["audience"] = cfg.auth_audience

        claims = jwt.decode(token, signing_key.key, **decode_kwargs)
        logger.debug(f"JWT validated for subject: {claims.get('sub')}")
        return claims

    except ExpiredSignatureError:
        raise TokenValidationError("Token expired (exp claim)")
    except InvalidIssuerError as e:
        raise TokenValidationError(f"Invalid issuer: {e}")
    except InvalidAudienceError as e:
        raise TokenValidationError(f"Invalid audience (token not for this API): {e}")
    except InvalidSignatureError:
        raise TokenValidationError("Invalid signature (token tampered or wrong key)")
    except DecodeError as e:
        raise TokenValidationError(f"Token decode error (malformed JWT): {e}")
    except (InvalidTokenError, PyJWKClientError) as e:
        raise TokenValidationError(f"Token validation failed: {e}")
    except Exception as e:
        logger.error(f"JWT validation failed unexpectedly: {e}")
        raise TokenValidationError(f"Token validation failed: {e}")


def user_from_claims(claims: Dict[str, Any]) -> Dict[str, Any]:
    """Build the request user from validated claims."""
    cfg = current_app.config["APP_CONFIG"]
    roles = claims.get(cfg.auth_roles_claim) or []
    if isinstance(roles, str):
        roles = roles.split()
    return {
        "userId": claims.get("sub"),
        "email": claims.get("email"),
        "roles": list(roles),
        "permissions": list(claims.get("permissions") or []),
        "claims": claims,
    }


def authenticate_request(roles: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Authenticate the current request and check roles (any-of).

    Args:
        roles: Optional list of roles; the user needs at least one of them

    Returns:
        dict: Current user (userId, email, roles, permissions, claims)

    Raises:
        AuthorizationError: 401 for missing/invalid token, 403 for missing role
    """
    cfg = current_app.config["APP_CONFIG"]

    if cfg.auth_bypass:
        user = dict(DEV_USER)
    else:
        auth_header = request.headers.get("Authorization", "")
        if not auth_header:
            raise AuthorizationError(
                401, "Authorization header required. Use 'Authorization: Bearer <token>'", "unauthorized"
            )
        if not auth_header.startswith("Bearer "):
            raise AuthorizationError(
                401, "Invalid Authorization header format. Expected 'Bearer <token>'", "unauthorized"
            )
        token = auth_header[7:].strip()
        if not token:
            raise AuthorizationError(401, "Bearer token is empty", "unauthorized")

        try:
            claims = validate_jwt_token(token)
        except TokenValidationError as e:
            logger.warning(f"JWT validation failed: {e}")
            raise AuthorizationError(401, str(e), "invalid_token")
        user = user_from_claims(claims)

    if roles and not any(role in user["roles"] for role in roles):
        logger.warning(f"Request lacks required roles. Required: {roles}, user has: {user['roles']}")
        raise AuthorizationError(403, f"Insufficient permissions. Required role: {', '.join(roles)}", "forbidden")

    g.current_user = user
    return user


def require_auth(roles: Optional[List[str]] = None):
    """
    Decorator requiring a valid Bearer token (and optionally a role).

    Example:
        @bp.route("/reports/customers")
        @require_auth(roles=["admin", "analyst"])
        def customer_report():
            ...
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                authenticate_request(roles)
            except AuthorizationError as e:
                return jsonify(e.to_dict()), e.status
            return fn(*args, **kwargs)

        return wrapper
    return decorator


def get_current_user() -> Optional[Dict[str, Any]]:
    """Return the user attached by @require_auth, or None."""
    return getattr(g, "current_user", None)
