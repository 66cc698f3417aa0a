"""Pytest shared fixtures: app factory, JWT signing and network guard rails."""
import os
import pathlib
import sys
import time
from types import SimpleNamespace
from typing import Optional

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Configure test environment BEFORE any app imports
os.environ.setdefault("DEMO_MODE", "true")
os.environ.setdefault("STORAGE_BACKEND", "memory")

import pytest
import requests
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from authlib.jose import jwt as authlib_jwt

from partner_bff.api import decorators
from partner_bff.config.settings import AppConfig
from partner_bff.flask_app import create_app

TEST_DOMAIN = "partner-hub.test.auth0.com"
TEST_ISSUER = f"https://{TEST_DOMAIN}/"
TEST_AUDIENCE = "https://partner-hub/api"

CUSTOMER_PAYLOAD = {
    "identification": "12345678901",
    "name": "John",
    "lastname": "Doe",
    "dateBorn": "1990-01-15",
    "gender": "male",
}

COMPANY_PAYLOAD = {
    "identification": "900123456",
    "name": "Acme Corporation",
    "alias": "Acme",
    "address": "123 Main Street, Springfield",
}


def make_config(**overrides) -> AppConfig:
    """AppConfig for tests: memory storage, auth enforced against the test tenant."""
    base = dict(
        demo_mode=False,
        environment="test",
        storage_backend="memory",
        auth_domain=TEST_DOMAIN,
        auth_audience=TEST_AUDIENCE,
        auth_client_id="test-client",
        auth_client_secret="test-secret",
        auth_bypass=False,
        docs_enabled=True,
        graphql_ide=False,
        trusted_proxy_count=0,
    )
    base.update(overrides)
    return AppConfig(**base)


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_outbound_http(monkeypatch, request):
    """
    Prevent unit tests from reaching real services.

    Tests that need HTTP patch requests themselves; integration tests are
    explicitly marked with @pytest.mark.integration.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _blocked(*args, **kwargs):
        raise RuntimeError(f"Unexpected network access in tests: {args} {kwargs.get('url', '')}")

    monkeypatch.setattr(requests, "get", _blocked)
    monkeypatch.setattr(requests, "post", _blocked)
    monkeypatch.setattr(requests, "request", _blocked)


# ─────────────────────────────────────────────────────────────────────────────
# RSA Key Pair / JWKS
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(scope="session")
def rsa_key_pair():
    """Generate RSA key pair for JWT signing in tests."""
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048,
        backend=default_backend()
    )
    public_key = private_key.public_key()
    public_pem = public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    )
    return {
        "private_key": private_key,
        "public_key": public_key,
        "public_pem": public_pem,
    }


@pytest.fixture()
def mock_jwks(monkeypatch, rsa_key_pair):
    """Serve the test public key for every token instead of fetching JWKS."""

    class _StubJWKS:
        def __init__(self):
            self.lookups = 0

        def get_signing_key_from_jwt(self, token):
            self.lookups += 1
            return SimpleNamespace(key=rsa_key_pair["public_key"])

    stub = _StubJWKS()
    monkeypatch.setattr(decorators, "get_jwks_client", lambda: stub)
    return stub


# ─────────────────────────────────────────────────────────────────────────────
# JWT Token Helpers
# ─────────────────────────────────────────────────────────────────────────────
def create_valid_jwt(
    rsa_key_pair: dict,
    issuer: str = TEST_ISSUER,
    audience: str = TEST_AUDIENCE,
    sub: str = "user-123",
    roles: Optional[list[str]] = None,
    exp_offset: int = 3600,
    kid: str = "default-key-id",
) -> str:
    """Create a valid RS256-signed JWT for testing."""
    if roles is None:
        roles = ["analyst"]

    now = int(time.time())
    header = {"alg": "RS256", "typ": "JWT", "kid": kid}
    payload = {
        "iss": issuer,
        "aud": audience,
        "sub": sub,
        "exp": now + exp_offset,
        "iat": now,
        "email": f"{sub}@example.com",
        "roles": roles,
    }
    token = authlib_jwt.encode(header, payload, rsa_key_pair["private_key"])
    return token.decode("utf-8") if isinstance(token, bytes) else token


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ─────────────────────────────────────────────────────────────────────────────
# Flask App / Clients
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def app(mock_jwks):
    """App with bearer auth enforced and a fresh in-memory store."""
    flask_app = create_app(make_config())
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture()
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture()
def auth_headers(rsa_key_pair):
    """Build Authorization headers for a user with the given roles."""

    def _headers(roles: Optional[list[str]] = None, **claims) -> dict:
        return bearer(create_valid_jwt(rsa_key_pair, roles=roles or ["admin"], **claims))

    return _headers


@pytest.fixture()
def bypass_app():
    """App running with AUTH_BYPASS (every request is the dev admin user)."""
    flask_app = create_app(make_config(auth_bypass=True))
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture()
def bypass_client(bypass_app):
    with bypass_app.test_client() as client:
        yield client


# ─────────────────────────────────────────────────────────────────────────────
# Pytest Configuration
# ─────────────────────────────────────────────────────────────────────────────
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (requires running stack)"
    )
