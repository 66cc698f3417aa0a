"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path

STORAGE_BACKENDS = ("memory", "sql", "keyvalue", "remote")


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                print(f"[settings] ✓ Loaded {secret_name} from /run/secrets")
                return secret_value
        except OSError as e:
            print(f"[settings] ✗ Failed to read /run/secrets/{secret_name}: {e}")

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


def _env(*names: str, default: str = "") -> str:
    """First non-empty environment variable among ``names`` (AUTH_* before legacy AUTH0_*)."""
    for name in names:
        value = os.environ.get(name)
        if value:
            return value.strip()
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {name} must be an integer, got {raw!r}")


@dataclass
class AppConfig:
    """Application configuration container."""
    # Mode
    demo_mode: bool = False
    environment: str = "development"
    service_name: str = "partner-hub-bff"
    version: str = "1.0.0"
    log_level: str = "INFO"

    # Storage
    storage_backend: str = "memory"
    database_url: str = "sqlite:///partner_bff.db"
    redis_url: str = "redis://localhost:6379/0"
    kv_key_prefix: str = "partner-bff"
    remote_api_url: str = ""
    remote_api_token: str = ""
    default_page_size: int = 10
    request_timeout: float = 5

    # Identity provider (JWT verification + client_credentials issuance)
    auth_domain: str = ""
    auth_client_id: str = ""
    auth_client_secret: str = ""
    auth_audience: str = ""
    auth_issuer: str = ""
    auth_jwks_uri: str = ""
    auth_roles_claim: str = "roles"
    auth_bypass: bool = False

    # Analytics
    cube_api_url: str = ""
    cube_api_token: str = ""

    # Surfaces
    docs_enabled: bool = True
    graphql_ide: bool = True

    trusted_proxy_count: int = 1

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def jwks_url(self) -> str:
        """JWKS endpoint: explicit AUTH_JWKS_URI or derived from the domain."""
        if self.auth_jwks_uri:
            return self.auth_jwks_uri
        return f"{_origin(self.auth_domain)}/.well-known/jwks.json"

    @property
    def expected_issuer(self) -> str:
        """Issuer claim to enforce: explicit AUTH_ISSUER or ``https://<domain>/``."""
        if self.auth_issuer:
            return self.auth_issuer
        return f"{_origin(self.auth_domain)}/"


def _origin(domain: str) -> str:
    base = domain.strip().rstrip("/")
    if not base.startswith(("http://", "https://")):
        base = f"https://{base}"
    return base


def load_settings() -> AppConfig:
    """Load application settings from environment and /run/secrets."""
    demo_mode = _env_bool("DEMO_MODE", False)
    environment = _env("APP_ENV", "FLASK_ENV", default="development").lower()

    # ─────────────────────────────────────────────────────────────────────────
    # Storage
    # ─────────────────────────────────────────────────────────────────────────
    storage_backend = _env("STORAGE_BACKEND", default="memory" if demo_mode else "sql").lower()
    if storage_backend not in STORAGE_BACKENDS:
        raise RuntimeError(
            f"STORAGE_BACKEND={storage_backend!r} is not supported (expected one of {', '.join(STORAGE_BACKENDS)})"
        )

    database_url = _load_secret_from_file("database_url", "DATABASE_URL") or "sqlite:///partner_bff.db"
    remote_api_url = _env("REMOTE_BACKEND_URL", "REMOTE_API_URL")
    if storage_backend == "remote" and not remote_api_url:
        raise RuntimeError("REMOTE_BACKEND_URL (or REMOTE_API_URL) is required when STORAGE_BACKEND=remote.")

    # ─────────────────────────────────────────────────────────────────────────
    # Identity provider
    # ─────────────────────────────────────────────────────────────────────────
    auth_domain = _env("AUTH_DOMAIN", "AUTH0_DOMAIN")
    auth_jwks_uri = _env("AUTH_JWKS_URI", "AUTH0_JWKS_URI")
    auth_bypass = _env_bool("AUTH_BYPASS", demo_mode)

    if auth_bypass and environment == "production":
        raise RuntimeError("AUTH_BYPASS must not be enabled when APP_ENV=production.")
    if not auth_bypass and not (auth_domain or auth_jwks_uri):
        if demo_mode:
            print("[demo-mode] AUTH_BYPASS disabled but no identity provider configured")
        else:
            raise RuntimeError("AUTH_DOMAIN or AUTH_JWKS_URI is required unless AUTH_BYPASS=true.")

    auth_client_secret = _load_secret_from_file("auth_client_secret", "AUTH_CLIENT_SECRET") or _env(
        "AUTH0_CLIENT_SECRET"
    )
    cube_api_token = _load_secret_from_file("cube_api_token", "CUBE_API_TOKEN") or ""
    remote_api_token = _load_secret_from_file("remote_api_token", "REMOTE_API_TOKEN") or ""

    docs_default = environment != "production"

    cfg = AppConfig(
        demo_mode=demo_mode,
        environment=environment,
        service_name=_env("SERVICE_NAME", default="partner-hub-bff"),
        version=_env("APP_VERSION", "DD_VERSION", default="1.0.0"),
        log_level=_env("LOG_LEVEL", default="INFO").upper(),
        storage_backend=storage_backend,
        database_url=database_url,
        redis_url=_env("REDIS_URL", default="redis://localhost:6379/0"),
        kv_key_prefix=_env("KV_KEY_PREFIX", default="partner-bff"),
        remote_api_url=remote_api_url,
        remote_api_token=remote_api_token,
        default_page_size=_env_int("DEFAULT_PAGE_SIZE", 10),
        request_timeout=_env_int("REQUEST_TIMEOUT", 5),
        auth_domain=auth_domain,
        auth_client_id=_env("AUTH_CLIENT_ID", "AUTH0_CLIENT_ID"),
        auth_client_secret=auth_client_secret,
        auth_audience=_env("AUTH_AUDIENCE", "AUTH0_AUDIENCE"),
        auth_issuer=_env("AUTH_ISSUER", "JWT_ISSUER"),
        auth_jwks_uri=auth_jwks_uri,
        auth_roles_claim=_env("AUTH_ROLES_CLAIM", "AUTH0_ROLES_CLAIM", default="roles"),
        auth_bypass=auth_bypass,
        cube_api_url=_env("CUBE_API_URL"),
        cube_api_token=cube_api_token,
        docs_enabled=_env_bool("DOCS_ENABLED", docs_default),
        graphql_ide=_env_bool("GRAPHQL_IDE", docs_default),
        trusted_proxy_count=_env_int("TRUSTED_PROXY_COUNT", 1),
    )

    if cfg.default_page_size < 1:
        raise RuntimeError("DEFAULT_PAGE_SIZE must be a positive integer.")

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    print(f"[settings] Mode={mode_label}; env={environment}; storage={storage_backend}")

    if auth_bypass:
        print("[settings] WARNING: AUTH_BYPASS active - every request runs as a dev admin user.")

    return cfg
