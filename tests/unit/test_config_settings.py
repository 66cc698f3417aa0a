import pytest

from partner_bff.config import settings
from partner_bff.config.settings import AppConfig, load_settings

read_secret = settings._load_secret_from_file

ENV_VARS = [
    "DEMO_MODE", "APP_ENV", "FLASK_ENV", "STORAGE_BACKEND", "DATABASE_URL", "REMOTE_BACKEND_URL",
    "REMOTE_API_URL", "AUTH_DOMAIN", "AUTH0_DOMAIN", "AUTH_JWKS_URI", "AUTH0_JWKS_URI", "AUTH_BYPASS",
    "AUTH_CLIENT_ID", "AUTH0_CLIENT_ID", "AUTH_CLIENT_SECRET", "AUTH0_CLIENT_SECRET", "AUTH_AUDIENCE",
    "AUTH0_AUDIENCE", "AUTH_ISSUER", "DEFAULT_PAGE_SIZE", "REQUEST_TIMEOUT", "DOCS_ENABLED", "GRAPHQL_IDE",
    "CUBE_API_URL", "CUBE_API_TOKEN",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(settings, "_load_secret_from_file", lambda name, env_var=None: settings.os.getenv(env_var))


def test_demo_mode_defaults(monkeypatch):
    monkeypatch.setenv("DEMO_MODE", "true")

    cfg = load_settings()

    assert cfg.demo_mode is True
    assert cfg.storage_backend == "memory"
    assert cfg.auth_bypass is True
    assert cfg.default_page_size == 10
    assert cfg.docs_enabled is True


def test_production_defaults_to_sql(monkeypatch):
    monkeypatch.setenv("AUTH_DOMAIN", "tenant.auth0.com")

    cfg = load_settings()

    assert cfg.storage_backend == "sql"
    assert cfg.database_url == "sqlite:///partner_bff.db"
    assert cfg.auth_bypass is False


def test_requires_identity_provider_outside_demo_mode():
    with pytest.raises(RuntimeError, match="AUTH_DOMAIN"):
        load_settings()


def test_bypass_forbidden_in_production(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("AUTH_BYPASS", "true")
    with pytest.raises(RuntimeError, match="AUTH_BYPASS"):
        load_settings()


def test_unknown_backend_rejected(monkeypatch):
    monkeypatch.setenv("DEMO_MODE", "true")
    monkeypatch.setenv("STORAGE_BACKEND", "mongo")
    with pytest.raises(RuntimeError, match="not supported"):
        load_settings()


def test_remote_backend_requires_url(monkeypatch):
    monkeypatch.setenv("DEMO_MODE", "true")
    monkeypatch.setenv("STORAGE_BACKEND", "remote")
    with pytest.raises(RuntimeError, match="REMOTE_BACKEND_URL"):
        load_settings()

    monkeypatch.setenv("REMOTE_API_URL", "http://backend:3000")
    assert load_settings().remote_api_url == "http://backend:3000"


def test_page_size_must_be_positive(monkeypatch):
    monkeypatch.setenv("DEMO_MODE", "true")
    monkeypatch.setenv("DEFAULT_PAGE_SIZE", "0")
    with pytest.raises(RuntimeError, match="DEFAULT_PAGE_SIZE"):
        load_settings()

    monkeypatch.setenv("DEFAULT_PAGE_SIZE", "ten")
    with pytest.raises(RuntimeError, match="must be an integer"):
        load_settings()


def test_legacy_auth0_variables_are_accepted(monkeypatch):
    monkeypatch.setenv("AUTH0_DOMAIN", "legacy.auth0.com")
    monkeypatch.setenv("AUTH0_CLIENT_ID", "legacy-client")
    monkeypatch.setenv("AUTH0_CLIENT_SECRET", "legacy-secret")
    monkeypatch.setenv("AUTH0_AUDIENCE", "https://legacy/api")

    cfg = load_settings()

    assert cfg.auth_domain == "legacy.auth0.com"
    assert cfg.auth_client_id == "legacy-client"
    assert cfg.auth_client_secret == "legacy-secret"
    assert cfg.auth_audience == "https://legacy/api"


def test_new_variables_take_precedence(monkeypatch):
    monkeypatch.setenv("AUTH_DOMAIN", "new.auth0.com")
    monkeypatch.setenv("AUTH0_DOMAIN", "legacy.auth0.com")
    assert load_settings().auth_domain == "new.auth0.com"


def test_docs_disabled_by_default_in_production(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("AUTH_DOMAIN", "tenant.auth0.com")

    cfg = load_settings()

    assert cfg.is_production
    assert cfg.docs_enabled is False
    assert cfg.graphql_ide is False


def test_jwks_and_issuer_derived_from_domain():
    cfg = AppConfig(auth_domain="tenant.auth0.com")
    assert cfg.jwks_url == "https://tenant.auth0.com/.well-known/jwks.json"
    assert cfg.expected_issuer == "https://tenant.auth0.com/"

    explicit = AppConfig(
        auth_domain="tenant.auth0.com",
        auth_jwks_uri="http://idp:8080/jwks",
        auth_issuer="http://idp:8080/",
    )
    assert explicit.jwks_url == "http://idp:8080/jwks"
    assert explicit.expected_issuer == "http://idp:8080/"


def test_secret_read_from_run_secrets(monkeypatch, tmp_path):
    secret_path = tmp_path / "auth_client_secret"
    secret_path.write_text("file-secret\n")

    real_path = settings.Path

    def fake_path(target):
        if str(target) == "/run/secrets":
            return tmp_path
        return real_path(target)

    monkeypatch.setattr(settings, "Path", fake_path)
    monkeypatch.setenv("AUTH_CLIENT_SECRET", "env-secret")

    assert read_secret("auth_client_secret", "AUTH_CLIENT_SECRET") == "file-secret"
    assert read_secret("missing", "AUTH_CLIENT_SECRET") == "env-secret"
