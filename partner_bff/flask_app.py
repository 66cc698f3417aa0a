"""Flask application factory and bootstrap.

This module provides the create_app() factory function for initializing
the Flask application with all blueprints, middleware, and configuration.

Gunicorn entry point: ``partner_bff.flask_app:create_app()``
"""
from __future__ import annotations
import logging
import time
import uuid
from pathlib import Path
from typing import Optional

from flask import Flask, g, request
from werkzeug.middleware.proxy_fix import ProxyFix

from partner_bff.config import AppConfig, load_settings
from partner_bff.core.registry import ServiceRegistry, build_services

logger = logging.getLogger("partner_bff.http")

REQUEST_ID_HEADER = "X-Request-Id"


# ─────────────────────────────────────────────────────────────────────────────
# Application Factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app(cfg: Optional[AppConfig] = None, services: Optional[ServiceRegistry] = None) -> Flask:
    """Create and configure Flask application.

    Args:
        cfg: Configuration (loaded from the environment when omitted)
        services: Pre-built services (built from cfg when omitted)
    """
    if cfg is None:
        cfg = load_settings()

    _configure_logging(cfg)

    app = Flask(__name__)
    app.config.setdefault(
        "OPENAPI_SPEC_PATH",
        str(Path(app.root_path).parent / "openapi" / "partner_bff_openapi.yaml"),
    )
    app.config["APP_CONFIG"] = cfg
    app.config["SERVICES"] = services or build_services(cfg)
    app.json.sort_keys = False

    # Trust X-Forwarded-* headers from the load balancer / API gateway
    if cfg.trusted_proxy_count > 0:
        n = cfg.trusted_proxy_count
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=n, x_proto=n, x_host=n)  # type: ignore

    # Register blueprints
    from partner_bff.api import auth_token, crud, errors, health, reports
    from partner_bff.api import docs as docs_routes
    from partner_bff.api.graphql import register_graphql

    app.register_blueprint(health.bp)
    app.register_blueprint(crud.customers_bp)
    app.register_blueprint(crud.companies_bp)
    app.register_blueprint(auth_token.bp)
    app.register_blueprint(reports.bp)
    if cfg.docs_enabled:
        app.register_blueprint(docs_routes.bp)
    register_graphql(app, ide_enabled=cfg.graphql_ide)

    # Register error handlers
    errors.register_error_handlers(app)

    # Register middleware/before_request handlers
    _register_middleware(app)

    mode_label = "DEMO" if cfg.demo_mode else "PRODUCTION"
    print(f"[flask_app] Mode={mode_label}; storage={cfg.storage_backend}")
    print("[flask_app] REST at /customers, /companies; GraphQL at /graphql")

    if cfg.demo_mode:
        print("[flask_app] WARNING: Demo mode active - in-memory data is lost on restart")

    return app


def _configure_logging(cfg: AppConfig) -> None:
    """Configure root logging once (gunicorn/pytest may already have handlers)."""
    level = getattr(logging, cfg.log_level, logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )
    logging.getLogger("partner_bff").setLevel(level)


def _register_middleware(app: Flask) -> None:
    """Register request logging with a per-request id."""

    @app.before_request
    def start_request_log() -> None:
        g.request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        g.request_started = time.perf_counter()
        logger.info(
            f"Incoming {request.method} {request.full_path.rstrip('?')} "
            f"| request_id={g.request_id} | client_ip={request.remote_addr}"
        )

    @app.after_request
    def finish_request_log(response):
        request_id = g.get("request_id")
        started = g.get("request_started")
        duration_ms = (time.perf_counter() - started) * 1000 if started else 0.0
        logger.info(
            f"Completed {request.method} {request.full_path.rstrip('?')} - {response.status_code} "
            f"({duration_ms:.1f} ms) | request_id={request_id}"
        )
        if request_id:
            response.headers[REQUEST_ID_HEADER] = request_id
        return response


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=8000)
