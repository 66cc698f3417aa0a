"""Health check endpoints."""
import time
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify

from partner_bff.core.entities import format_timestamp

bp = Blueprint("health", __name__)

_STARTED_AT = time.monotonic()


def _now() -> str:
    return format_timestamp(datetime.now(timezone.utc))


@bp.route("/")
def root_health():
    """Basic liveness payload."""
    cfg = current_app.config["APP_CONFIG"]
    return jsonify({"status": "ok", "timestamp": _now(), "service": cfg.service_name}), 200


@bp.route("/health")
def health_check():
    """Detailed health: version, environment, uptime and storage reachability."""
    cfg = current_app.config["APP_CONFIG"]
    storage_ok = current_app.config["SERVICES"].check_storage()
    return jsonify({
        "status": "ok",
        "timestamp": _now(),
        "service": cfg.service_name,
        "version": cfg.version,
        "environment": cfg.environment,
        "uptime": round(time.monotonic() - _STARTED_AT, 3),
        "storage": {
            "backend": cfg.storage_backend,
            "status": "connected" if storage_ok else "unavailable",
        },
    }), 200


@bp.route("/ready")
def readiness_check():
    """Readiness: 503 until the storage backend answers."""
    if current_app.config["SERVICES"].check_storage():
        return jsonify({"status": "ready"}), 200
    return jsonify({"status": "unavailable"}), 503
