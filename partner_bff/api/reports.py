"""Reporting endpoints (customer/company analytics and dashboard)."""
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request

from partner_bff.api.decorators import require_auth
from partner_bff.core.entities import format_timestamp

bp = Blueprint("reports", __name__, url_prefix="/reports")

REPORT_ROLES = ["admin", "analyst"]
DASHBOARD_ROLES = ["admin", "analyst", "manager"]


def _reports():
    return current_app.config["SERVICES"].reports


@bp.route("/customers", methods=["GET"])
@require_auth(roles=REPORT_ROLES)
def customer_report():
    report = _reports().customer_report(request.args.get("dateFrom"), request.args.get("dateTo"))
    return jsonify(report), 200


@bp.route("/companies", methods=["GET"])
@require_auth(roles=REPORT_ROLES)
def company_report():
    report = _reports().company_report(request.args.get("dateFrom"), request.args.get("dateTo"))
    return jsonify(report), 200


@bp.route("/dashboard", methods=["GET"])
@require_auth(roles=DASHBOARD_ROLES)
def dashboard():
    return jsonify(_reports().dashboard()), 200


@bp.route("/health", methods=["GET"])
def reports_health():
    """Public: reports service status and whether Cube is configured."""
    configured = _reports().cube_configured
    return jsonify({
        "status": "ok",
        "timestamp": format_timestamp(datetime.now(timezone.utc)),
        "cubeCloud": {
            "configured": configured,
            "url": "configured" if configured else "not configured",
        },
    }), 200
