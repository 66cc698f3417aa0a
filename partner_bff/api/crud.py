"""REST endpoints for the Customer and Company lifecycle.

Both resources share one blueprint factory and delegate all business logic
to LifecycleService:

    POST   /<resource>                               create            201
    GET    /<resource>?limit=&cursor=&status=        list (keyset)     200
    GET    /<resource>/<id>                          get               200
    GET    /<resource>/identification/<value>        get by identif.   200
    PUT    /<resource>/<id>                          partial update    200
    DELETE /<resource>/<id>                          soft delete       204
    PATCH  /<resource>/<id>/soft-delete              soft delete       204
    PATCH  /<resource>/<id>/restore                  restore           200

Security:
    - Bearer token required on every route (see api.decorators)
"""
from __future__ import annotations
import logging

from flask import Blueprint, Response, current_app, jsonify, request

from partner_bff.api.decorators import AuthorizationError, authenticate_request
from partner_bff.core.exceptions import ValidationError
from partner_bff.core.lifecycle_service import LifecycleService

logger = logging.getLogger(__name__)

JSON_MAX_SIZE_BYTES = 65536  # 64 KB


def _json_body() -> dict:
    if request.content_length and request.content_length > JSON_MAX_SIZE_BYTES:
        raise ValidationError("Request payload exceeds maximum allowed size (64 KB)")
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def build_crud_blueprint(resource: str) -> Blueprint:
    """Create the blueprint for one resource (``customers`` or ``companies``)."""
    bp = Blueprint(resource, __name__, url_prefix=f"/{resource}")

    def service() -> LifecycleService:
        return getattr(current_app.config["SERVICES"], resource)

    @bp.before_request
    def authenticate():
        try:
            authenticate_request()
        except AuthorizationError as e:
            response = jsonify(e.to_dict())
            response.status_code = e.status
            return response
        return None

    @bp.route("", methods=["POST"])
    def create():
        entity = service().create(_json_body())
        return jsonify(entity.to_dict()), 201

    @bp.route("", methods=["GET"])
    def list_entities():
        page = service().find_all(
            limit=request.args.get("limit"),
            cursor=request.args.get("cursor"),
            status=request.args.get("status"),
        )
        return jsonify(page.to_dict()), 200

    @bp.route("/<entity_id>", methods=["GET"])
    def get_entity(entity_id: str):
        return jsonify(service().find_one(entity_id).to_dict()), 200

    @bp.route("/identification/<identification>", methods=["GET"])
    def get_by_identification(identification: str):
        return jsonify(service().find_by_identification(identification).to_dict()), 200

    @bp.route("/<entity_id>", methods=["PUT"])
    def update(entity_id: str):
        entity = service().update(entity_id, _json_body())
        return jsonify(entity.to_dict()), 200

    @bp.route("/<entity_id>", methods=["DELETE"])
    @bp.route("/<entity_id>/soft-delete", methods=["PATCH"])
    def soft_delete(entity_id: str):
        service().soft_delete(entity_id)
        return Response(status=204)

    @bp.route("/<entity_id>/restore", methods=["PATCH"])
    def restore(entity_id: str):
        return jsonify(service().restore(entity_id).to_dict()), 200

    return bp


customers_bp = build_crud_blueprint("customers")
companies_bp = build_crud_blueprint("companies")
