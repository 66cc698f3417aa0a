"""Test token endpoint (client_credentials against the identity provider)."""
from flask import Blueprint, current_app, jsonify, request

from partner_bff.core.exceptions import ValidationError

bp = Blueprint("auth_token", __name__, url_prefix="/auth")


@bp.route("/token", methods=["POST"])
def issue_token():
    """Return an access token; body values override configured credentials."""
    body = None
    if request.data:
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")
    token = current_app.config["SERVICES"].tokens.issue_token(body)
    return jsonify(token), 200
