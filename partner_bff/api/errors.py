"""Error handlers for the application (JSON only)."""
import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from partner_bff.core.exceptions import ServiceError

logger = logging.getLogger(__name__)


def _error_body(error: str, status: int, message: str):
    return jsonify({"error": error, "status": status, "message": message}), status


def register_error_handlers(app):
    """Register error handlers with the Flask app."""

    @app.errorhandler(ServiceError)
    def handle_service_error(error: ServiceError):
        """Domain errors raised by the lifecycle services."""
        if error.status >= 500:
            logger.error(f"{error.error_type}: {error.detail}")
        return jsonify(error.to_dict()), error.status

    @app.errorhandler(400)
    def bad_request(error):
        return _error_body("bad_request", 400, getattr(error, "description", None) or "Bad request")

    @app.errorhandler(401)
    def unauthorized(error):
        return _error_body("unauthorized", 401, "Authentication required")

    @app.errorhandler(403)
    def forbidden(error):
        return _error_body("forbidden", 403, "Insufficient permissions")

    @app.errorhandler(404)
    def not_found(error):
        return _error_body("not_found", 404, "Resource not found")

    @app.errorhandler(405)
    def method_not_allowed(error):
        return _error_body("method_not_allowed", 405, "Method not allowed")

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f"Internal error: {error}", exc_info=True)
        return _error_body("internal_error", 500, "An unexpected error occurred")

    @app.errorhandler(Exception)
    def unhandled_exception(error):
        if isinstance(error, HTTPException):
            return _error_body(
                (error.name or "error").lower().replace(" ", "_"),
                error.code or 500,
                error.description or error.name,
            )
        app.logger.error(f"Unhandled exception: {error}", exc_info=True)
        return _error_body("internal_error", 500, "An unexpected error occurred")
