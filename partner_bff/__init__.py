"""Partner hub backend-for-frontend package.

To use the Flask app:
    from partner_bff.flask_app import create_app

To use the lifecycle services without Flask:
    from partner_bff.core.registry import build_services
"""
# Note: flask_app is not imported here so scripts can use partner_bff.core
# without pulling in the web stack.

__version__ = "1.0.0"
