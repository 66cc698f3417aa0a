"""Documentation blueprint exposing the OpenAPI description and a ReDoc page."""
from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from flask import Blueprint, Response, current_app, jsonify, url_for

bp = Blueprint("docs", __name__)

REDOC_SCRIPT_URL = "https://cdn.jsdelivr.net/npm/redoc@2/bundles/redoc.standalone.js"


def _spec_path() -> Path:
    """Resolve the OpenAPI specification path."""
    override = current_app.config.get("OPENAPI_SPEC_PATH")
    if override:
        return Path(override)
    return Path(current_app.root_path).parent / "openapi" / "partner_bff_openapi.yaml"


def _load_spec() -> dict[str, Any]:
    """Load the OpenAPI spec from disk (YAML)."""
    path = _spec_path()
    if not path.exists():
        raise FileNotFoundError(f"OpenAPI spec not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        spec = yaml.safe_load(handle)
    cfg = current_app.config.get("APP_CONFIG")
    if cfg is not None:
        spec.setdefault("info", {})["version"] = cfg.version
    return spec


@bp.route("/openapi.json", methods=["GET"])
def openapi_document() -> Response:
    """Serve the OpenAPI document as JSON."""
    return jsonify(_load_spec())


@bp.route("/api/docs", methods=["GET"])
def api_docs() -> Response:
    """Serve a read-only ReDoc page for the REST API."""
    spec_url = url_for("docs.openapi_document", _external=False)
    html = f"""<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8"/>
    <title>Partner Hub BFF – API Reference</title>
    <meta name="robots" content="noindex,nofollow"/>
    <meta name="referrer" content="no-referrer"/>
    <style>
      body {{
        margin: 0;
        font-family: "Segoe UI", Roboto, sans-serif;
        background-color: #f8fafc;
        color: #0f172a;
      }}
      .banner {{
        background: #0f172a;
        color: #f8fafc;
        padding: 12px 24px;
        font-size: 14px;
        display: flex;
        justify-content: space-between;
        align-items: center;
      }}
    </style>
  </head>
  <body>
    <div class="banner">
      <div><strong>Partner Hub BFF</strong> – REST reference. Bearer tokens are required on entity routes.</div>
      <div><a href="{spec_url}" style="color:#38bdf8;text-decoration:none;">OpenAPI JSON</a></div>
    </div>
    <redoc spec-url="{spec_url}" expand-responses="200"></redoc>
    <script src="{REDOC_SCRIPT_URL}"></script>
  </body>
</html>"""
    return Response(html, status=200, mimetype="text/html")
