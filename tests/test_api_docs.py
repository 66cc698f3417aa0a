from pathlib import Path

import pytest
from flask import Flask

from partner_bff.api import docs
from tests.conftest import make_config


@pytest.fixture
def docs_app(tmp_path):
    app = Flask(__name__)
    app.config["TESTING"] = True
    app.config["OPENAPI_SPEC_PATH"] = str(tmp_path / "spec.yaml")
    spec_path = Path(app.config["OPENAPI_SPEC_PATH"])
    spec_path.write_text(
        "openapi: 3.0.3\ninfo:\n  title: Test API\n  version: 0.0.1\npaths: {}\n", encoding="utf-8"
    )
    app.register_blueprint(docs.bp)
    return app


@pytest.fixture
def docs_client(docs_app):
    with docs_app.test_client() as client:
        yield client


def test_openapi_document_returns_spec_json(docs_client):
    response = docs_client.get("/openapi.json")
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["openapi"] == "3.0.3"
    assert payload["info"]["title"] == "Test API"
    assert payload["info"]["version"] == "0.0.1"


def test_openapi_version_follows_app_config(docs_app, docs_client):
    docs_app.config["APP_CONFIG"] = make_config(version="2.3.4")
    assert docs_client.get("/openapi.json").get_json()["info"]["version"] == "2.3.4"


def test_api_docs_renders_redoc_page(docs_client):
    response = docs_client.get("/api/docs")
    assert response.status_code == 200
    html = response.get_data(as_text=True)
    assert "<redoc" in html
    assert 'spec-url="/openapi.json"' in html


def test_spec_path_uses_default_when_no_override():
    app = Flask(__name__)
    app.config["TESTING"] = True
    with app.app_context():
        expected = Path(app.root_path).parent / "openapi" / "partner_bff_openapi.yaml"
        assert docs._spec_path() == expected


def test_shipped_spec_covers_rest_routes(client):
    payload = client.get("/openapi.json").get_json()

    for path in (
        "/customers",
        "/customers/{id}",
        "/customers/{id}/restore",
        "/companies/identification/{identification}",
        "/auth/token",
        "/reports/dashboard",
    ):
        assert path in payload["paths"]
