from unittest.mock import Mock

import requests

from partner_bff.core import auth_token


def test_token_endpoint_is_public_and_returns_provider_json(client, monkeypatch):
    token = {"access_token": "abc", "token_type": "Bearer", "expires_in": 86400}
    post = Mock(return_value=Mock(status_code=200, json=lambda: token))
    monkeypatch.setattr(auth_token.requests, "post", post)

    response = client.post("/auth/token")

    assert response.status_code == 200
    assert response.get_json() == token
    assert post.call_args.args[0] == "https://partner-hub.test.auth0.com/oauth/token"
    assert post.call_args.kwargs["data"]["client_id"] == "test-client"


def test_body_overrides_configuration(client, monkeypatch):
    post = Mock(return_value=Mock(status_code=200, json=lambda: {"access_token": "x"}))
    monkeypatch.setattr(auth_token.requests, "post", post)

    client.post("/auth/token", json={"domain": "other.auth0.com", "audience": "https://other"})

    assert post.call_args.args[0] == "https://other.auth0.com/oauth/token"
    assert post.call_args.kwargs["data"]["audience"] == "https://other"


def test_missing_credentials_is_400(bypass_app):
    bypass_app.config["SERVICES"].tokens.defaults["clientSecret"] = ""

    response = bypass_app.test_client().post("/auth/token", json={})

    assert response.status_code == 400
    assert "clientSecret" in response.get_json()["message"]


def test_provider_down_is_503(client, monkeypatch):
    def _fail(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(auth_token.requests, "post", _fail)

    response = client.post("/auth/token")

    assert response.status_code == 503
    assert response.get_json()["error"] == "upstream_unavailable"


def test_malformed_body_is_400(client, monkeypatch):
    post = Mock()
    monkeypatch.setattr(auth_token.requests, "post", post)

    response = client.post("/auth/token", data="{not json", content_type="application/json")

    assert response.status_code == 400
    assert response.get_json()["message"] == "Request body must be a JSON object"
    post.assert_not_called()
