"""REST tests for /customers (bearer auth enforced, in-memory storage)."""
import pytest

from tests.conftest import CUSTOMER_PAYLOAD


@pytest.fixture
def headers(auth_headers):
    return auth_headers(roles=["admin"])


def create_customer(client, headers, **overrides):
    response = client.post("/customers", json=dict(CUSTOMER_PAYLOAD, **overrides), headers=headers)
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def test_create_returns_wire_representation(client, headers):
    body = create_customer(client, headers)

    assert body["identification"] == "12345678901"
    assert body["status"] == "pending"
    assert body["dateBorn"] == "1990-01-15"
    assert body["gender"] == "male"
    assert body["deletedAt"] is None
    assert body["createDate"] == body["updateDate"]


def test_full_lifecycle(client, headers):
    created = create_customer(client, headers)
    customer_id = created["id"]

    updated = client.put(f"/customers/{customer_id}", json={"status": "active"}, headers=headers)
    assert updated.status_code == 200
    assert updated.get_json()["status"] == "active"
    assert updated.get_json()["updateDate"] > created["createDate"]

    deleted = client.delete(f"/customers/{customer_id}", headers=headers)
    assert deleted.status_code == 204
    assert deleted.data == b""

    missing = client.get(f"/customers/{customer_id}", headers=headers)
    assert missing.status_code == 404
    assert missing.get_json()["error"] == "not_found"

    restored = client.patch(f"/customers/{customer_id}/restore", headers=headers)
    assert restored.status_code == 200
    assert restored.get_json()["status"] == "active"
    assert restored.get_json()["deletedAt"] is None

    fetched = client.get(f"/customers/{customer_id}", headers=headers)
    assert fetched.get_json()["status"] == "active"


def test_soft_delete_patch_route(client, headers):
    created = create_customer(client, headers)

    response = client.patch(f"/customers/{created['id']}/soft-delete", headers=headers)

    assert response.status_code == 204
    assert client.get(
        f"/customers/identification/{created['identification']}", headers=headers
    ).status_code == 404


def test_duplicate_identification_conflict(client, headers):
    original = create_customer(client, headers, identification="99999999999")

    response = client.post(
        "/customers", json=dict(CUSTOMER_PAYLOAD, identification="99999999999", name="Other"), headers=headers
    )

    assert response.status_code == 409
    assert response.get_json()["error"] == "conflict"
    fetched = client.get(f"/customers/{original['id']}", headers=headers).get_json()
    assert fetched == original


def test_get_by_identification(client, headers):
    created = create_customer(client, headers)
    response = client.get("/customers/identification/12345678901", headers=headers)
    assert response.status_code == 200
    assert response.get_json()["id"] == created["id"]


def test_validation_errors(client, headers):
    too_long = client.post("/customers", json=dict(CUSTOMER_PAYLOAD, name="x" * 51), headers=headers)
    assert too_long.status_code == 400
    assert too_long.get_json() == {
        "error": "validation_error",
        "status": 400,
        "message": "name must not exceed 50 characters",
    }

    payload = dict(CUSTOMER_PAYLOAD)
    del payload["gender"]
    missing = client.post("/customers", json=payload, headers=headers)
    assert missing.status_code == 400

    not_json = client.post("/customers", data="name=John", headers=headers)
    assert not_json.status_code == 400

    listing = client.get("/customers", headers=headers).get_json()
    assert listing["total"] == 0


def test_partial_update_validation_is_atomic(client, headers):
    created = create_customer(client, headers)

    response = client.put(
        f"/customers/{created['id']}", json={"name": "Johnny", "dateBorn": "not-a-date"}, headers=headers
    )

    assert response.status_code == 400
    assert client.get(f"/customers/{created['id']}", headers=headers).get_json()["name"] == "John"


def test_update_rejects_read_only_fields(client, headers):
    created = create_customer(client, headers)
    response = client.put(f"/customers/{created['id']}", json={"deletedAt": None}, headers=headers)
    assert response.status_code == 400
    assert "deletedAt" in response.get_json()["message"]


def test_list_paginates_with_cursor(client, headers):
    ids = {create_customer(client, headers, identification=f"ID-{i}")["id"] for i in range(5)}

    seen = []
    cursor = None
    while True:
        params = {"limit": 2}
        if cursor:
            params["cursor"] = cursor
        body = client.get("/customers", query_string=params, headers=headers).get_json()
        assert body["total"] == 5
        assert body["count"] == len(body["items"])
        seen.extend(item["id"] for item in body["items"])
        cursor = body["nextCursor"]
        if not cursor:
            break

    assert len(seen) == 5
    assert set(seen) == ids


def test_list_filters_by_status(client, headers):
    create_customer(client, headers, identification="A", status="active")
    create_customer(client, headers, identification="B")

    body = client.get("/customers?status=pending", headers=headers).get_json()

    assert [item["identification"] for item in body["items"]] == ["B"]


@pytest.mark.parametrize("query", ["limit=0", "limit=abc", "status=archived", "cursor=garbage"])
def test_list_rejects_bad_query(client, headers, query):
    response = client.get(f"/customers?{query}", headers=headers)
    assert response.status_code == 400
    assert response.get_json()["error"] == "validation_error"


def test_unknown_id_is_404(client, headers):
    assert client.put("/customers/nope", json={"name": "X"}, headers=headers).status_code == 404
    assert client.delete("/customers/nope", headers=headers).status_code == 404
    assert client.patch("/customers/nope/restore", headers=headers).status_code == 404


def test_invalid_update_on_unknown_id_is_400(client, headers):
    response = client.put("/customers/nope", json={"name": "x" * 51}, headers=headers)
    assert response.status_code == 400
    assert response.get_json()["error"] == "validation_error"


def test_any_authenticated_role_may_manage_customers(client, auth_headers):
    response = client.post("/customers", json=CUSTOMER_PAYLOAD, headers=auth_headers(roles=["viewer"]))
    assert response.status_code == 201
