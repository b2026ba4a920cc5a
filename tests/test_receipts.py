"""Receipts routes."""

import pytest


@pytest.fixture
def receipt_body():
    return {
        "userId": 1,
        "userName": "John Doe",
        "beaconQuantity": 3,
        "discount": 10,
        "deliveryAddress": "1 Main St",
        "totalPrice": 80.5,
    }


def test_list_receipts_empty(client, auth_headers):
    r = client.get("/api/receipts", headers=auth_headers)
    assert r.status_code == 200
    assert r.json() == []


def test_create_receipt(client, auth_headers, receipt_body):
    r = client.post("/api/receipts", headers=auth_headers, json=receipt_body)
    assert r.status_code == 201
    body = r.json()
    assert body["id"].isdigit()
    assert body["timestamp"].endswith("Z")
    assert body["userName"] == "John Doe"
    assert body["beaconQuantity"] == 3
    assert body["totalPrice"] == 80.5
    assert "user_name" not in body


def test_create_receipt_missing_field(client, auth_headers, receipt_body):
    del receipt_body["deliveryAddress"]
    r = client.post("/api/receipts", headers=auth_headers, json=receipt_body)
    assert r.status_code == 400
    assert "deliveryAddress" in r.json()["message"]


def test_list_receipts_newest_first(client, auth_headers, receipt_body):
    client.post("/api/receipts", headers=auth_headers, json=receipt_body)
    client.post("/api/receipts", headers=auth_headers, json={**receipt_body, "userName": "Second"})
    receipts = client.get("/api/receipts", headers=auth_headers).json()
    assert [r["userName"] for r in receipts] == ["Second", "John Doe"]


def test_delete_receipt(client, auth_headers, receipt_body):
    created = client.post("/api/receipts", headers=auth_headers, json=receipt_body).json()
    r = client.delete(f"/api/receipts/{created['id']}", headers=auth_headers)
    assert r.status_code == 200
    assert r.json() == {"success": True}
    assert client.get("/api/receipts", headers=auth_headers).json() == []


def test_delete_receipt_not_found(client, auth_headers):
    r = client.delete("/api/receipts/1700000000000", headers=auth_headers)
    assert r.status_code == 404
    assert r.json() == {"success": False, "error": "Receipt not found"}


def test_receipt_storage_failures(broken_client, auth_headers, receipt_body):
    r = broken_client.get("/api/receipts", headers=auth_headers)
    assert (r.status_code, r.json()["error"]) == (500, "Failed to fetch receipts")
    r = broken_client.post("/api/receipts", headers=auth_headers, json=receipt_body)
    assert (r.status_code, r.json()["error"]) == (500, "Failed to create receipt")
    r = broken_client.delete("/api/receipts/1", headers=auth_headers)
    assert (r.status_code, r.json()["error"]) == (500, "Failed to delete receipt")
