# Overview: Pytest coverage for transaction API routes.

import pytest
from spa_pos.services.transaction_service import TransactionLedger


pytestmark = pytest.mark.http


THAI = {"services": [{"service_name": "Thai Massage", "amount": 600}], "guest_name": "Ana"}


def _create(client, headers, **overrides):
    payload = dict(THAI)
    payload.update(overrides)
    return client.post("/api/transactions", json=payload, headers=headers)


def test_create_patch_query_flow(client, staff_headers):
    resp = _create(client, staff_headers)
    assert resp.status_code == 201
    tx = resp.get_json()["transaction"]
    assert tx["total_amount"] == 600
    assert tx["service_status"] == "ongoing"
    assert tx["payment_status"] == "unpaid"
    assert tx["business_date_key"] == "2025-11-25"
    assert tx["services"][0]["service_name"] == "Thai Massage"

    resp = client.patch(f"/api/transactions/{tx['id']}", json={"service_status": "done"}, headers=staff_headers)
    assert resp.status_code == 200
    assert resp.get_json()["transaction"]["service_status"] == "done"

    active = client.get("/api/transactions?scope=active", headers=staff_headers).get_json()["transactions"]
    assert [t["id"] for t in active] == [tx["id"]]

    resp = client.patch(
        f"/api/transactions/{tx['id']}",
        json={"payment_status": "paid", "payment_method": "cash"},
        headers=staff_headers,
    )
    assert resp.status_code == 200

    active = client.get("/api/transactions?scope=active", headers=staff_headers).get_json()["transactions"]
    assert active == []

    today = client.get("/api/transactions?scope=today", headers=staff_headers).get_json()["transactions"]
    assert [t["payment_method"] for t in today] == ["cash"]


def test_staff_backdating_is_ignored(client, staff_headers):
    resp = _create(client, staff_headers, started_at="2025-01-01")

    assert resp.status_code == 201
    tx = resp.get_json()["transaction"]
    assert tx["business_date_key"] == "2025-11-25"
    assert tx["started_at"] == "2025-11-24T20:30:00Z"


def test_missing_services(client, staff_headers):
    resp = client.post("/api/transactions", json={"guest_name": "Ana"}, headers=staff_headers)

    assert resp.status_code == 400
    assert resp.get_json()["code"] == "missing_input"


def test_staff_cannot_unpay(client, staff_headers, admin_headers):
    tx = _create(client, staff_headers).get_json()["transaction"]
    client.patch(f"/api/transactions/{tx['id']}", json={"payment_status": "paid"}, headers=staff_headers)

    resp = client.patch(f"/api/transactions/{tx['id']}", json={"payment_status": "unpaid"}, headers=staff_headers)
    assert resp.status_code == 403

    resp = client.patch(f"/api/transactions/{tx['id']}", json={"payment_status": "unpaid"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.get_json()["transaction"]["payment_status"] == "unpaid"


def test_staff_locked_out_of_previous_day(client, staff_headers, admin_headers):
    tx = _create(client, admin_headers, started_at="2025-11-24T18:00").get_json()["transaction"]
    assert tx["business_date_key"] == "2025-11-24"

    resp = client.patch(f"/api/transactions/{tx['id']}", json={"notes": "x"}, headers=staff_headers)
    assert resp.status_code == 403

    resp = client.patch(f"/api/transactions/{tx['id']}", json={"notes": "x"}, headers=admin_headers)
    assert resp.status_code == 200


def test_noop_patch(client, staff_headers):
    tx = _create(client, staff_headers).get_json()["transaction"]

    resp = client.patch(f"/api/transactions/{tx['id']}", json={"colour": "blue"}, headers=staff_headers)

    assert resp.status_code == 400
    assert resp.get_json()["code"] == "no_op"


def test_get_transaction(client, staff_headers):
    tx = _create(client, staff_headers).get_json()["transaction"]

    assert client.get(f"/api/transactions/{tx['id']}", headers=staff_headers).status_code == 200
    assert client.get("/api/transactions/999", headers=staff_headers).status_code == 404


def test_history_scope(client, staff_headers, admin_headers):
    _create(client, admin_headers, started_at="2025-11-20T12:00")
    _create(client, admin_headers, started_at="2025-11-22T12:00")

    assert client.get("/api/transactions?scope=history", headers=staff_headers).status_code == 403

    resp = client.get("/api/transactions?scope=history&from=2025-11-21&to=2025-11-22", headers=admin_headers)
    assert resp.status_code == 200
    assert [t["business_date_key"] for t in resp.get_json()["transactions"]] == ["2025-11-22"]

    resp = client.get("/api/transactions?scope=history&from=bad", headers=admin_headers)
    assert resp.status_code == 400


def test_unknown_scope(client, staff_headers):
    resp = client.get("/api/transactions?scope=all", headers=staff_headers)

    assert resp.status_code == 400
    assert resp.get_json()["code"] == "invalid_value"


def test_admin_out_of_range_started_at_is_created_now(client, admin_headers):
    resp = _create(client, admin_headers, started_at="0001-01-01T00:00:00")

    assert resp.status_code == 201
    assert resp.get_json()["transaction"]["business_date_key"] == "2025-11-25"


def test_get_transaction_unexpected_error_is_500(client, staff_headers, monkeypatch):
    tx_id = _create(client, staff_headers).get_json()["transaction"]["id"]

    def _explode(self, *args, **kwargs):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(TransactionLedger, "get", _explode)

    resp = client.get(f"/api/transactions/{tx_id}", headers=staff_headers)

    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Internal server error"}
