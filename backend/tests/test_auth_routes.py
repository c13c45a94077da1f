# Overview: Pytest coverage for authentication routes and identity resolution.

"""
Authentication Tests

SECURITY TESTS: tokens, roles and account state are checked at the HTTP
boundary before any ledger code runs.
"""

import pytest
from spa_pos.extensions import db
from spa_pos.models import AuditEvent, SessionToken

from conftest import PASSWORD


pytestmark = pytest.mark.http


class TestLogin:
    def test_login_returns_token_usable_on_protected_routes(self, client, staff_user):
        resp = client.post("/api/auth/login", json={"username": "maria", "password": PASSWORD})

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["user"]["username"] == "maria"
        assert body["user"]["role"] == "staff"
        assert len(body["token"]) == 64

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
        assert me.status_code == 200
        assert me.get_json()["user"]["id"] == staff_user.id

    def test_token_is_stored_hashed(self, client, staff_user):
        resp = client.post("/api/auth/login", json={"username": "maria", "password": PASSWORD})
        token = resp.get_json()["token"]

        assert db.session.query(SessionToken).filter_by(token_hash=token).count() == 0

    def test_wrong_password(self, client, staff_user):
        resp = client.post("/api/auth/login", json={"username": "maria", "password": "Wrong123!"})

        assert resp.status_code == 401
        assert resp.get_json()["code"] == "unauthenticated"

        event = db.session.query(AuditEvent).filter_by(kind="auth").one()
        assert event.actor_id is None
        assert event.context["username"] == "maria"

    def test_successful_login_is_audited(self, client, staff_user):
        client.post("/api/auth/login", json={"username": "maria", "password": PASSWORD})

        event = db.session.query(AuditEvent).filter_by(kind="auth").one()
        assert event.actor_id == staff_user.id

    def test_missing_credentials(self, client):
        resp = client.post("/api/auth/login", json={"username": "maria"})

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "missing_input"

    def test_inactive_user_cannot_login(self, client, staff_user):
        staff_user.is_active = False
        db.session.commit()

        resp = client.post("/api/auth/login", json={"username": "maria", "password": PASSWORD})
        assert resp.status_code == 401

    def test_self_registration_disabled(self, client):
        resp = client.post("/api/auth/register", json={"username": "x", "password": PASSWORD})
        assert resp.status_code == 403


class TestTokens:
    def test_missing_token(self, client):
        resp = client.get("/api/inventory/items")

        assert resp.status_code == 401
        assert resp.get_json()["code"] == "unauthenticated"

    def test_unknown_token(self, client):
        resp = client.get("/api/inventory/items", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401

    def test_logout_revokes_token(self, client, staff_headers):
        assert client.post("/api/auth/logout", headers=staff_headers).status_code == 200
        assert client.get("/api/auth/me", headers=staff_headers).status_code == 401

    def test_deactivated_user_token_rejected(self, client, staff_user, staff_headers):
        staff_user.is_active = False
        db.session.commit()

        assert client.get("/api/auth/me", headers=staff_headers).status_code == 401

    def test_unrecognised_role_rejected(self, client, staff_user, staff_headers):
        staff_user.role = "manager"
        db.session.commit()

        resp = client.get("/api/auth/me", headers=staff_headers)
        assert resp.status_code == 401


class TestUserManagement:
    def test_admin_creates_user(self, client, admin_headers):
        resp = client.post(
            "/api/auth/users",
            json={"username": "jun", "password": "Secret123!", "role": "staff"},
            headers=admin_headers,
        )

        assert resp.status_code == 201
        assert resp.get_json()["user"]["role"] == "staff"

        login = client.post("/api/auth/login", json={"username": "jun", "password": "Secret123!"})
        assert login.status_code == 200

    def test_staff_cannot_create_users(self, client, staff_headers):
        resp = client.post(
            "/api/auth/users",
            json={"username": "jun", "password": "Secret123!"},
            headers=staff_headers,
        )
        assert resp.status_code == 403

    def test_weak_password(self, client, admin_headers):
        resp = client.post(
            "/api/auth/users",
            json={"username": "jun", "password": "password"},
            headers=admin_headers,
        )

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "invalid_value"

    def test_duplicate_username(self, client, admin_headers, staff_user):
        resp = client.post(
            "/api/auth/users",
            json={"username": "maria", "password": "Secret123!"},
            headers=admin_headers,
        )
        assert resp.status_code == 409

    def test_invalid_role(self, client, admin_headers):
        resp = client.post(
            "/api/auth/users",
            json={"username": "jun", "password": "Secret123!", "role": "owner"},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_admin_lists_users(self, client, admin_headers, staff_user):
        resp = client.get("/api/auth/users", headers=admin_headers)

        assert resp.status_code == 200
        assert [u["username"] for u in resp.get_json()["users"]] == ["admin", "maria"]
