"""
API tests for registration, login, token rotation and the /auth/me profile.
"""

import base64
import hashlib
import os
from datetime import datetime, timedelta, timezone

import pytest

from iris.core import security
from tests.shared.factories import TEST_PASSWORD, auth_headers, create_account

REGISTRATION = {
    "firstName": "Lucia",
    "lastNamePaternal": "Ramos",
    "email": "Lucia.Ramos@iris.io",
    "username": "LuciaR",
    "password": "Secret123",
}


def login(client, identifier, password=TEST_PASSWORD):
    return client.post("/api/v1/auth/login", json={"email": identifier, "password": password})


@pytest.mark.api
class TestRegister:

    def test_register_returns_tokens_and_pending_account(self, client, db):
        response = client.post("/api/v1/auth/register", json=REGISTRATION)
        assert response.status_code == 201
        body = response.json()
        assert body["accessToken"] and body["refreshToken"]
        assert body["user"]["email"] == "lucia.ramos@iris.io"
        assert body["user"]["name"] == "Lucia Ramos"
        assert "password_hash" not in body["user"]
        account = db.rows("account_users")[0]
        assert account["account_status"] == "pending_verification"
        assert account["username"] == "luciar"
        assert len(db.rows("auth_sessions")) == 1

    def test_duplicate_email_conflicts(self, client, db):
        create_account(db, "lucia.ramos@iris.io")
        response = client.post("/api/v1/auth/register", json=REGISTRATION)
        assert response.status_code == 409
        assert response.json()["detail"] == "Email already registered"

    def test_validation_errors_are_400(self, client):
        response = client.post("/api/v1/auth/register", json={**REGISTRATION, "email": "not-an-email"})
        assert response.status_code == 400


@pytest.mark.api
class TestLogin:

    def test_login_by_email_or_username(self, client, member):
        by_email = login(client, "MEMBER@iris.test")
        assert by_email.status_code == 200
        assert by_email.json()["user"]["id"] == member["user_id"]
        assert login(client, "member").status_code == 200

    def test_login_records_history_and_session(self, client, db, member):
        client.post("/api/v1/auth/login", json={"email": "member@iris.test", "password": TEST_PASSWORD},
                    headers={"User-Agent": "Mozilla/5.0 (iPhone) Mobile Safari/604.1"})
        session = db.rows("auth_sessions")[0]
        assert session["device_type"] == "mobile"
        assert session["browser_name"] == "Safari"
        assert db.rows("auth_login_history")[0]["success"] is True
        assert ("reset_failed_login_attempts", {"p_user_id": member["user_id"]}) in db.rpc_calls

    def test_wrong_password(self, client, db, member):
        response = login(client, "member@iris.test", "Wrong1234")
        assert response.status_code == 401
        assert ("handle_failed_login", {"p_user_id": member["user_id"]}) in db.rpc_calls
        assert db.rows("auth_login_history")[0]["failure_reason"] == "invalid_password"

    def test_unknown_user(self, client):
        assert login(client, "ghost@iris.test").status_code == 401

    def test_missing_identifier(self, client):
        response = client.post("/api/v1/auth/login", json={"password": "x"})
        assert response.status_code == 400

    def test_locked_account(self, client, db):
        locked_until = (datetime.now(timezone.utc) + timedelta(minutes=15)).isoformat()
        create_account(db, "locked@iris.test", locked_until=locked_until)
        response = login(client, "locked@iris.test")
        assert response.status_code == 423
        assert response.json()["detail"].startswith("Account locked until")

    def test_suspended_account(self, client, db):
        create_account(db, "gone@iris.test", account_status="suspended")
        assert login(client, "gone@iris.test").status_code == 403

    def test_pending_verification_may_sign_in(self, client, db):
        create_account(db, "new@iris.test", account_status="pending_verification")
        assert login(client, "new@iris.test").status_code == 200

    def test_legacy_hash_is_upgraded(self, client, db):
        salt = os.urandom(security.LEGACY_SALT_BYTES)
        key = hashlib.pbkdf2_hmac("sha256", TEST_PASSWORD.encode(), salt, 1000, dklen=32)
        legacy = f"$pbkdf2$1000${base64.b64encode(salt + key).decode()}"
        account = create_account(db, "old@iris.test", password_hash=legacy)
        assert login(client, "old@iris.test").status_code == 200
        stored = next(a for a in db.rows("account_users") if a["user_id"] == account["user_id"])
        assert security.verify_password(TEST_PASSWORD, stored["password_hash"])
        assert not security.needs_rehash(stored["password_hash"])


@pytest.mark.api
class TestTokens:

    def test_refresh_rotates_and_rejects_reuse(self, client, member):
        tokens = login(client, "member@iris.test").json()
        first = client.post("/api/v1/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
        assert first.status_code == 200
        assert "user" not in first.json()
        assert first.json()["refreshToken"] != tokens["refreshToken"]
        reused = client.post("/api/v1/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
        assert reused.status_code == 401

    def test_access_token_is_not_a_refresh_token(self, client, member):
        tokens = login(client, "member@iris.test").json()
        response = client.post("/api/v1/auth/refresh", json={"refreshToken": tokens["accessToken"]})
        assert response.status_code == 401

    def test_logout_revokes_the_session(self, client, db, member):
        tokens = login(client, "member@iris.test").json()
        response = client.post("/api/v1/auth/logout", headers={"Authorization": f"Bearer {tokens['accessToken']}"})
        assert response.status_code == 200
        session = db.rows("auth_sessions")[0]
        assert session["is_active"] is False
        assert session["revoked_reason"] == "User logout"

    def test_missing_or_bad_token(self, client):
        assert client.get("/api/v1/auth/me").status_code in (401, 403)
        assert client.get("/api/v1/auth/me", headers={"Authorization": "Bearer nope"}).status_code == 401


@pytest.mark.api
class TestProfile:

    def test_me_includes_permissions(self, client, member):
        body = client.get("/api/v1/auth/me", headers=auth_headers(member)).json()
        assert body["id"] == member["user_id"]
        assert body["role"] == "user"
        assert "issues:create" in body["permissions"]
        assert "users:create" not in body["permissions"]

    def test_update_me_rebuilds_display_name(self, client, member):
        response = client.patch("/api/v1/auth/me", json={"first_name": "Maria"}, headers=auth_headers(member))
        assert response.status_code == 200
        assert response.json()["name"] == "Maria Tester"

    def test_update_me_rejects_taken_username(self, client, member, manager):
        response = client.patch("/api/v1/auth/me", json={"username": "manager"}, headers=auth_headers(member))
        assert response.status_code == 409

    def test_change_password(self, client, db, member):
        body = {"currentPassword": TEST_PASSWORD, "newPassword": "Another123", "confirmPassword": "Another123"}
        response = client.post("/api/v1/auth/change-password", json=body, headers=auth_headers(member))
        assert response.status_code == 200
        assert login(client, "member@iris.test", "Another123").status_code == 200

    @pytest.mark.parametrize("body,status", [
        ({"currentPassword": "Wrong1234", "newPassword": "Another123", "confirmPassword": "Another123"}, 401),
        ({"currentPassword": TEST_PASSWORD, "newPassword": "Another123", "confirmPassword": "Other1234"}, 400),
        ({"currentPassword": TEST_PASSWORD, "newPassword": "weak", "confirmPassword": "weak"}, 400),
    ])
    def test_change_password_errors(self, client, member, body, status):
        assert client.post("/api/v1/auth/change-password", json=body, headers=auth_headers(member)).status_code == status
