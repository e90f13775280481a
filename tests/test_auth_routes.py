"""
tests/test_auth_routes.py -- /api/v1/auth/* through the real Flask stack.

The scenario test walks register -> login -> refresh -> replay exactly as a
client would, asserting on status codes and the JSON envelope.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from flask.testing import FlaskClient

from models import storage
from models.refresh_token import RefreshToken
from services.tokens import hash_refresh_token
from tests.conftest import PASSWORD, api_login, bearer


def _register(client: FlaskClient, email: str = "a@b.com", password: str = PASSWORD):
    return client.post("/api/v1/auth/register", json={"email": email, "password": password})


def _token_row(plaintext: str) -> RefreshToken:
    session = storage.get_session()
    return session.query(RefreshToken).filter(RefreshToken.token_hash == hash_refresh_token(plaintext)).one()


class TestScenario:
    def test_register_login_refresh_replay(self, client: FlaskClient) -> None:
        resp = _register(client)
        assert resp.status_code == 201
        body = resp.get_json()["data"]
        assert body["email"] == "a@b.com"
        assert "password_hash" not in body
        assert "password" not in body

        resp = client.post(
            "/api/v1/auth/login",
            json={"email": "a@b.com", "password": PASSWORD},
            headers={"User-Agent": "scenario-client"},
        )
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        original = data["tokens"]
        assert original["access_token"] and original["refresh_token"]
        assert original["token_type"] == "bearer"
        assert original["expires_in"] == 900
        assert original["refresh_expires_at"].endswith("+00:00")
        refresh_expires = datetime.fromisoformat(original["refresh_expires_at"])
        assert abs(refresh_expires - (datetime.now(timezone.utc) + timedelta(days=7))) < timedelta(minutes=1)
        assert data["user"]["created_at"].endswith("+00:00")
        assert "password_hash" not in data["user"]

        resp = client.post("/api/v1/auth/refresh", json={"refresh_token": original["refresh_token"]})
        assert resp.status_code == 200
        rotated = resp.get_json()["data"]["tokens"]
        assert rotated["refresh_token"] != original["refresh_token"]
        assert _token_row(original["refresh_token"]).revoked_at is not None

        resp = client.post("/api/v1/auth/refresh", json={"refresh_token": original["refresh_token"]})
        assert resp.status_code == 401
        assert resp.get_json()["message"] == "Refresh token has been revoked"
        # the cascade took the freshly issued token down too
        assert _token_row(rotated["refresh_token"]).revoked_at is not None
        resp = client.post("/api/v1/auth/refresh", json={"refresh_token": rotated["refresh_token"]})
        assert resp.status_code == 401


class TestRegister:
    def test_duplicate_email_conflicts(self, client: FlaskClient) -> None:
        _register(client)
        resp = _register(client, email="  A@b.COM ")
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "CONFLICT"

    def test_weak_password_is_rejected(self, client: FlaskClient) -> None:
        resp = _register(client, password="alllowercase1")
        assert resp.status_code == 422
        assert "password" in resp.get_json()["details"]

    def test_invalid_email_is_rejected(self, client: FlaskClient) -> None:
        resp = _register(client, email="not-an-email")
        assert resp.status_code == 422


class TestLogin:
    def test_enumeration_resistance(self, client: FlaskClient) -> None:
        _register(client, email="real@x.com")
        unknown = client.post("/api/v1/auth/login", json={"email": "unknown@x.com", "password": "anything"})
        wrong = client.post("/api/v1/auth/login", json={"email": "real@x.com", "password": "wrongpassword"})

        assert unknown.status_code == wrong.status_code == 401
        assert unknown.get_json() == wrong.get_json()

    def test_missing_fields(self, client: FlaskClient) -> None:
        resp = client.post("/api/v1/auth/login", json={})
        assert resp.status_code == 422

    def test_login_records_device_context(self, client: FlaskClient) -> None:
        _register(client)
        resp = client.post(
            "/api/v1/auth/login",
            json={"email": "a@b.com", "password": PASSWORD},
            headers={"User-Agent": "Mozilla/5.0 test"},
            environ_base={"REMOTE_ADDR": "198.51.100.4"},
        )
        row = _token_row(resp.get_json()["data"]["tokens"]["refresh_token"])
        assert row.device_info == "Mozilla/5.0 test"
        assert row.ip_address == "198.51.100.4"


class TestLogout:
    def test_logout_twice_succeeds(self, client: FlaskClient) -> None:
        _register(client)
        tokens = api_login(client)
        headers = bearer(tokens["access_token"])

        for _ in range(2):
            resp = client.post(
                "/api/v1/auth/logout", json={"refresh_token": tokens["refresh_token"]}, headers=headers
            )
            assert resp.status_code == 200
            assert resp.get_json() == {"message": "Successfully logged out"}

    def test_logout_requires_access_token(self, client: FlaskClient) -> None:
        resp = client.post("/api/v1/auth/logout", json={"refresh_token": "x"})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "UNAUTHORIZED"

    def test_logout_other_users_token(self, client: FlaskClient) -> None:
        _register(client, email="owner@x.com")
        _register(client, email="intruder@x.com")
        owner = api_login(client, "owner@x.com")
        intruder = api_login(client, "intruder@x.com")

        resp = client.post(
            "/api/v1/auth/logout",
            json={"refresh_token": owner["refresh_token"]},
            headers=bearer(intruder["access_token"]),
        )
        assert resp.status_code == 401
        assert resp.get_json()["message"] == "Token does not belong to user"

    def test_access_token_is_not_a_refresh_token(self, client: FlaskClient) -> None:
        _register(client)
        tokens = api_login(client)
        resp = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]})
        assert resp.status_code == 401
        assert resp.get_json()["message"] == "Invalid refresh token"


class TestUnencodableText:
    """Lone surrogates arrive as valid JSON escapes but cannot be UTF-8 encoded."""

    def test_login_rejects_lone_surrogate(self, client: FlaskClient) -> None:
        _register(client)
        resp = client.post("/api/v1/auth/login", json={"email": "a@b.com", "password": "\ud800"})
        assert resp.status_code == 422
        assert resp.get_json()["error"] == "VALIDATION_ERROR"
        assert "password" in resp.get_json()["details"]

    def test_register_rejects_lone_surrogate(self, client: FlaskClient) -> None:
        resp = _register(client, password="Passw0rd1\ud800")
        assert resp.status_code == 422
        assert "password" in resp.get_json()["details"]

    def test_refresh_rejects_lone_surrogate(self, client: FlaskClient) -> None:
        resp = client.post("/api/v1/auth/refresh", json={"refresh_token": "\ud800"})
        assert resp.status_code == 422
        assert "refresh_token" in resp.get_json()["details"]

    def test_logout_rejects_lone_surrogate(self, client: FlaskClient) -> None:
        _register(client)
        tokens = api_login(client)
        resp = client.post(
            "/api/v1/auth/logout", json={"refresh_token": "\ud800"}, headers=bearer(tokens["access_token"])
        )
        assert resp.status_code == 422
        assert _token_row(tokens["refresh_token"]).revoked_at is None
