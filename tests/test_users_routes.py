"""
tests/test_users_routes.py -- /api/v1/users/* and capability gating.
"""

from __future__ import annotations

import pytest
from flask.testing import FlaskClient

from models.refresh_token import RefreshToken
from models.user import Role, User
from tests.conftest import PASSWORD, api_login, bearer


@pytest.fixture
def admin_headers(client: FlaskClient, make_user) -> dict[str, str]:
    make_user("admin@x.com", role=Role.ADMIN)
    return bearer(api_login(client, "admin@x.com")["access_token"])


@pytest.fixture
def applicant(client: FlaskClient, make_user) -> tuple[User, dict[str, str], dict]:
    user = make_user("app@x.com", first_name="Ann")
    tokens = api_login(client, "app@x.com")
    return user, bearer(tokens["access_token"]), tokens


class TestMe:
    def test_get_me(self, client: FlaskClient, applicant) -> None:
        user, headers, _ = applicant
        resp = client.get("/api/v1/users/me", headers=headers)
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["id"] == user.id
        assert data["role"] == "APPLICANT"
        assert "password_hash" not in data
        assert "deleted_at" not in data

    def test_update_me(self, client: FlaskClient, applicant) -> None:
        _, headers, _ = applicant
        resp = client.patch("/api/v1/users/me", json={"last_name": " Lee ", "email": "New@X.com"}, headers=headers)
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["last_name"] == "Lee"
        assert data["email"] == "new@x.com"

    def test_update_me_email_conflict(self, client: FlaskClient, applicant, make_user) -> None:
        _, headers, _ = applicant
        make_user("taken@x.com")
        resp = client.patch("/api/v1/users/me", json={"email": "taken@x.com"}, headers=headers)
        assert resp.status_code == 409
        assert resp.get_json()["message"] == "Email already in use"

    def test_password_change_takes_effect(self, client: FlaskClient, applicant) -> None:
        _, headers, _ = applicant
        resp = client.patch("/api/v1/users/me", json={"password": "N3wPassword"}, headers=headers)
        assert resp.status_code == 200
        assert client.post("/api/v1/auth/login", json={"email": "app@x.com", "password": PASSWORD}).status_code == 401
        assert api_login(client, "app@x.com", "N3wPassword")["access_token"]


class TestCapabilities:
    def test_applicant_cannot_list(self, client: FlaskClient, applicant) -> None:
        _, headers, _ = applicant
        resp = client.get("/api/v1/users", headers=headers)
        assert resp.status_code == 403
        assert resp.get_json()["message"] == "Insufficient permissions"

    def test_reviewer_has_no_admin_access(self, client: FlaskClient, make_user, applicant) -> None:
        user, _, _ = applicant
        make_user("rev@x.com", role=Role.REVIEWER)
        headers = bearer(api_login(client, "rev@x.com")["access_token"])
        assert client.get("/api/v1/users", headers=headers).status_code == 403
        assert client.patch(f"/api/v1/users/{user.id}", json={"is_active": False}, headers=headers).status_code == 403
        assert client.delete(f"/api/v1/users/{user.id}", headers=headers).status_code == 403

    def test_bad_bearer_token(self, client: FlaskClient) -> None:
        resp = client.get("/api/v1/users", headers=bearer("garbage"))
        assert resp.status_code == 401


class TestAdmin:
    def test_list_with_filters(self, client: FlaskClient, admin_headers, applicant) -> None:
        resp = client.get("/api/v1/users?role=APPLICANT&limit=10", headers=admin_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["meta"] == {"page": 1, "limit": 10, "total": 1}
        assert body["data"][0]["email"] == "app@x.com"

    def test_list_rejects_oversized_limit(self, client: FlaskClient, admin_headers) -> None:
        resp = client.get("/api/v1/users?limit=500", headers=admin_headers)
        assert resp.status_code == 422

    def test_admin_create_user(self, client: FlaskClient, admin_headers) -> None:
        resp = client.post(
            "/api/v1/users",
            json={"email": "rev@x.com", "password": PASSWORD, "role": "REVIEWER"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["data"]["role"] == "REVIEWER"

    def test_deactivate_revokes_tokens_and_blocks_refresh(self, client: FlaskClient, admin_headers, applicant, session) -> None:
        user, _, tokens = applicant
        resp = client.patch(f"/api/v1/users/{user.id}", json={"is_active": False}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["is_active"] is False

        active = session.query(RefreshToken).filter(
            RefreshToken.user_id == user.id, RefreshToken.revoked_at.is_(None)
        )
        assert active.count() == 0
        assert client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]}).status_code == 401
        resp = client.post("/api/v1/auth/login", json={"email": "app@x.com", "password": PASSWORD})
        assert resp.status_code == 401
        assert resp.get_json()["message"] == "Account is deactivated"

    def test_soft_delete(self, client: FlaskClient, admin_headers, applicant, session) -> None:
        user, _, _ = applicant
        resp = client.delete(f"/api/v1/users/{user.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json() == {"message": "User deleted successfully"}
        assert session.get(User, user.id).deleted_at is not None

        assert client.delete(f"/api/v1/users/{user.id}", headers=admin_headers).status_code == 404
        listed = client.get("/api/v1/users", headers=admin_headers).get_json()["data"]
        assert "app@x.com" not in [u["email"] for u in listed]
        listed = client.get("/api/v1/users?include_deleted=true", headers=admin_headers).get_json()["data"]
        assert "app@x.com" in [u["email"] for u in listed]

    def test_update_missing_user(self, client: FlaskClient, admin_headers) -> None:
        resp = client.patch("/api/v1/users/does-not-exist", json={"role": "ADMIN"}, headers=admin_headers)
        assert resp.status_code == 404
        assert resp.get_json()["message"] == "User not found"
