"""
tests/conftest.py -- Shared fixtures.

Every test gets a fresh application bound to its own in-memory SQLite
database (TestingConfig uses "sqlite://", and DBStorage.configure() builds a
new engine per create_app() call). Argon2 runs with a minimal work factor
in TestingConfig so the suite stays fast.
"""

from __future__ import annotations

import os
from collections.abc import Generator

# Select TestingConfig before anything reads the environment.
os.environ["APP_ENV"] = "test"

import pytest
from flask import Flask
from flask.testing import FlaskClient

from api import create_app
from api.deps import AuthExtension
from models import storage
from models.user import Role, User
from services.auth_service import AuthService
from services.refresh_tokens import DeviceContext, RefreshTokenStore
from services.user_service import UserService

PASSWORD = "Passw0rd1"


@pytest.fixture
def app() -> Generator[Flask, None, None]:
    app = create_app("test")
    with app.app_context():
        yield app
        storage.drop_all()


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    return app.test_client()


@pytest.fixture
def ext(app: Flask) -> AuthExtension:
    return app.extensions["auth"]


@pytest.fixture
def session(app: Flask):
    return storage.get_session()


@pytest.fixture
def auth_service(session, ext: AuthExtension) -> AuthService:
    return AuthService(session, ext.settings, ext.hasher, ext.issuer)


@pytest.fixture
def token_store(session, ext: AuthExtension) -> RefreshTokenStore:
    return RefreshTokenStore(session, ext.issuer, ext.settings)


@pytest.fixture
def user_service(session, ext: AuthExtension, token_store: RefreshTokenStore) -> UserService:
    return UserService(session, ext.hasher, token_store)


@pytest.fixture
def context() -> DeviceContext:
    return DeviceContext(ip_address="203.0.113.7", device_info="pytest-agent/1.0")


@pytest.fixture
def make_user(session, ext: AuthExtension):
    """Insert a user directly; returns the ORM object."""

    def _make(email: str = "a@b.com", password: str = PASSWORD, role: Role = Role.APPLICANT, **fields) -> User:
        user = User(email=email, password_hash=ext.hasher.hash(password), role=role, **fields)
        session.add(user)
        session.commit()
        return user

    return _make


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def api_login(client: FlaskClient, email: str = "a@b.com", password: str = PASSWORD) -> dict:
    """POST /auth/login and return the tokens block."""
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()["data"]["tokens"]
