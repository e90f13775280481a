"""
Per-request service construction.

create_app() stores one AuthExtension under app.extensions["auth"]; the
helpers below wrap it around the request's scoped session.
"""
from __future__ import annotations

from dataclasses import dataclass

from flask import Flask, current_app, request

from models import storage
from services.auth_service import AuthService
from services.passwords import PasswordHasher
from services.refresh_tokens import DeviceContext, RefreshTokenStore
from services.settings import AuthSettings
from services.tokens import TokenIssuer
from services.user_service import UserService


@dataclass(frozen=True)
class AuthExtension:
    settings: AuthSettings
    hasher: PasswordHasher
    issuer: TokenIssuer


def init_auth(app: Flask) -> AuthExtension:
    settings = AuthSettings.from_config(app.config)
    ext = AuthExtension(
        settings=settings,
        hasher=PasswordHasher(
            time_cost=settings.password_time_cost,
            memory_cost=settings.password_memory_cost,
        ),
        issuer=TokenIssuer(settings.jwt_secret, settings.jwt_algorithm, settings.jwt_issuer),
    )
    app.extensions["auth"] = ext
    return ext


def get_auth_service() -> AuthService:
    ext: AuthExtension = current_app.extensions["auth"]
    return AuthService(storage.get_session(), ext.settings, ext.hasher, ext.issuer)


def get_user_service() -> UserService:
    ext: AuthExtension = current_app.extensions["auth"]
    session = storage.get_session()
    tokens = RefreshTokenStore(session, ext.issuer, ext.settings)
    return UserService(session, ext.hasher, tokens)


def device_context() -> DeviceContext:
    return DeviceContext(
        ip_address=request.remote_addr,
        device_info=request.headers.get("User-Agent"),
    )
