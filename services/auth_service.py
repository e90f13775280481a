"""
Session orchestration: register, login, refresh, logout.

AuthService composes the password hasher, the token issuer and the refresh
token store. It is built per request (see api.auth.get_auth_service) around
the request's SQLAlchemy session and the immutable AuthSettings.

Login failures for "no such user" and "wrong password" share one message so
responses do not reveal which emails are registered; the unknown-email path
still runs a dummy argon2 verification to keep timing comparable.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.user import Role, User
from models.schemas.user import PublicUser, normalize_email, public_view
from services.errors import ConflictError, UnauthorizedError, storage_errors
from services.passwords import PasswordHasher
from services.refresh_tokens import DeviceContext, RefreshTokenStore, TokenPair
from services.settings import AuthSettings
from services.tokens import TokenIssuer, hash_refresh_token

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
ACCOUNT_DEACTIVATED = "Account is deactivated"

PROFILE_FIELDS = ("first_name", "last_name", "phone_number")


@dataclass(frozen=True)
class AuthResult:
    user: PublicUser
    tokens: TokenPair


class AuthService:
    def __init__(
        self,
        session: Session,
        settings: AuthSettings,
        hasher: PasswordHasher,
        issuer: TokenIssuer,
    ):
        self.session = session
        self.settings = settings
        self.hasher = hasher
        self.issuer = issuer
        self.tokens = RefreshTokenStore(session, issuer, settings)

    def _find_by_email(self, email: str) -> User | None:
        return (
            self.session.query(User)
            .filter(User.email == email, User.deleted_at.is_(None))
            .first()
        )

    def register(self, email: str, password: str, profile: Mapping[str, Any] | None = None) -> PublicUser:
        email = normalize_email(email)
        profile = profile or {}
        with storage_errors(self.session):
            if self.session.query(User).filter(User.email == email).first():
                raise ConflictError("Email already registered")

            user = User(
                email=email,
                password_hash=self.hasher.hash(password),
                role=Role.APPLICANT,
                **{k: profile[k] for k in PROFILE_FIELDS if profile.get(k) is not None},
            )
            self.session.add(user)
            try:
                self.session.commit()
            except IntegrityError:
                # lost a race with a concurrent registration of the same email
                self.session.rollback()
                raise ConflictError("Email already registered")
        logger.info("registered user %s", user.id)
        return public_view(user)

    def login(self, email: str, password: str, context: DeviceContext | None = None) -> AuthResult:
        email = normalize_email(email)
        with storage_errors(self.session):
            user = self._find_by_email(email)
            if user is None:
                self.hasher.verify_dummy(password)
                logger.info("login failed for unknown email")
                raise UnauthorizedError(INVALID_CREDENTIALS)
            if not self.hasher.verify(password, user.password_hash):
                logger.info("login failed for user %s: bad password", user.id)
                raise UnauthorizedError(INVALID_CREDENTIALS)
            if not user.can_authenticate:
                logger.info("login refused for deactivated user %s", user.id)
                raise UnauthorizedError(ACCOUNT_DEACTIVATED)

            tokens = self.tokens.issue_pair(user, context)
            self.session.commit()
        logger.info("user %s logged in", user.id)
        return AuthResult(user=public_view(user), tokens=tokens)

    def refresh(self, refresh_token: str, context: DeviceContext | None = None) -> AuthResult:
        """RefreshRejected (an UnauthorizedError) carries the specific reason."""
        user, tokens = self.tokens.validate_and_rotate(refresh_token, context)
        return AuthResult(user=public_view(user), tokens=tokens)

    def logout(self, refresh_token: str, user_id: str) -> None:
        token_hash = hash_refresh_token(refresh_token)
        with storage_errors(self.session):
            stored = self.tokens.lookup(token_hash)
            if stored is None:
                return
            if stored.user_id != user_id:
                raise UnauthorizedError("Token does not belong to user")
            if self.tokens.revoke(token_hash):
                self.session.commit()
                logger.info("user %s logged out, token %s revoked", user_id, stored.id)
