from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from models.schemas.user import PublicUser, normalize_email, public_view
from models.user import Role, User
from services.errors import ConflictError, NotFoundError, storage_errors
from services.passwords import PasswordHasher
from services.refresh_tokens import RefreshTokenStore

logger = logging.getLogger(__name__)

MAX_LIMIT = 100
PROFILE_FIELDS = ("first_name", "last_name", "phone_number")


class UserService:
    """Profile and admin operations on user records."""

    def __init__(self, session: Session, hasher: PasswordHasher, tokens: RefreshTokenStore):
        self.session = session
        self.hasher = hasher
        self.tokens = tokens

    def _get_live(self, user_id: str) -> User:
        user = (
            self.session.query(User)
            .filter(User.id == user_id, User.deleted_at.is_(None))
            .first()
        )
        if user is None:
            raise NotFoundError("User not found")
        return user

    def _email_taken(self, email: str, exclude_id: Optional[str] = None) -> bool:
        query = self.session.query(User).filter(User.email == email)
        if exclude_id:
            query = query.filter(User.id != exclude_id)
        return query.first() is not None

    def get_user(self, user_id: str) -> PublicUser:
        with storage_errors(self.session):
            return public_view(self._get_live(user_id))

    def list_users(
        self,
        role: Optional[Role] = None,
        is_active: Optional[bool] = None,
        include_deleted: bool = False,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[PublicUser], int]:
        page = max(page, 1)
        limit = max(1, min(limit, MAX_LIMIT))
        with storage_errors(self.session):
            query = self.session.query(User)
            if role is not None:
                query = query.filter(User.role == role)
            if is_active is not None:
                query = query.filter(User.is_active.is_(is_active))
            if not include_deleted:
                query = query.filter(User.deleted_at.is_(None))
            total = query.count()
            rows = (
                query.order_by(User.created_at.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
        return [public_view(u) for u in rows], total

    def admin_create_user(
        self, email: str, password: str, role: Role, profile: Mapping[str, Any] | None = None
    ) -> PublicUser:
        email = normalize_email(email)
        profile = profile or {}
        with storage_errors(self.session):
            if self._email_taken(email):
                raise ConflictError("Email already registered")
            user = User(
                email=email,
                password_hash=self.hasher.hash(password),
                role=role,
                **{k: profile[k] for k in PROFILE_FIELDS if profile.get(k) is not None},
            )
            self.session.add(user)
            self.session.commit()
        logger.info("admin created user %s with role %s", user.id, role.value)
        return public_view(user)

    def update_profile(self, user_id: str, changes: Mapping[str, Any]) -> PublicUser:
        with storage_errors(self.session):
            user = self._get_live(user_id)
            email = changes.get("email")
            if email is not None:
                email = normalize_email(email)
                if email != user.email and self._email_taken(email, exclude_id=user.id):
                    raise ConflictError("Email already in use")
                user.email = email
            for key in PROFILE_FIELDS:
                if key in changes:
                    setattr(user, key, changes[key])
            if changes.get("password"):
                user.password_hash = self.hasher.hash(changes["password"])
            self.session.commit()
        return public_view(user)

    def admin_update_user(
        self,
        user_id: str,
        role: Optional[Role] = None,
        is_active: Optional[bool] = None,
        is_email_verified: Optional[bool] = None,
    ) -> PublicUser:
        with storage_errors(self.session):
            user = self._get_live(user_id)
            if role is not None:
                user.role = role
            if is_email_verified is not None:
                user.is_email_verified = is_email_verified
            if is_active is not None:
                user.is_active = is_active
                if not is_active:
                    revoked = self.tokens.revoke_all_for_user(user.id)
                    logger.info("deactivated user %s, revoked %d token(s)", user.id, revoked)
            self.session.commit()
        return public_view(user)

    def soft_delete_user(self, user_id: str) -> None:
        with storage_errors(self.session):
            user = self._get_live(user_id)
            user.soft_delete()
            revoked = self.tokens.revoke_all_for_user(user.id)
            self.session.commit()
        logger.info("soft-deleted user %s, revoked %d token(s)", user_id, revoked)
