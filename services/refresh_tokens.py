"""
Server-side refresh token storage, rotation and theft detection.

Each token moves Active -> Revoked (explicit) or Active -> Expired (checked
at query time). Nothing ever leaves Revoked.

Rotation claims the presented token with a conditional UPDATE
(`... WHERE revoked_at IS NULL`) and inspects the affected row count. Of two
concurrent refreshes with the same token only one gets a row back; the other
sees the token as revoked, the same as a replayed stolen token, and every
active token of the user is revoked. A retried double-submit and an attacker
look identical here; the cascade plus the per-user cap bound the damage.

Commits: validate_and_rotate() is a complete unit of work and commits (the
reuse cascade has to be durable even though the call fails). The other
methods flush only; the caller commits.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from models.base_model import utcnow
from models.refresh_token import DEVICE_INFO_MAX, IP_ADDRESS_MAX, RefreshToken
from models.user import User
from services.errors import RefreshRejected, storage_errors
from services.settings import AuthSettings
from services.tokens import TokenIssuer, hash_refresh_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceContext:
    ip_address: Optional[str] = None
    device_info: Optional[str] = None


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int  # seconds until the access token expires
    refresh_expires_at: datetime
    token_type: str = "bearer"


class RefreshTokenStore:
    def __init__(self, session: Session, issuer: TokenIssuer, settings: AuthSettings):
        self.session = session
        self.issuer = issuer
        self.settings = settings

    # -- persistence -------------------------------------------------------

    def persist(
        self,
        user_id: str,
        token_hash: str,
        expires_at: datetime,
        context: DeviceContext | None = None,
    ) -> RefreshToken:
        context = context or DeviceContext()
        token = RefreshToken(
            user_id=user_id,
            token_hash=token_hash,
            created_at=utcnow(),
            expires_at=expires_at,
            device_info=context.device_info[:DEVICE_INFO_MAX] if context.device_info else None,
            ip_address=context.ip_address[:IP_ADDRESS_MAX] if context.ip_address else None,
        )
        self.session.add(token)
        self.session.flush()
        return token

    def lookup(self, token_hash: str) -> RefreshToken | None:
        return self.session.query(RefreshToken).filter(RefreshToken.token_hash == token_hash).first()

    def active_tokens(self, user_id: str) -> List[RefreshToken]:
        """Active tokens of a user, newest first."""
        return (
            self.session.query(RefreshToken)
            .filter(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > utcnow(),
            )
            .order_by(RefreshToken.created_at.desc(), RefreshToken.id.desc())
            .all()
        )

    # -- revocation --------------------------------------------------------

    def revoke(self, token_hash: str) -> bool:
        """Revoke one token. Absent or already revoked tokens are left alone."""
        rows = (
            self.session.query(RefreshToken)
            .filter(RefreshToken.token_hash == token_hash, RefreshToken.revoked_at.is_(None))
            .update({RefreshToken.revoked_at: utcnow()}, synchronize_session="fetch")
        )
        return rows > 0

    def revoke_all_for_user(self, user_id: str) -> int:
        rows = (
            self.session.query(RefreshToken)
            .filter(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
            .update({RefreshToken.revoked_at: utcnow()}, synchronize_session="fetch")
        )
        return rows

    def prune_excess(self, user_id: str, keep: int | None = None) -> int:
        """Revoke active tokens beyond the `keep` newest ones."""
        keep = self.settings.max_refresh_tokens_per_user if keep is None else keep
        excess = [token.id for token in self.active_tokens(user_id)[keep:]]
        if not excess:
            return 0
        rows = (
            self.session.query(RefreshToken)
            .filter(RefreshToken.id.in_(excess), RefreshToken.revoked_at.is_(None))
            .update({RefreshToken.revoked_at: utcnow()}, synchronize_session="fetch")
        )
        logger.info("pruned %d refresh token(s) for user %s", rows, user_id)
        return rows

    # -- issuance and rotation ---------------------------------------------

    def issue_pair(self, user: User, context: DeviceContext | None = None) -> TokenPair:
        """Mint an access token and a refresh token, store the refresh hash, prune."""
        access_token = self.issuer.issue_access_token(
            {"sub": user.id, "email": user.email, "role": user.role.value},
            self.settings.access_token_ttl,
        )
        plaintext, token_hash = self.issuer.issue_refresh_secret()
        expires_at = utcnow() + self.settings.refresh_token_ttl
        self.persist(user.id, token_hash, expires_at, context)
        self.prune_excess(user.id)
        return TokenPair(
            access_token=access_token,
            refresh_token=plaintext,
            expires_in=int(self.settings.access_token_ttl.total_seconds()),
            refresh_expires_at=expires_at,
        )

    def validate_and_rotate(self, plaintext: str, context: DeviceContext | None = None) -> Tuple[User, TokenPair]:
        """
        Exchange a refresh token for a new pair. Raises RefreshRejected with
        reason invalid / revoked / expired / inactive.
        """
        token_hash = hash_refresh_token(plaintext)
        with storage_errors(self.session):
            stored = self.lookup(token_hash)
            if stored is None:
                raise RefreshRejected(RefreshRejected.INVALID)
            if stored.is_revoked:
                self._reuse_detected(stored)

            now = utcnow()
            if stored.is_expired(now):
                raise RefreshRejected(RefreshRejected.EXPIRED)
            user = stored.user
            if user is None or not user.can_authenticate:
                raise RefreshRejected(RefreshRejected.INACTIVE)

            if not self._claim(stored, now):
                # another request rotated this token after our lookup
                self._reuse_detected(stored)

            tokens = self.issue_pair(user, context)
            self.session.commit()
        logger.info("rotated refresh token %s for user %s", stored.id, user.id)
        return user, tokens

    def _claim(self, stored: RefreshToken, now: datetime) -> bool:
        rows = (
            self.session.query(RefreshToken)
            .filter(RefreshToken.id == stored.id, RefreshToken.revoked_at.is_(None))
            .update({RefreshToken.revoked_at: now}, synchronize_session="fetch")
        )
        return rows == 1

    def _reuse_detected(self, stored: RefreshToken):
        revoked = self.revoke_all_for_user(stored.user_id)
        self.session.commit()
        logger.warning(
            "revoked refresh token %s presented again; revoked %d active token(s) of user %s",
            stored.id,
            revoked,
            stored.user_id,
        )
        raise RefreshRejected(RefreshRejected.REVOKED)
