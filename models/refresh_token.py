"""
RefreshToken model: one row per issued refresh credential.
Fields:
- token_hash: SHA-256 hex digest of the plaintext (the plaintext is never stored)
- user_id (String(36)) - FK to users.id
- created_at, expires_at, revoked_at
- device_info / ip_address: request context captured at issuance
"""
from datetime import datetime

from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base, utcnow

DEVICE_INFO_MAX = 500
IP_ADDRESS_MAX = 45  # IPv6 textual form


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime, nullable=True)
    device_info = Column(String(DEVICE_INFO_MAX), nullable=True)
    ip_address = Column(String(IP_ADDRESS_MAX), nullable=True)

    user = relationship("User", back_populates="refresh_tokens")

    __table_args__ = (
        Index("ix_refresh_tokens_user_revoked", "user_id", "revoked_at"),
    )

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at <= (now or utcnow())

    def is_active(self, now: datetime | None = None) -> bool:
        return not self.is_revoked and not self.is_expired(now)

    def __repr__(self):
        return f"<RefreshToken id={self.id} user={self.user_id} revoked={self.is_revoked}>"
