#!/usr/bin/env python3
"""
Shared SQLAlchemy base and mixins for the Accounts API.

- UUID primary key (String(36)) with defaults
- created_at / updated_at timestamps
- SoftDeleteMixin for entities that are deactivated instead of removed

Notes:
- Timestamps are naive UTC set on the Python side, with microsecond
  resolution. Refresh-token pruning orders by created_at, and SQLite's
  CURRENT_TIMESTAMP only has one-second resolution.
- Commits belong to the service layer; nothing here commits.
- SoftDelete: put mixin FIRST in your model's inheritance list.
  Example:
    class User(SoftDeleteMixin, BaseModel, Base): ...
"""

from __future__ import annotations

from datetime import datetime, timezone
import uuid

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import declarative_base

# Declarative base for all models
Base = declarative_base()


def _uuid_str() -> str:
    """Return a canonical UUIDv4 string (36 chars, with hyphens)."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC now; every timestamp column in this project uses it."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BaseModel:
    """
    Base mixin for all persistent models: id, created_at, updated_at.
    """

    id = Column(String(36), primary_key=True, default=_uuid_str, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __init__(self, *args, **kwargs):
        """
        Allow attribute initialization via kwargs without requiring a session here.
        If you pass created_at explicitly (e.g., in tests), it is kept.
        """
        for key, value in kwargs.items():
            if key != "__class__":
                setattr(self, key, value)
        # Ensure an id exists if caller passed none
        if getattr(self, "id", None) is None:
            self.id = _uuid_str()

    def __str__(self) -> str:
        """Human-friendly representation including id."""
        return f"[{self.__class__.__name__}] ({self.id})"


class SoftDeleteMixin:
    """
    Adds a deleted_at timestamp. Soft-deleted rows stay in the table but are
    filtered out of normal lookups.
    """

    deleted_at = Column(DateTime, nullable=True)

    def soft_delete(self):
        """Mark the row deleted; the caller commits."""
        if self.deleted_at is None:
            self.deleted_at = utcnow()
