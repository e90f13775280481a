"""
Error kinds raised by the service layer.

Services never build HTTP responses; api/errors.py maps each class to a
status code and the uniform error envelope.
"""
from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy.exc import DBAPIError, OperationalError, TimeoutError as PoolTimeoutError


class ServiceError(Exception):
    status = 400
    code = "BAD_REQUEST"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConflictError(ServiceError):
    status = 409
    code = "CONFLICT"


class UnauthorizedError(ServiceError):
    status = 401
    code = "UNAUTHORIZED"


class NotFoundError(ServiceError):
    status = 404
    code = "NOT_FOUND"


class StorageError(ServiceError):
    """The database is unreachable or timed out. Callers may retry."""

    status = 503
    code = "STORAGE_UNAVAILABLE"


class RefreshRejected(UnauthorizedError):
    """A refresh token failed validation; `reason` says which check."""

    INVALID = "invalid"
    REVOKED = "revoked"
    EXPIRED = "expired"
    INACTIVE = "inactive"

    MESSAGES = {
        INVALID: "Invalid refresh token",
        REVOKED: "Refresh token has been revoked",
        EXPIRED: "Refresh token has expired",
        INACTIVE: "User account is not active",
    }

    def __init__(self, reason: str):
        super().__init__(self.MESSAGES[reason])
        self.reason = reason


@contextmanager
def storage_errors(session):
    """Roll back and re-raise infrastructure failures as StorageError.

    Constraint violations and other programming errors propagate unchanged.
    """
    try:
        yield
    except (OperationalError, PoolTimeoutError) as exc:
        session.rollback()
        raise StorageError("Storage is temporarily unavailable") from exc
    except DBAPIError as exc:
        session.rollback()
        if exc.connection_invalidated:
            raise StorageError("Storage is temporarily unavailable") from exc
        raise
