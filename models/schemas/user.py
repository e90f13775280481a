from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from marshmallow import Schema, fields, pre_load, validate, validates, ValidationError

from models.user import Role, User

PASSWORD_RULES = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")
PHONE_RE = r"^\+?[1-9]\d{1,14}$"


def normalize_email(v):
    return v.strip().lower() if isinstance(v, str) else v


def _strip(v):
    return v.strip() if isinstance(v, str) else v


def utf8_encodable(value):
    """Reject strings that cannot be encoded, such as lone surrogates from JSON escapes."""
    if isinstance(value, str):
        try:
            value.encode("utf-8")
        except UnicodeEncodeError:
            raise ValidationError("Must be valid UTF-8 text") from None


@dataclass(frozen=True)
class PublicUser:
    """What a client may see of a User. Never carries the credential hash."""

    id: str
    email: str
    first_name: Optional[str]
    last_name: Optional[str]
    phone_number: Optional[str]
    role: Role
    is_active: bool
    is_email_verified: bool
    created_at: datetime


def public_view(user: User) -> PublicUser:
    return PublicUser(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        phone_number=user.phone_number,
        role=user.role,
        is_active=bool(user.is_active),
        is_email_verified=bool(user.is_email_verified),
        created_at=user.created_at,
    )


class _PasswordMixin:
    @validates("password")
    def validate_password(self, value, **kwargs):
        utf8_encodable(value)
        if len(value) < 8:
            raise ValidationError("Password must be at least 8 characters")
        # argon2 has no length limit, but keep the bound the clients already know
        if len(value) > 72:
            raise ValidationError("Password must not exceed 72 characters")
        if not PASSWORD_RULES.match(value):
            raise ValidationError(
                "Password must contain at least one uppercase letter, one lowercase letter, and one number"
            )


class _NormalizeMixin:
    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict):
            data = dict(data)
            if "email" in data:
                data["email"] = normalize_email(data["email"])
            for key in ("first_name", "last_name"):
                if key in data:
                    data[key] = _strip(data[key])
        return data


class UserCreateSchema(_NormalizeMixin, _PasswordMixin, Schema):
    email = fields.Email(required=True, validate=utf8_encodable)
    password = fields.String(required=True, load_only=True)
    first_name = fields.String(allow_none=True, validate=[validate.Length(max=100), utf8_encodable])
    last_name = fields.String(allow_none=True, validate=[validate.Length(max=100), utf8_encodable])
    phone_number = fields.String(
        allow_none=True, validate=validate.Regexp(PHONE_RE, error="Please provide a valid phone number")
    )


class AdminUserCreateSchema(UserCreateSchema):
    role = fields.Enum(Role, required=True)


class UserLoginSchema(_NormalizeMixin, Schema):
    email = fields.Email(required=True, validate=utf8_encodable)
    password = fields.String(
        required=True, validate=[validate.Length(min=1, error="Password is required"), utf8_encodable]
    )


class RefreshTokenSchema(Schema):
    refresh_token = fields.String(
        required=True, validate=[validate.Length(min=1, error="Refresh token is required"), utf8_encodable]
    )


class ProfileUpdateSchema(_NormalizeMixin, _PasswordMixin, Schema):
    email = fields.Email(validate=utf8_encodable)
    password = fields.String(load_only=True)
    first_name = fields.String(allow_none=True, validate=[validate.Length(max=100), utf8_encodable])
    last_name = fields.String(allow_none=True, validate=[validate.Length(max=100), utf8_encodable])
    phone_number = fields.String(
        allow_none=True, validate=validate.Regexp(PHONE_RE, error="Please provide a valid phone number")
    )


class AdminUserUpdateSchema(Schema):
    role = fields.Enum(Role)
    is_active = fields.Boolean()
    is_email_verified = fields.Boolean()


class UserListQuerySchema(Schema):
    role = fields.Enum(Role)
    is_active = fields.Boolean()
    include_deleted = fields.Boolean(load_default=False)
    page = fields.Integer(load_default=1, validate=validate.Range(min=1))
    limit = fields.Integer(load_default=20, validate=validate.Range(min=1, max=100))


class UTCDateTime(fields.DateTime):
    """Naive values are UTC (see models.base_model.utcnow); dump them with an explicit offset."""

    def _serialize(self, value, attr, obj, **kwargs):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return super()._serialize(value, attr, obj, **kwargs)


class UserOutSchema(Schema):
    id = fields.String()
    email = fields.String()
    first_name = fields.String(allow_none=True)
    last_name = fields.String(allow_none=True)
    phone_number = fields.String(allow_none=True)
    role = fields.Enum(Role)
    is_active = fields.Boolean()
    is_email_verified = fields.Boolean()
    created_at = UTCDateTime()


class TokensOutSchema(Schema):
    access_token = fields.String()
    refresh_token = fields.String()
    token_type = fields.String()
    expires_in = fields.Integer()
    refresh_expires_at = UTCDateTime()


class AuthOutSchema(Schema):
    user = fields.Nested(UserOutSchema)
    tokens = fields.Nested(TokensOutSchema)
