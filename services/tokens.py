"""
Token helpers:
- Access tokens: short-lived HS256 JWTs via PyJWT, verified without a DB round trip
- Refresh tokens: opaque 256-bit random strings; only their SHA-256 digest is stored
"""
from __future__ import annotations

import hashlib
import re
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Tuple

import jwt

ACCESS_TOKEN_TYPE = "access"
DEFAULT_DURATION_SECONDS = 900

_DURATION_RE = re.compile(r"^(\d+)([smhd])$")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 60 * 60, "d": 60 * 60 * 24}


class InvalidTokenError(Exception):
    """Bad signature, malformed token, wrong type or expired."""


def parse_duration(value) -> int:
    """Turn "15m", "2h", "30s", "7d" into seconds; anything else is 900."""
    if isinstance(value, int):
        return value
    match = _DURATION_RE.match(str(value).strip())
    if not match:
        return DEFAULT_DURATION_SECONDS
    return int(match.group(1)) * _UNIT_SECONDS[match.group(2)]


def hash_refresh_token(token: str) -> str:
    """Deterministic digest used to store and look up refresh tokens."""
    # surrogatepass keeps undecodable input hashable; such a token never matches a stored one
    return hashlib.sha256(token.encode("utf-8", "surrogatepass")).hexdigest()


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID)."""
    return str(uuid.uuid4())


class TokenIssuer:
    def __init__(self, secret: str, algorithm: str = "HS256", issuer: str = "accounts-api"):
        self.secret = secret
        self.algorithm = algorithm
        self.issuer = issuer

    def issue_access_token(self, payload: Dict[str, Any], ttl: timedelta) -> str:
        """
        Sign `payload` (sub, email, role...) with iat/exp/iss/jti/type claims added.
        """
        now = datetime.now(timezone.utc)
        claims = dict(payload)
        claims.update(
            {
                "iss": self.issuer,
                "iat": int(now.timestamp()),
                "exp": int((now + ttl).timestamp()),
                "type": ACCESS_TOKEN_TYPE,
                "jti": generate_jti(),
            }
        )
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def verify_access_token(self, token: str) -> Dict[str, Any]:
        """
        Decode and validate an access token. Raises InvalidTokenError on
        invalid signature, expiry, wrong issuer or wrong token type.
        """
        try:
            decoded = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": ["exp", "sub", "iss"]},
            )
        except jwt.ExpiredSignatureError:
            raise InvalidTokenError("Token expired")
        except jwt.InvalidTokenError as exc:
            raise InvalidTokenError(f"Invalid token: {exc}")

        if decoded.get("type") != ACCESS_TOKEN_TYPE:
            raise InvalidTokenError("Wrong token type")
        return decoded

    @staticmethod
    def issue_refresh_secret() -> Tuple[str, str]:
        """Return (plaintext, sha256 hex). The plaintext leaves the process once."""
        plaintext = secrets.token_hex(32)
        return plaintext, hash_refresh_token(plaintext)
