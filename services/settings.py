from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping

from services.tokens import parse_duration


@dataclass(frozen=True)
class AuthSettings:
    """Immutable auth configuration handed to the services at construction."""

    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "accounts-api"
    access_token_ttl: timedelta = timedelta(minutes=15)
    refresh_token_ttl: timedelta = timedelta(days=7)
    max_refresh_tokens_per_user: int = 5
    password_time_cost: int = 3
    password_memory_cost: int = 65536

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "AuthSettings":
        """Build from a Flask config (or any mapping with the same keys)."""
        refresh_days = str(config.get("JWT_REFRESH_EXPIRES_IN", "7")).strip().rstrip("dD")
        max_tokens = int(config.get("MAX_REFRESH_TOKENS_PER_USER", 5))
        if max_tokens < 1:
            raise ValueError("MAX_REFRESH_TOKENS_PER_USER must be at least 1")
        return cls(
            jwt_secret=config["JWT_SECRET"],
            jwt_algorithm=config.get("JWT_ALGORITHM", "HS256"),
            jwt_issuer=config.get("JWT_ISSUER", "accounts-api"),
            access_token_ttl=timedelta(seconds=parse_duration(config.get("JWT_EXPIRES_IN", "15m"))),
            refresh_token_ttl=timedelta(days=int(refresh_days)),
            max_refresh_tokens_per_user=max_tokens,
            password_time_cost=int(config.get("PASSWORD_HASH_TIME_COST", 3)),
            password_memory_cost=int(config.get("PASSWORD_HASH_MEMORY_COST", 65536)),
        )
