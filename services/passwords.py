"""
Argon2 password hashing via argon2-cffi.

argon2's verify() compares in constant time. verify_dummy() lets callers
pay the same cost when there is no stored hash to check against, so an
unknown email takes as long as a wrong password.
"""
from __future__ import annotations

from argon2 import PasswordHasher as _Argon2Hasher
from argon2.exceptions import InvalidHashError, VerificationError


class PasswordHasher:
    def __init__(self, time_cost: int = 3, memory_cost: int = 65536):
        self._ph = _Argon2Hasher(time_cost=time_cost, memory_cost=memory_cost)
        self._dummy_hash = self._ph.hash("timing-equalization-dummy")

    def hash(self, password: str) -> str:
        """Hash a plaintext password using Argon2id"""
        return self._ph.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a plaintext password against a stored argon2 hash"""
        try:
            return self._ph.verify(password_hash, password)
        except (VerificationError, InvalidHashError):
            # VerifyMismatchError is a VerificationError
            return False
        except UnicodeEncodeError:
            # a str argon2 cannot encode never matches a stored hash
            return False

    def verify_dummy(self, password: str) -> None:
        self.verify(password, self._dummy_hash)
