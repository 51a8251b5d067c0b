"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT signing/verification via PyJWT
- JTI generation for token identifiers
"""
from __future__ import annotations

import uuid
from typing import Dict, Any

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, VerifyMismatchError, InvalidHashError


class PasswordVerifier:
    """
    Adaptive salted one-way hashing (argon2id).

    The digest is a PHC string embedding salt and cost parameters, so
    verification never needs anything stored next to it.
    """

    def __init__(self, time_cost: int | None = None, memory_cost: int | None = None,
                 parallelism: int | None = None):
        params = {}
        if time_cost is not None:
            params["time_cost"] = time_cost
        if memory_cost is not None:
            params["memory_cost"] = memory_cost
        if parallelism is not None:
            params["parallelism"] = parallelism
        self._ph = PasswordHasher(**params)

    @classmethod
    def from_mapping(cls, config) -> "PasswordVerifier":
        return cls(
            time_cost=config.get("ARGON2_TIME_COST"),
            memory_cost=config.get("ARGON2_MEMORY_COST"),
            parallelism=config.get("ARGON2_PARALLELISM"),
        )

    def hash(self, password: str) -> str:
        """Hash a plaintext password using Argon2
        """
        return self._ph.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a plaintext password; malformed digests fail closed.
        """
        if not password or not password_hash:
            return False
        try:
            return self._ph.verify(password_hash, password)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            return False


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def encode_token(payload: Dict[str, Any], secret: str, algorithm: str) -> str:
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_signed(token: str, secret: str, algorithm: str) -> Dict[str, Any]:
    """
    Verify the signature and structure of a JWT and return its claims.
    Expiry is NOT checked here; callers compare "exp" against their own clock
    once the signature is known to be good. Raises jwt.InvalidTokenError.
    """
    return jwt.decode(
        token,
        secret,
        algorithms=[algorithm],
        options={
            "verify_exp": False,
            "verify_iat": False,
            "require": ["sub", "exp", "iat", "type", "jti"],
        },
    )
