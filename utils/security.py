"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JTI and refresh token value generation
"""
from __future__ import annotations

import secrets
import uuid

from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, VerificationError, InvalidHashError

# 64 random bytes -> 86 url-safe characters
REFRESH_TOKEN_BYTES = 64

ph = PasswordHasher()


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def generate_refresh_token_value() -> str:
    return secrets.token_urlsafe(REFRESH_TOKEN_BYTES)
