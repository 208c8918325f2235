"""Password hashing for reader accounts: salted PBKDF2-HMAC-SHA256."""

from __future__ import annotations

import hashlib
import hmac
import secrets

SALT_BYTES = 16
ITERATIONS = 100_000


def new_salt() -> bytes:
    return secrets.token_bytes(SALT_BYTES)


def derive_password_hash(secret: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", secret.encode("utf-8"), salt, ITERATIONS)


def verify_password(secret: str, salt: bytes, expected: bytes) -> bool:
    """Constant-time comparison of the derived hash against the stored one."""
    return hmac.compare_digest(derive_password_hash(secret, salt), expected)
