"""Salted SHA-256 password digests.

Stored passwords are ``sha256(salt + password)`` as lowercase hex.
"""

import hashlib
import secrets


def generate_salt() -> str:
    """Generate a random salt (32 hex chars)."""
    return secrets.token_hex(16)


def hash_password(salt: str, password: str) -> str:
    """Digest ``salt + password``."""
    return hashlib.sha256((salt + password).encode("utf-8")).hexdigest()


def verify_password(password: str, salt: str, stored: str) -> bool:
    """Compare a candidate password against a stored digest in constant time."""
    return secrets.compare_digest(hash_password(salt, password).encode(), stored.encode())
