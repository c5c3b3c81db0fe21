"""Password hashing (argon2id) and strength rules for staff-created accounts."""

from __future__ import annotations

import argon2

_hasher = argon2.PasswordHasher(
    time_cost=2,
    memory_cost=65536,  # 64 MB
    parallelism=1,
    hash_len=32,
    salt_len=16,
    type=argon2.Type.ID,
)

MIN_LENGTH = 8
MAX_LENGTH = 128

_RULES: list[tuple[str, str]] = [
    ("upper", "Password must contain at least one uppercase letter"),
    ("lower", "Password must contain at least one lowercase letter"),
    ("digit", "Password must contain at least one digit"),
]


class PasswordStrengthError(ValueError):
    """Raised when a password does not meet strength requirements."""


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Return True if the password matches. Never raises on mismatch or a malformed hash."""
    try:
        return _hasher.verify(password_hash, password)
    except (argon2.exceptions.VerifyMismatchError, argon2.exceptions.InvalidHashError):
        return False


def check_needs_rehash(password_hash: str) -> bool:
    return _hasher.check_needs_rehash(password_hash)


def validate_password_strength(password: str) -> None:
    """Raise PasswordStrengthError unless the password is 8-128 chars with mixed case and a digit."""
    if not password or not password.strip():
        msg = "Password cannot be empty"
        raise PasswordStrengthError(msg)
    if not MIN_LENGTH <= len(password) <= MAX_LENGTH:
        msg = f"Password must be between {MIN_LENGTH} and {MAX_LENGTH} characters"
        raise PasswordStrengthError(msg)
    checks = {
        "upper": any(c.isupper() for c in password),
        "lower": any(c.islower() for c in password),
        "digit": any(c.isdigit() for c in password),
    }
    for rule, message in _RULES:
        if not checks[rule]:
            raise PasswordStrengthError(message)
