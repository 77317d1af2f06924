"""
argon2id password hashing and the account password policy.

Stored values are full argon2 encoded strings, so changing the hasher
parameters below only affects new hashes; older ones are upgraded the next
time their owner logs in.
"""

from __future__ import annotations

from collections.abc import Callable

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerifyMismatchError

from vapor.errors import ValidationFailed

MIN_LENGTH = 8
MAX_LENGTH = 128

hasher = PasswordHasher(
    time_cost=2,
    memory_cost=64 * 1024,
    parallelism=1,
    hash_len=32,
    salt_len=16,
    type=Type.ID,
)


class WeakPasswordError(ValidationFailed):
    """Password rejected by the policy."""


_RULES: list[tuple[Callable[[str], bool], str]] = [
    (lambda p: bool(p.strip()), "Password cannot be empty"),
    (lambda p: len(p) >= MIN_LENGTH, f"Password must be at least {MIN_LENGTH} characters"),
    (lambda p: len(p) <= MAX_LENGTH, f"Password must not exceed {MAX_LENGTH} characters"),
    (lambda p: any(c.isupper() for c in p), "Password must contain at least one uppercase letter"),
    (lambda p: any(c.islower() for c in p), "Password must contain at least one lowercase letter"),
    (lambda p: any(c.isdigit() for c in p), "Password must contain at least one digit"),
    (lambda p: not p.isalnum(), "Password must contain at least one special character"),
]


def check_password_policy(password: str) -> None:
    """
    Raises:
        WeakPasswordError: First rule the password breaks.
    """
    for passes, message in _RULES:
        if not passes(password or ""):
            raise WeakPasswordError(message)


def hash_password(password: str) -> str:
    return hasher.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    """False for a mismatch, a malformed hash, or an account without a password."""
    if not password_hash:
        return False
    try:
        return hasher.verify(password_hash, password)
    except (VerifyMismatchError, InvalidHashError):
        return False


def needs_rehash(password_hash: str) -> bool:
    return hasher.check_needs_rehash(password_hash)
