"""
FILE: src/core/security.py
Credential verification — argon2 password hashing and password policy
"""

import secrets
import string
from typing import Optional

from passlib.context import CryptContext

from src.core.config import settings

pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
    argon2__rounds=settings.ARGON2_TIME_COST,
    argon2__memory_cost=settings.ARGON2_MEMORY_COST,
    argon2__parallelism=settings.ARGON2_PARALLELISM,
)

PASSWORD_MIN_LENGTH = 8
PASSWORD_SPECIAL_CHARS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"

_DECOY_PASSWORD = "decoy-password-never-matches"
_decoy_hash: Optional[str] = None


class CorruptHashError(Exception):
    """The stored credential hash could not be parsed."""


# Password Hashing

def hash_password(plain_password: str) -> str:
    """
    Hash a password with argon2id.
    The salt is generated per hash and embedded in the encoded result,
    so no separate salt column is needed.
    """
    return pwd_context.hash(plain_password)


def dummy_verify(plain_password: str) -> None:
    """
    Spend one full verification against a decoy hash.
    Called on paths where no real hash exists (unknown email) so the
    response takes as long as a wrong-password check.
    """
    global _decoy_hash
    if _decoy_hash is None:
        _decoy_hash = pwd_context.hash(_DECOY_PASSWORD)
    pwd_context.verify(plain_password, _decoy_hash)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against its stored argon2 hash.
    Returns False on a wrong password; raises CorruptHashError when the
    stored hash is unparseable.
    """
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        dummy_verify(plain_password)
        raise CorruptHashError(str(e)) from e


def needs_rehash(hashed_password: str) -> bool:
    """True when the hash was produced with weaker cost settings than configured."""
    try:
        return pwd_context.needs_update(hashed_password)
    except (ValueError, TypeError):
        return False


# Password policy

def check_password_policy(value: str) -> str:
    """
    Enforce the password rules used at creation and on reset.
    Raises ValueError naming the first rule that fails.
    """
    if len(value) < PASSWORD_MIN_LENGTH:
        raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    if not any(c.isupper() for c in value):
        raise ValueError("Password must contain an uppercase letter")
    if not any(c.islower() for c in value):
        raise ValueError("Password must contain a lowercase letter")
    if not any(c.isdigit() for c in value):
        raise ValueError("Password must contain a digit")
    if not any(c in PASSWORD_SPECIAL_CHARS for c in value):
        raise ValueError("Password must contain a special character")
    return value


def generate_temp_password(length: int = 12) -> str:
    """Generate a secure temporary password that satisfies the policy."""
    if length < PASSWORD_MIN_LENGTH:
        length = PASSWORD_MIN_LENGTH
    required = [
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.digits),
        secrets.choice("!@#$%^&*"),
    ]
    alphabet = string.ascii_letters + string.digits + "!@#$%^&*"
    rest = [secrets.choice(alphabet) for _ in range(length - len(required))]
    chars = required + rest
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)
