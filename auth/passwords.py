"""
auth/passwords.py -- Password hashing and strength validation.

Passwords: bcrypt directly, not through passlib. passlib's internal wrap-bug
detection builds a password longer than 72 bytes, which bcrypt 4.x rejects, so
the wrapper buys nothing here.

Every call to hash() draws a fresh salt from bcrypt.gensalt(), so hashing the
same password twice yields two different digests. The cost factor is a policy
constant; the constructor override exists so the test suite can run at the
bcrypt minimum.

bcrypt only uses the first 72 bytes of its input and bcrypt 5.x raises on
anything longer. Strength validation allows up to 128 characters, so inputs
are cut to 72 bytes before they reach bcrypt, on both the hash and the verify
side.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

import bcrypt

from auth.errors import ValidationError

BCRYPT_ROUNDS = 12
_BCRYPT_MAX_BYTES = 72

MIN_LENGTH = 8
MAX_LENGTH = 128

PASSWORD_REQUIRED = "Password is required"
PASSWORD_TOO_SHORT = f"Password must be at least {MIN_LENGTH} characters long"
PASSWORD_TOO_LONG = f"Password must be less than {MAX_LENGTH} characters long"
PASSWORD_MISSING_LOWERCASE = "Password must contain at least one lowercase letter"
PASSWORD_MISSING_UPPERCASE = "Password must contain at least one uppercase letter"
PASSWORD_MISSING_NUMBER = "Password must contain at least one number"
PASSWORD_MISSING_SPECIAL = "Password must contain at least one special character"

_LOWERCASE = re.compile(r"[a-z]")
_UPPERCASE = re.compile(r"[A-Z]")
_DIGIT = re.compile(r"\d")
_SPECIAL = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")


@dataclass(frozen=True)
class PasswordStrength:
    is_valid: bool
    errors: list[str] = field(default_factory=list)


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class PasswordHasher:
    def __init__(self, rounds: int = BCRYPT_ROUNDS) -> None:
        self.rounds = rounds

    def hash(self, password: Optional[str]) -> str:
        """Return a salted bcrypt digest. Raises ValidationError for a blank password."""
        if not password or not password.strip():
            raise ValidationError(PASSWORD_REQUIRED)
        return bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, password: Optional[str], digest: Optional[str]) -> bool:
        """Constant-time comparison against a bcrypt digest. Never raises."""
        if not password or not digest:
            return False
        try:
            return bcrypt.checkpw(_encode(password), digest.encode("utf-8"))
        except (ValueError, TypeError):
            return False

    @staticmethod
    def validate_strength(password: Optional[str]) -> PasswordStrength:
        """Check every strength rule and report all violations in a fixed order.

        A blank password short-circuits with the single "required" error; every
        other rule is evaluated independently so the caller sees the full list.
        """
        if not password or not password.strip():
            return PasswordStrength(is_valid=False, errors=[PASSWORD_REQUIRED])

        errors: list[str] = []
        if len(password) < MIN_LENGTH:
            errors.append(PASSWORD_TOO_SHORT)
        if len(password) > MAX_LENGTH:
            errors.append(PASSWORD_TOO_LONG)
        if not _LOWERCASE.search(password):
            errors.append(PASSWORD_MISSING_LOWERCASE)
        if not _UPPERCASE.search(password):
            errors.append(PASSWORD_MISSING_UPPERCASE)
        if not _DIGIT.search(password):
            errors.append(PASSWORD_MISSING_NUMBER)
        if not _SPECIAL.search(password):
            errors.append(PASSWORD_MISSING_SPECIAL)
        return PasswordStrength(is_valid=not errors, errors=errors)
