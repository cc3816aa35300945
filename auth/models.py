"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores and
services do the work; these only own shape.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class User:
    """A persisted identity, exactly as the repository returns it.

    password_hash is server-only. Anything that crosses the server boundary
    (API responses, tokens, cookies) goes through sanitize() first.
    """

    id: str
    email: str
    password_hash: str
    created_at: str
    updated_at: str


@dataclass(frozen=True)
class PublicUser:
    """A user record with the password hash removed."""

    id: str
    email: str
    created_at: str
    updated_at: str


@dataclass(frozen=True)
class Identity:
    """The minimal identity carried by tokens and the stored credential."""

    user_id: str
    email: str

    def to_wire(self) -> dict[str, str]:
        return {"userId": self.user_id, "email": self.email}


def sanitize(user: User) -> PublicUser:
    return PublicUser(
        id=user.id,
        email=user.email,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )
