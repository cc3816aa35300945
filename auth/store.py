"""
auth/store.py -- SQLAlchemy Core persistence layer for users.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Services depend on the UserRepository protocol, not on this
class, so tests can hand in any object with the same five methods.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Email uniqueness is enforced by a UNIQUE constraint; the IntegrityError a
  duplicate insert raises is translated to Conflict here so callers never see
  driver exceptions.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional, Protocol

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import MESSAGES, Conflict, NotFound
from auth.models import User

# ---------------------------------------------------------------------------
# Repository contract
# ---------------------------------------------------------------------------


class UserRepository(Protocol):
    def find_by_email(self, email: str) -> Optional[User]: ...

    def find_by_id(self, user_id: str) -> Optional[User]: ...

    def create(self, email: str, password_hash: str) -> User: ...

    def update(self, user_id: str, **fields: str) -> User: ...

    def delete(self, user_id: str) -> User: ...


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_UPDATABLE_FIELDS = {"email", "password_hash"}


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """SQL-backed UserRepository.

    Usage:
        store = UserStore("sqlite:///:memory:")
        user = store.create("alice@example.com", hasher.hash("S3cret!pw"))
        store.find_by_email("alice@example.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def find_by_email(self, email: str) -> Optional[User]:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: str) -> Optional[User]:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def create(self, email: str, password_hash: str) -> User:
        """Insert a new user. Raises Conflict if the email is already registered."""
        now = _now_iso()
        user = User(id=str(uuid.uuid4()), email=email, password_hash=password_hash, created_at=now, updated_at=now)
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _users.insert().values(
                        id=user.id,
                        email=user.email,
                        password_hash=user.password_hash,
                        created_at=user.created_at,
                        updated_at=user.updated_at,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise Conflict(MESSAGES["USER_EXISTS"]) from exc
        return user

    def update(self, user_id: str, **fields: str) -> User:
        """Update email and/or password_hash, stamping updated_at.

        Raises NotFound if user_id does not exist, Conflict if the new email
        belongs to someone else, ValueError for fields that are not updatable.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        values = dict(fields, updated_at=_now_iso())
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_users.update().where(_users.c.id == user_id).values(**values))
                conn.commit()
        except IntegrityError as exc:
            raise Conflict(MESSAGES["USER_EXISTS"]) from exc
        if result.rowcount == 0:
            raise NotFound(MESSAGES["USER_NOT_FOUND"])
        updated = self.find_by_id(user_id)
        if updated is None:
            raise NotFound(MESSAGES["USER_NOT_FOUND"])
        return updated

    def delete(self, user_id: str) -> User:
        """Permanently delete a user and return the removed record. Raises NotFound if missing."""
        user = self.find_by_id(user_id)
        if user is None:
            raise NotFound(MESSAGES["USER_NOT_FOUND"])
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        if result.rowcount == 0:
            raise NotFound(MESSAGES["USER_NOT_FOUND"])
        return user

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
