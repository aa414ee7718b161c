"""
auth/store.py -- SQLAlchemy Core persistence for users.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Services never touch SQL directly; they depend on the
UserRepository protocol, which UserStore satisfies.

Security:
  All queries use bound parameters. No f-strings in SQL.
  email carries a UNIQUE index; a duplicate insert surfaces as
  auth.errors.Conflict rather than a driver exception.
  password_reset_token_hash is indexed so lookup by digest is one query.

Timestamps are stored as ISO 8601 strings in UTC and mapped back to
tz-aware datetimes.

Concurrency: save() is a single UPDATE ... WHERE id = :id, so each write is
atomic at the row level. No other locking is done here.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Column, Index, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import Conflict
from auth.models import User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("email", String(320), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default="user"),
    Column("password_changed_at", String(40)),
    Column("password_reset_token_hash", String(64)),
    Column("password_reset_expires", String(40)),
    Column("created_at", String(40), nullable=False),
)

Index("ix_users_password_reset_token_hash", _users.c.password_reset_token_hash)


class UserRepository(Protocol):
    """What the credential core needs from user persistence."""

    def create_user(self, user: User) -> User: ...

    def get_by_id(self, user_id: str) -> User | None: ...

    def get_by_email(self, email: str) -> User | None: ...

    def get_by_reset_digest(self, digest: str) -> User | None: ...

    def save(self, user: User) -> None: ...


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///tourguard_auth.db")
        user = store.create_user(User(name="Ann", email="ann@example.com", hashed_password=h))
        same = store.get_by_email("ANN@example.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> User:
        """Insert a new user and return it with id and created_at assigned.

        Raises Conflict if the email is already registered, including the
        case where a concurrent signup won the race after the caller's
        own existence check.
        """
        created = replace(
            user,
            id=uuid.uuid4().hex,
            email=normalize_email(user.email),
            created_at=datetime.now(timezone.utc),
        )
        try:
            with self.engine.connect() as conn:
                conn.execute(_users.insert().values(**_user_to_row(created)))
                conn.commit()
        except IntegrityError as exc:
            raise Conflict() from exc
        return created

    def save(self, user: User) -> None:
        """Persist every mutable field of an existing user in one UPDATE."""
        row = _user_to_row(user)
        del row["id"]
        del row["created_at"]
        try:
            with self.engine.connect() as conn:
                conn.execute(_users.update().where(_users.c.id == user.id).values(**row))
                conn.commit()
        except IntegrityError as exc:
            raise Conflict() from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_by_id(self, user_id: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Case-insensitive: the argument is normalized the same way inserts are."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_reset_digest(self, digest: str) -> User | None:
        """Return the user holding this reset digest. Expiry is the caller's check."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.password_reset_token_hash == digest)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users ordered by email. Admin-only operation."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.email)).fetchall()
        return [_row_to_user(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _user_to_row(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": normalize_email(user.email),
        "hashed_password": user.hashed_password,
        "role": user.role,
        "password_changed_at": _to_iso(user.password_changed_at),
        "password_reset_token_hash": user.password_reset_token_hash,
        "password_reset_expires": _to_iso(user.password_reset_expires),
        "created_at": _to_iso(user.created_at),
    }


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        hashed_password=row.hashed_password,
        role=row.role,
        password_changed_at=_from_iso(row.password_changed_at),
        password_reset_token_hash=row.password_reset_token_hash,
        password_reset_expires=_from_iso(row.password_reset_expires),
        created_at=_from_iso(row.created_at),
    )
