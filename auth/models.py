"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services
do the work; these only own the shape.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

ROLE_USER = "user"
ROLE_GUIDE = "guide"
ROLE_LEAD_GUIDE = "lead-guide"
ROLE_ADMIN = "admin"

ROLES: frozenset[str] = frozenset({ROLE_USER, ROLE_GUIDE, ROLE_LEAD_GUIDE, ROLE_ADMIN})


@dataclass
class User:
    """A person who can sign in to the tours API.

    id is None until the store assigns one in create_user(); after that it
    never changes. email is always stored lower-cased.

    password_changed_at stays None until the first change or reset. The
    session gate rejects any token issued before it.

    password_reset_token_hash / password_reset_expires describe one
    outstanding forgot-password secret. They are written and cleared as a
    pair; the raw secret itself is never stored.
    """

    name: str
    email: str
    hashed_password: str
    role: str = ROLE_USER
    id: str | None = None
    password_changed_at: datetime | None = None
    password_reset_token_hash: str | None = None
    password_reset_expires: datetime | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a session token."""

    subject: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class ResetToken:
    """A freshly generated forgot-password secret.

    secret goes to the user by email and is then forgotten. digest and
    expires_at are what gets persisted on the User.
    """

    secret: str
    digest: str
    expires_at: datetime


@dataclass(frozen=True)
class AuthResult:
    """Outcome of every flow that ends with the caller signed in."""

    user: User
    token: str
