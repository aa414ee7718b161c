"""
auth/session.py -- Per-request token validation and role checks.

SessionGate.authenticate() walks one request's token through:

    no token -> token present -> decoded -> user resolved -> fresh -> authenticated

and raises Unauthorized at the first step that fails. It holds no per-request
state, so one instance serves every request concurrently.

check_role() is the authorization half: a pure set-membership test on an
already authenticated user.

FastAPI wiring (header/cookie extraction, request.state) lives in
auth/dependencies.py so this module stays framework-free.
"""

from __future__ import annotations

import logging

from auth.errors import Forbidden, Unauthorized
from auth.models import TokenClaims, User
from auth.store import UserRepository
from auth.tokens import TokenCodec

logger = logging.getLogger("tourguard.auth")

NOT_LOGGED_IN = "You are not logged in. Please log in to get access."
USER_GONE = "The user belonging to this token no longer exists."
PASSWORD_CHANGED = "Password was changed recently. Please log in again."


def extract_bearer(authorization: str | None) -> str | None:
    """Return the token from an "Authorization: Bearer <token>" header value, or None."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


def changed_password_after(user: User, claims: TokenClaims) -> bool:
    """True if the user's password changed after the token was issued."""
    return user.password_changed_at is not None and user.password_changed_at > claims.issued_at


class SessionGate:
    def __init__(self, codec: TokenCodec, store: UserRepository) -> None:
        self.codec = codec
        self.store = store

    def authenticate(self, token: str | None) -> User:
        if not token:
            raise Unauthorized(NOT_LOGGED_IN)

        # TokenError is an Unauthorized; let it through with its own message.
        claims = self.codec.verify(token)

        user = self.store.get_by_id(claims.subject)
        if user is None:
            logger.info("Rejected token for missing user %s", claims.subject)
            raise Unauthorized(USER_GONE)

        if changed_password_after(user, claims):
            logger.info("Rejected stale token for user %s", user.id)
            raise Unauthorized(PASSWORD_CHANGED)

        return user


def check_role(user: User, allowed_roles: frozenset[str]) -> User:
    """Return user unchanged if its role is in allowed_roles, else raise Forbidden."""
    if user.role not in allowed_roles:
        raise Forbidden()
    return user
