"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Token sources, checked in priority order:
  1. Authorization: Bearer <token> header -- API clients.
  2. Session cookie (Settings.session_cookie_name) -- browsers, set by the
     session envelope on login/signup.

Both converge on SessionGate.authenticate(), which is wired onto
app.state.session_gate at startup.

get_current_user() raises Unauthorized (401) if the request is not
authenticated and stores the user on request.state.user for downstream code.
restrict_to() builds a dependency that additionally raises Forbidden (403)
when the user's role is not in the given set.

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from fastapi import Depends, Request

from auth.models import ROLES, User
from auth.session import SessionGate, check_role, extract_bearer


def get_current_user(request: Request) -> User:
    """Require authentication.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    gate: SessionGate = request.app.state.session_gate
    token = extract_bearer(request.headers.get("Authorization"))
    if token is None:
        token = request.cookies.get(request.app.state.settings.session_cookie_name) or None
    user = gate.authenticate(token)
    request.state.user = user
    return user


def restrict_to(allowed_roles: Iterable[str]) -> Callable[..., User]:
    """Return a dependency that admits only users whose role is in allowed_roles.

    Declare the role set next to the route:
        ADMIN_ONLY = frozenset({"admin"})

        @router.get("/", dependencies=[Depends(restrict_to(ADMIN_ONLY))])
    """
    allowed = frozenset(allowed_roles)
    unknown = allowed - ROLES
    if unknown:
        raise ValueError(f"Unknown roles: {sorted(unknown)!r}")

    def dependency(user: User = Depends(get_current_user)) -> User:
        return check_role(user, allowed)

    return dependency
