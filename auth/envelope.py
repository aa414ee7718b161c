"""
auth/envelope.py -- Outbound representation of a signed-in session.

sanitize_user() is the only way a User leaves the system: it drops the
password hash and both reset fields. session_payload() wraps the token and
sanitized user in the success envelope; set_session_cookie() writes the same
token as a cookie so browser clients need not store it themselves.

Cookie flags:
  httponly=True   JS cannot read the cookie (XSS mitigation).
  samesite="lax"  not sent on cross-site POST/PATCH (CSRF mitigation).
  secure          only over HTTPS; on in production or with SECURE_COOKIES=true.
  expires         now + COOKIE_EXPIRE_DAYS.

The response argument is any Starlette Response (duck-typed on set_cookie /
delete_cookie) so this module does not import the web framework.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from auth.models import User
from core.config import Settings


def sanitize_user(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "passwordChangedAt": user.password_changed_at.isoformat() if user.password_changed_at else None,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
    }


def session_payload(user: User, token: str) -> dict:
    return {
        "status": "success",
        "token": token,
        "data": {"user": sanitize_user(user)},
    }


def set_session_cookie(response, token: str, settings: Settings, now: datetime) -> None:
    expires = now + timedelta(days=settings.cookie_expire_days)
    response.set_cookie(
        settings.session_cookie_name,
        value=token,
        expires=expires,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )


def clear_session_cookie(response, settings: Settings) -> None:
    response.delete_cookie(
        settings.session_cookie_name,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )
