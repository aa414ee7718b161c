"""
auth/reset_tokens.py -- Forgot-password secrets.

secrets.token_hex(32) gives 256 bits of entropy, so brute force is not a
concern and bcrypt's intentional slowness is unnecessary. What we store is
HMAC-SHA256(SECRET_KEY, secret): deterministic, so the store can look the
user up by digest in one indexed query, and useless to anyone who reads the
database without also holding SECRET_KEY.

The raw secret is returned once, mailed to the user, and never persisted.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta

from auth.models import ResetToken
from core.config import Settings


class ResetTokenGenerator:
    def __init__(self, settings: Settings) -> None:
        self._key = settings.secret_key.encode("utf-8")
        self.ttl = timedelta(minutes=settings.reset_token_expire_minutes)

    def generate(self, now: datetime) -> ResetToken:
        """Return a new secret, its digest, and when it stops being accepted."""
        secret = secrets.token_hex(32)
        return ResetToken(secret=secret, digest=self.digest(secret), expires_at=now + self.ttl)

    def digest(self, secret: str) -> str:
        return hmac.new(self._key, secret.encode("utf-8"), hashlib.sha256).hexdigest()

    def matches_digest(self, secret: str, digest: str | None) -> bool:
        if not secret or not digest:
            return False
        return hmac.compare_digest(self.digest(secret), digest)
