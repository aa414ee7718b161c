"""
auth/tokens.py -- Session token (JWT) issue and verify.

Security design decisions:
  python-jose with HS256. The signing key and TTL come from the Settings
  object handed to TokenCodec at startup, never from request data.

  Claims are the registered JWT names: sub (user id), iat, exp. iat and exp
  are NumericDates with sub-second precision. The session gate compares iat
  against User.password_changed_at, and whole seconds would let a token
  minted in the same second as a password change survive it.

  Expiry is checked here against the injected clock rather than by jose,
  so verify() is a pure function of (token, key, clock) and tests can step
  past the TTL without sleeping.

  verify() distinguishes three failures (see auth.errors.TokenFailure):
    MALFORMED          -- not a JWS, undecodable, or claims of the wrong shape
    SIGNATURE_INVALID  -- tampered, wrong key, or unexpected algorithm
    EXPIRED            -- well-formed and authentic but past exp

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from jose.exceptions import JWTClaimsError

from auth.errors import TokenError, TokenFailure
from auth.models import TokenClaims
from core.clock import Clock, utc_now
from core.config import Settings

ALGORITHM = "HS256"


class TokenCodec:
    """Issue and verify signed, expiring session tokens."""

    def __init__(self, settings: Settings, clock: Clock = utc_now) -> None:
        self._secret_key = settings.secret_key
        self._ttl = timedelta(seconds=settings.token_expire_seconds)
        self._clock = clock

    def issue(self, user_id: str, issued_at: datetime | None = None) -> str:
        """Encode a signed JWT for user_id, valid for the configured TTL from issued_at."""
        issued_at = issued_at or self._clock()
        payload = {
            "sub": user_id,
            "iat": issued_at.timestamp(),
            "exp": (issued_at + self._ttl).timestamp(),
        }
        return jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        """Decode and verify a JWT. Raises TokenError on any failure."""
        try:
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise TokenError(TokenFailure.MALFORMED) from exc

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTClaimsError as exc:
            raise TokenError(TokenFailure.MALFORMED) from exc
        except JWTError as exc:
            raise TokenError(TokenFailure.SIGNATURE_INVALID) from exc

        claims = _claims_from_payload(payload)
        if self._clock() >= claims.expires_at:
            raise TokenError(TokenFailure.EXPIRED)
        return claims


def _claims_from_payload(payload: dict) -> TokenClaims:
    subject = payload.get("sub")
    iat = payload.get("iat")
    exp = payload.get("exp")
    if not isinstance(subject, str) or not subject:
        raise TokenError(TokenFailure.MALFORMED)
    # bool is an int subclass; a literal true/false is not a timestamp.
    for value in (iat, exp):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TokenError(TokenFailure.MALFORMED)
    return TokenClaims(
        subject=subject,
        issued_at=datetime.fromtimestamp(iat, tz=timezone.utc),
        expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
    )
