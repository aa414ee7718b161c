"""
auth/errors.py -- Failure taxonomy for the credential and session core.

Every operation in auth/ either returns its result or raises one of these.
Each class carries the HTTP status and machine code the boundary layer
(api/main.py) uses to build the error envelope, so auth/ itself never touches
a response object when something goes wrong.

The message on each instance is safe to show to the caller. Anything that is
not (driver errors, SMTP transcripts) goes to the log, not into the message.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from enum import Enum


class AuthError(Exception):
    """Base class. Subclasses override status_code, code and default_message."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "Something went wrong."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def envelope_status(self) -> str:
        """"fail" for client errors, "error" for server errors."""
        return "fail" if 400 <= self.status_code < 500 else "error"


class ValidationError(AuthError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid input data."


class InvalidOrExpired(ValidationError):
    code = "invalid_or_expired"
    default_message = "Token is invalid or has expired."


class Unauthorized(AuthError):
    status_code = 401
    code = "unauthorized"
    default_message = "You are not logged in. Please log in to get access."


class TokenFailure(str, Enum):
    MALFORMED = "malformed"
    SIGNATURE_INVALID = "signature_invalid"
    EXPIRED = "expired"


_TOKEN_MESSAGES = {
    TokenFailure.MALFORMED: "Invalid token. Please log in again.",
    TokenFailure.SIGNATURE_INVALID: "Invalid token. Please log in again.",
    TokenFailure.EXPIRED: "Your token has expired. Please log in again.",
}


class TokenError(Unauthorized):
    """A session token could not be verified. kind says why."""

    code = "invalid_token"

    def __init__(self, kind: TokenFailure) -> None:
        self.kind = kind
        super().__init__(_TOKEN_MESSAGES[kind])


class Forbidden(AuthError):
    status_code = 403
    code = "forbidden"
    default_message = "You do not have permission to perform this action."


class NotFound(AuthError):
    status_code = 404
    code = "not_found"
    default_message = "Not found."


class Conflict(AuthError):
    status_code = 409
    code = "conflict"
    default_message = "A user with that email address already exists."


class DeliveryError(AuthError):
    code = "delivery_failed"
    default_message = "There was an error sending the email. Try again later."
