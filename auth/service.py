"""
auth/service.py -- Signup, login and the password lifecycle.

CredentialService orchestrates the leaf components (PasswordHasher,
TokenCodec, ResetTokenGenerator) around an injected UserRepository and
EmailSender. Every public method either returns an AuthResult (the user plus
a freshly issued session token) or raises an auth.errors.AuthError subclass.
It never builds HTTP responses; the route layer does that.

Security notes:
  login() runs bcrypt whether or not the email exists and answers both
  failures with the same message, so neither timing nor wording reveals
  which accounts exist.

  Every password mutation stamps password_changed_at with the same instant
  that becomes the new token's iat. SessionGate rejects tokens whose iat is
  earlier, which is what logs out every other holder of an old token.

  forgot_password() writes the reset digest before sending the email. If the
  send fails, the digest and expiry are cleared again before the error is
  raised, so no half-issued reset survives. A failure of that clean-up write
  is logged and does not replace the delivery error.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from email_validator import EmailNotValidError, validate_email

from auth.errors import (
    Conflict,
    DeliveryError,
    InvalidOrExpired,
    NotFound,
    Unauthorized,
    ValidationError,
)
from auth.mailer import EmailSender
from auth.models import ROLE_USER, AuthResult, User
from auth.passwords import MAX_PASSWORD_BYTES, PasswordHasher
from auth.reset_tokens import ResetTokenGenerator
from auth.store import UserRepository, normalize_email
from auth.tokens import TokenCodec
from core.clock import Clock, utc_now
from core.config import Settings

logger = logging.getLogger("tourguard.auth")

MIN_PASSWORD_LENGTH = 8

BAD_CREDENTIALS = "Incorrect email or password."
MISSING_CREDENTIALS = "Please provide email and password."
RESET_EMAIL_SENT = "Password reset link sent to the provided email."


class CredentialService:
    def __init__(
        self,
        settings: Settings,
        store: UserRepository,
        mailer: EmailSender,
        hasher: PasswordHasher | None = None,
        codec: TokenCodec | None = None,
        reset_tokens: ResetTokenGenerator | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.settings = settings
        self.store = store
        self.mailer = mailer
        self.hasher = hasher or PasswordHasher(settings.bcrypt_rounds)
        self.codec = codec or TokenCodec(settings, clock=clock)
        self.reset_tokens = reset_tokens or ResetTokenGenerator(settings)
        self.clock = clock

    # ------------------------------------------------------------------
    # Signup / login
    # ------------------------------------------------------------------

    def signup(self, name: str, email: str, password: str, password_confirm: str) -> AuthResult:
        """Register a new user with role "user" and sign them in.

        Raises ValidationError for missing or malformed fields and Conflict
        if the email is taken. Nothing is written when either is raised.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Please tell us your name.")
        email = check_email(email)
        check_new_password(password, password_confirm)

        if self.store.get_by_email(email) is not None:
            raise Conflict()

        user = self.store.create_user(
            User(
                name=name,
                email=email,
                hashed_password=self.hasher.hash(password),
                role=ROLE_USER,
            )
        )
        logger.info("User %s signed up", user.id)
        return self._sign_in(user)

    def login(self, email: str, password: str) -> AuthResult:
        """Check credentials and issue a token.

        Always runs bcrypt, even for unknown emails, so response time does
        not reveal whether an account exists.
        """
        if not email or not password:
            raise ValidationError(MISSING_CREDENTIALS)

        user = self.store.get_by_email(email)
        if user is None:
            self.hasher.dummy_verify(password)
            raise Unauthorized(BAD_CREDENTIALS)
        if not self.hasher.verify(password, user.hashed_password):
            raise Unauthorized(BAD_CREDENTIALS)
        return self._sign_in(user)

    # ------------------------------------------------------------------
    # Password lifecycle
    # ------------------------------------------------------------------

    def change_password(
        self,
        user_id: str,
        current_password: str,
        new_password: str,
        new_password_confirm: str,
    ) -> AuthResult:
        """Replace the password of a signed-in user and return a new token.

        Every token issued before this call is rejected by the session gate
        afterwards; the one returned here is not.
        """
        user = self.store.get_by_id(user_id)
        if user is None:
            raise Unauthorized("The user belonging to this token no longer exists.")
        if not self.hasher.verify(current_password, user.hashed_password):
            raise Unauthorized("Your current password is wrong.")
        check_new_password(new_password, new_password_confirm)

        now = self.clock()
        user = replace(user, hashed_password=self.hasher.hash(new_password), password_changed_at=now)
        self.store.save(user)
        logger.info("User %s changed their password", user.id)
        return self._sign_in(user, issued_at=now)

    def forgot_password(self, email: str, build_reset_url: Callable[[str], str]) -> None:
        """Email a one-time reset link to the owner of email.

        build_reset_url turns the raw secret into the link the user clicks;
        the route layer knows the public host, the service does not.

        Raises NotFound for an unknown email unless
        Settings.reveal_unknown_reset_email is false, in which case the call
        returns normally and nothing is sent. Raises DeliveryError if the
        email cannot be sent, after undoing the reset fields.
        """
        if not email:
            raise ValidationError("Please provide an email address.")
        user = self.store.get_by_email(email)
        if user is None:
            if self.settings.reveal_unknown_reset_email:
                raise NotFound("There is no user with that email address.")
            logger.info("Password reset requested for an unknown email")
            return

        reset = self.reset_tokens.generate(self.clock())
        user = replace(user, password_reset_token_hash=reset.digest, password_reset_expires=reset.expires_at)
        self.store.save(user)

        minutes = self.settings.reset_token_expire_minutes
        body = (
            "Forgot your password? Submit a PATCH request with your new password and "
            f"passwordConfirm to: {build_reset_url(reset.secret)}\n"
            "If you didn't forget your password, please ignore this email."
        )
        try:
            self.mailer.send(
                to=user.email,
                subject=f"Your password reset token (valid for {minutes} minutes)",
                body=body,
            )
        except Exception as exc:
            logger.error("Password reset email for user %s failed: %s", user.id, exc)
            self._clear_reset(user)
            raise DeliveryError() from exc
        logger.info("Password reset email sent to user %s", user.id)

    def reset_password(self, secret: str, new_password: str, new_password_confirm: str) -> AuthResult:
        """Consume a reset secret, set the new password and sign the user in.

        Raises InvalidOrExpired for an unknown, already used, or expired
        secret. A used secret is unknown because success clears the digest.
        """
        if not secret:
            raise InvalidOrExpired()
        user = self.store.get_by_reset_digest(self.reset_tokens.digest(secret))
        now = self.clock()
        if (
            user is None
            or user.password_reset_expires is None
            or user.password_reset_expires <= now
            or not self.reset_tokens.matches_digest(secret, user.password_reset_token_hash)
        ):
            raise InvalidOrExpired()
        check_new_password(new_password, new_password_confirm)

        user = replace(
            user,
            hashed_password=self.hasher.hash(new_password),
            password_changed_at=now,
            password_reset_token_hash=None,
            password_reset_expires=None,
        )
        self.store.save(user)
        logger.info("User %s reset their password", user.id)
        return self._sign_in(user, issued_at=now)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _sign_in(self, user: User, issued_at: datetime | None = None) -> AuthResult:
        return AuthResult(user=user, token=self.codec.issue(user.id, issued_at or self.clock()))

    def _clear_reset(self, user: User) -> None:
        try:
            self.store.save(replace(user, password_reset_token_hash=None, password_reset_expires=None))
        except Exception:
            logger.exception("Could not clear reset fields for user %s after failed delivery", user.id)


def check_email(email: str) -> str:
    """Return the normalized address, validated after normalization."""
    email = normalize_email(email or "")
    if not email:
        raise ValidationError("Please provide your email.")
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValidationError("Please provide a valid email.") from exc
    return email


def check_new_password(password: str, password_confirm: str) -> None:
    if not password:
        raise ValidationError("Please provide a password.")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password cannot be longer than {MAX_PASSWORD_BYTES} bytes.")
    if password != password_confirm:
        raise ValidationError("Passwords are not the same.")
