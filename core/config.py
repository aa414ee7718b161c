"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Tourguard happen here. No module should
call os.getenv() or os.environ.get() directly. The process entry points
(asgi.py, main.py CLI) call get_settings() once and pass the
resulting Settings object into every service constructor. Request-handling
code never looks configuration up on its own.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Used for the DEBUG-conditional SECRET_KEY
      policy: dev mode generates a key with a warning, production refuses to
      start without one.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. JWT signing and the
  reset-token HMAC both rely on key entropy.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("tourguard.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (given DEBUG=true or an explicit
    secret_key). The model_validator enforces production-safety rules.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    environment: Literal["development", "production", "test"] = "development"
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = "sqlite:///tourguard_auth.db"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    # Host header allow-list for TrustedHostMiddleware. Reset links may be
    # built from the request's host, so a forged Host must never get through.
    allowed_hosts: list[str] = Field(default_factory=lambda: ["localhost", "127.0.0.1", "*.localhost"])

    # ------------------------------------------------------------------
    # Session tokens and cookie
    # ------------------------------------------------------------------

    token_expire_seconds: int = Field(default=7 * 24 * 3600, gt=0)
    cookie_expire_days: int = Field(default=7, gt=0)
    session_cookie_name: str = "session-token"
    # Forces the Secure flag outside production (e.g. a TLS staging box).
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Passwords and reset
    # ------------------------------------------------------------------

    # bcrypt accepts 4..31. Tests drop this to 4 to keep the suite fast.
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    reset_token_expire_minutes: int = Field(default=10, gt=0)
    # Keeps the historical 404 on unknown forgot-password emails. Set to false
    # to answer with the same success message whether or not the account exists.
    reveal_unknown_reset_email: bool = True
    # Base for reset links. Empty means "derive from the incoming request",
    # which is only allowed outside production.
    public_base_url: str = ""

    # ------------------------------------------------------------------
    # Outbound mail (empty SMTP_HOST = log messages instead of sending)
    # ------------------------------------------------------------------

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_starttls: bool = True
    smtp_timeout_seconds: float = 10.0
    mail_from: str = "Tourguard <no-reply@tourguard.local>"

    # ------------------------------------------------------------------
    # Derived
    # ------------------------------------------------------------------

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def cookie_secure(self) -> bool:
        return self.is_production or self.secure_cookies

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.

        Production also needs PUBLIC_BASE_URL so reset links never depend
        on the Host header of the request that asked for them.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        if self.is_production and self.debug:
            raise ValueError("DEBUG must be false when ENVIRONMENT=production.")
        if self.is_production and not self.public_base_url:
            raise ValueError("PUBLIC_BASE_URL is required when ENVIRONMENT=production.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Call this from process entry points only, then hand the object to the
    services that need it.

    In tests: construct Settings(...) directly, or call
    get_settings.cache_clear() between test cases that change the environment.
    """
    return Settings()
