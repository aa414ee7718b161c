"""
API request and response models for the Tourguard users endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Request fields use the camelCase names clients already send
(passwordConfirm, passwordCurrent) via aliases. Most fields are optional at
this layer on purpose: CredentialService owns the rules (required fields,
password length, matching confirmation) and produces the user-facing
message. Pydantic only caps sizes and types here.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

_SHORT = 255
# Above bcrypt's 72-byte limit so the service, not pydantic, reports it.
_PASSWORD = 128


class _Request(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=False, populate_by_name=True, extra="ignore")


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignupRequest(_Request):
    name: Optional[str] = Field(default=None, max_length=_SHORT)
    email: Optional[str] = Field(default=None, max_length=320)
    password: Optional[str] = Field(default=None, max_length=_PASSWORD)
    password_confirm: Optional[str] = Field(default=None, alias="passwordConfirm", max_length=_PASSWORD)


class LoginRequest(_Request):
    email: Optional[str] = Field(default=None, max_length=320)
    password: Optional[str] = Field(default=None, max_length=_PASSWORD)


class UpdatePasswordRequest(_Request):
    password_current: Optional[str] = Field(default=None, alias="passwordCurrent", max_length=_PASSWORD)
    password: Optional[str] = Field(default=None, max_length=_PASSWORD)
    password_confirm: Optional[str] = Field(default=None, alias="passwordConfirm", max_length=_PASSWORD)


class ForgotPasswordRequest(_Request):
    email: Optional[str] = Field(default=None, max_length=320)


class ResetPasswordRequest(_Request):
    password: Optional[str] = Field(default=None, max_length=_PASSWORD)
    password_confirm: Optional[str] = Field(default=None, alias="passwordConfirm", max_length=_PASSWORD)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserOut(BaseModel):
    """Sanitized user. Never carries the password hash or reset fields."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str
    role: str
    passwordChangedAt: Optional[str] = None
    createdAt: Optional[str] = None


class UserData(BaseModel):
    user: UserOut


class SessionResponse(BaseModel):
    """Body of signup, login, updateMyPassword and resetPassword responses."""

    status: str = "success"
    token: str
    data: UserData


class MeResponse(BaseModel):
    status: str = "success"
    data: UserData


class UserListData(BaseModel):
    users: list[UserOut]


class UserListResponse(BaseModel):
    status: str = "success"
    results: int
    data: UserListData


class MessageResponse(BaseModel):
    status: str = "success"
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    """Envelope returned on every 4xx/5xx response.

    status is "fail" for client errors and "error" for server errors.
    detail is only filled outside production.
    """

    model_config = ConfigDict(frozen=True)

    status: str
    message: str
    code: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
