"""
api/routes/v1/users.py -- Signup, login and password endpoints.

Routes (all under /api/v1/users):
  POST  /signup                  -- create account; sets session cookie; 201
  POST  /login                   -- password login; sets session cookie
  GET   /logout                  -- clears the session cookie
  GET   /me                      -- current user (requires auth)
  PATCH /updateMyPassword        -- change password (requires auth); new token
  POST  /forgotPassword          -- email a reset link
  PATCH /resetPassword/{token}   -- set a new password with a reset secret
  GET   /                        -- list users (admin only)

Every handler delegates to CredentialService / SessionGate on app.state and
lets auth.errors.AuthError propagate; api/main.py turns those into the error
envelope. Handlers are plain def because bcrypt is CPU-bound; FastAPI runs
them in its thread pool.

Security:
  Cache-Control: no-store on every response that carries a token.
  The reset secret appears only in the emailed link, never in a response.
  Reset links use PUBLIC_BASE_URL. Without it (never in production) they use
  the request's base URL, whose Host TrustedHostMiddleware has already checked.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import (
    ForgotPasswordRequest,
    LoginRequest,
    MeResponse,
    MessageResponse,
    ResetPasswordRequest,
    SessionResponse,
    SignupRequest,
    UpdatePasswordRequest,
    UserListResponse,
)
from auth.dependencies import get_current_user, restrict_to
from auth.envelope import clear_session_cookie, sanitize_user, session_payload, set_session_cookie
from auth.models import ROLE_ADMIN, AuthResult, User
from auth.service import RESET_EMAIL_SENT, CredentialService
from auth.store import UserStore

# Auth policy:
# - POST  /users/signup, /login, /forgotPassword, PATCH /resetPassword: public
# - GET   /users/logout: public -- clearing a cookie needs no prior auth
# - GET   /users/me, PATCH /users/updateMyPassword: requires auth (get_current_user)
# - GET   /users: requires admin (restrict_to(ADMIN_ONLY))
ADMIN_ONLY = frozenset({ROLE_ADMIN})

router = APIRouter(prefix="/users")


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/signup", response_model=SessionResponse, status_code=201)
def signup(request: Request, body: SignupRequest) -> JSONResponse:
    service: CredentialService = request.app.state.credentials
    result = service.signup(body.name, body.email, body.password, body.password_confirm)
    return _send_session(request, result, status_code=201)


@router.post("/login", response_model=SessionResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    Unknown email and wrong password produce the same 401 and message.
    """
    service: CredentialService = request.app.state.credentials
    result = service.login(body.email, body.password)
    return _send_session(request, result)


@router.get("/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """Clear the session cookie. Bearer-token clients just drop their token."""
    resp = JSONResponse(content=MessageResponse().model_dump(exclude_none=True))
    clear_session_cookie(resp, request.app.state.settings)
    return resp


@router.post("/forgotPassword", response_model=MessageResponse)
def forgot_password(request: Request, body: ForgotPasswordRequest) -> MessageResponse:
    service: CredentialService = request.app.state.credentials
    base_url = request.app.state.settings.public_base_url or str(request.base_url)
    base_url = base_url.rstrip("/")

    def build_reset_url(secret: str) -> str:
        return f"{base_url}{request.app.url_path_for('reset_password', token=secret)}"

    service.forgot_password(body.email, build_reset_url)
    return MessageResponse(message=RESET_EMAIL_SENT)


@router.patch("/resetPassword/{token}", response_model=SessionResponse)
def reset_password(request: Request, token: str, body: ResetPasswordRequest) -> JSONResponse:
    service: CredentialService = request.app.state.credentials
    result = service.reset_password(token, body.password, body.password_confirm)
    return _send_session(request, result)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/me", response_model=MeResponse)
def me(current_user: User = Depends(get_current_user)) -> dict:
    return {"status": "success", "data": {"user": sanitize_user(current_user)}}


@router.patch("/updateMyPassword", response_model=SessionResponse)
def update_my_password(
    request: Request,
    body: UpdatePasswordRequest,
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    """Change the signed-in user's password and hand back a replacement token.

    Tokens issued before this call stop working, including the one used to
    make it.
    """
    service: CredentialService = request.app.state.credentials
    result = service.change_password(
        current_user.id,
        body.password_current,
        body.password,
        body.password_confirm,
    )
    return _send_session(request, result)


# ---------------------------------------------------------------------------
# Admin endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=UserListResponse)
def list_users(request: Request, current_user: User = Depends(restrict_to(ADMIN_ONLY))) -> dict:
    store: UserStore = request.app.state.user_store
    users = [sanitize_user(u) for u in store.list_users()]
    return {"status": "success", "results": len(users), "data": {"users": users}}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _send_session(request: Request, result: AuthResult, status_code: int = 200) -> JSONResponse:
    service: CredentialService = request.app.state.credentials
    resp = JSONResponse(status_code=status_code, content=session_payload(result.user, result.token))
    set_session_cookie(resp, result.token, request.app.state.settings, service.clock())
    resp.headers["Cache-Control"] = "no-store"
    return resp
