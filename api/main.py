"""
api/main.py -- FastAPI application factory for Tourguard.

Run with:      uvicorn asgi:app --reload

create_app(settings) builds one application from one Settings object. Nothing
here calls get_settings(); asgi.py does that once and passes the result in.

Middleware stack (outermost to innermost):
  1. log_requests        -- one log line per request with latency
  2. TrustedHostMiddleware -- rejects Host headers not in ALLOWED_HOSTS
  3. CORSMiddleware      -- adds CORS headers for allowed browser origins

Lifespan builds everything the routes need exactly once:
  Settings -> UserStore -> TokenCodec -> CredentialService / SessionGate
and parks them on app.state. Route handlers and auth dependencies read from
app.state.

Error boundary: every auth.errors.AuthError raised below a route becomes
{"status": "fail"|"error", "code", "message"} with the error's status code.
Unexpected exceptions are logged with a traceback and answered with a generic
500; outside production the exception text is added as "detail".
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.trustedhost import TrustedHostMiddleware

from api.models import ErrorResponse, HealthResponse
from api.routes.v1.users import router as users_router
from auth.errors import AuthError
from auth.mailer import EmailSender, build_email_sender
from auth.service import CredentialService
from auth.session import SessionGate
from auth.store import UserRepository, UserStore
from auth.tokens import TokenCodec
from core.clock import Clock, utc_now
from core.config import Settings

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("tourguard.api")

# Logged in place of the path when no route matched. Raw paths can carry
# reset secrets, so only route templates are ever written out.
UNMATCHED_PATH = "<unmatched>"


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


def wire_services(
    app: FastAPI,
    settings: Settings,
    store: UserRepository,
    mailer: EmailSender,
    clock: Clock = utc_now,
) -> None:
    """Build the auth services from one Settings object and attach them to app.state.

    The codec is shared so CredentialService and SessionGate agree on key,
    TTL and clock.
    """
    codec = TokenCodec(settings, clock=clock)
    app.state.settings = settings
    app.state.user_store = store
    app.state.credentials = CredentialService(settings, store, mailer, codec=codec, clock=clock)
    app.state.session_gate = SessionGate(codec, store)


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Settings,
    store: UserRepository | None = None,
    mailer: EmailSender | None = None,
    clock: Clock = utc_now,
) -> FastAPI:
    """Build the Tourguard app.

    store and mailer default to a UserStore on settings.database_url and the
    sender build_email_sender() picks. Tests pass their own doubles. A store
    passed in is left open on shutdown; its owner closes it.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Tourguard API starting up (environment=%s)", settings.environment)
        user_store = store if store is not None else UserStore(settings.database_url)
        sender = mailer if mailer is not None else build_email_sender(settings)
        wire_services(app, settings, user_store, sender, clock=clock)
        logger.info("Auth initialized (mailer=%s)", type(sender).__name__)

        yield

        if store is None:
            user_store.close()
        logger.info("Tourguard API shutdown complete")

    app = FastAPI(
        title="Tourguard API",
        description="Accounts, sessions and password lifecycle for the tours API.",
        version=VERSION,
        lifespan=lifespan,
    )

    # add_middleware() wraps what is already registered, so the last call
    # is the outermost layer.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=3600,
    )
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)
    app.middleware("http")(log_requests)

    app.include_router(users_router, prefix="/api/v1", tags=["Users"])
    app.get("/api/v1/health", tags=["Health"])(health)

    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
    return app


# ---------------------------------------------------------------------------
# Request logging
# ---------------------------------------------------------------------------


def route_template(request: Request) -> str:
    """Return the matched route's path template, e.g. /api/v1/users/resetPassword/{token}."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_PATH


async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        route_template(request),
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    body = ErrorResponse(
        status="fail" if status_code < 500 else "error",
        code=code,
        message=message,
        detail=detail,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "%s on %s %s: %s", type(exc).__name__, request.method, route_template(request), exc.message
        )
    return _error(exc.status_code, exc.code, exc.message)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 when the request body or path fails pydantic validation.

    detail names the fields and problems only. Submitted values are left out
    because they may be passwords.
    """
    detail = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())
    return _error(400, "validation_error", "Invalid input data.", detail)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The traceback goes to the log only. In production the client gets a
    generic message; elsewhere the exception text is included to help
    debugging.
    """
    logger.exception("Unhandled exception on %s %s", request.method, route_template(request))
    settings: Settings | None = getattr(request.app.state, "settings", None)
    detail = None if settings is None or settings.is_production else f"{type(exc).__name__}: {exc}"
    return _error(500, "internal_error", "Something went wrong.", detail)


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=VERSION)
