"""
api/main.py -- FastAPI application entry point for Gatekeeper.

Run with:      uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. log_requests          -- one log line per request with latency

Lifespan builds every collaborator explicitly (store, notifier, dispatcher,
account service), publishes them on app.state, and tears them down in
reverse order on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from accounts.service import AccountService
from api.models import ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.store import UserStore
from core.config import get_settings
from core.errors import GatekeeperError
from mail.dispatch import MailDispatcher
from mail.notifier import build_notifier

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("gatekeeper.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Startup order matters:
      1. Store first -- the service cannot be built without it.
      2. Notifier second -- opened before the dispatcher can use it.
      3. Service last -- wires store and dispatcher together.

    Shutdown drains pending emails before closing the notifier so a
    registration that just returned still gets its activation email.
    """
    logger.info("Gatekeeper API starting up")
    app.state.user_store = UserStore(_settings.database_url)
    app.state.notifier = build_notifier(_settings)
    await app.state.notifier.open()
    app.state.mailer = MailDispatcher(app.state.notifier)
    app.state.account_service = AccountService(app.state.user_store, app.state.mailer, settings=_settings)
    logger.info("Auth initialized (smtp_enabled=%s)", _settings.smtp_enabled)

    yield

    await app.state.mailer.drain(timeout=_settings.smtp_timeout_seconds)
    await app.state.notifier.close()
    app.state.user_store.close()
    logger.info("Gatekeeper API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Gatekeeper API",
    description="Registration, login, email activation and password reset.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization", "x-auth-token"],
    max_age=3600,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, message: str, errors: list[str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, errors=errors or []).model_dump(by_alias=True),
    )


@app.exception_handler(GatekeeperError)
async def gatekeeper_error_handler(request: Request, exc: GatekeeperError) -> JSONResponse:
    """Render typed account errors (conflict, bad token, 401, ...) as envelopes.

    InternalFaultError was already logged with its cause where it was raised;
    its message is the opaque "internal server error".
    """
    response = _error(exc.status_code, exc.message, exc.errors)
    if exc.status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with one readable line per failing field."""
    errors = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        errors.append(f"{loc}: {err.get('msg', 'invalid value')}" if loc else err.get("msg", "invalid value"))
    return _error(400, "request body was incomplete", errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Keep 404/405 from the router in the same envelope."""
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    Security note: the raw exception is logged server-side only, never put in
    the response body. Stack traces, SQL errors and signing diagnostics stay
    out of client hands.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal server error")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"], response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Return API liveness, version and database reachability."""
    try:
        await run_in_threadpool(request.app.state.user_store.ping)
        database = "ok"
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        database = "error"
    return HealthResponse(version=VERSION, components={"app": "ok", "database": database})
