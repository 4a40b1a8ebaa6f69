"""
api/main.py -- FastAPI application entry point for the account API.

Run with:      python main.py
               uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware        -- adds CORS headers for allowed browser origins
  2. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds every process-wide object exactly once: the user store, the
password hasher, and the token codec/issuer/verifier. The signing key goes
from Settings straight into TokenCodec and is not stored anywhere else.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from account.store import UserStore
from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.account import router as account_router
from auth.codec import TokenCodec
from auth.errors import (
    AuthError,
    ExpiredOrInvalidToken,
    InvalidToken,
    LoginFailed,
    MalformedInput,
    MissingCredential,
)
from auth.hasher import PasswordHasher
from auth.tokens import TokenIssuer, TokenVerifier
from core.config import get_settings

_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("accountapi.api")

# Status code for each failure class. Token failures also get a
# WWW-Authenticate challenge.
_AUTH_ERROR_STATUS: dict[type[AuthError], int] = {
    MalformedInput: 422,
    LoginFailed: 401,
    InvalidToken: 401,
    ExpiredOrInvalidToken: 401,
    MissingCredential: 401,
}
_BEARER_CHALLENGE = (InvalidToken, ExpiredOrInvalidToken, MissingCredential)


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the store and token services on startup; close the store on shutdown.

    The codec/issuer/verifier are immutable after construction, so one
    instance of each is shared by every request thread without locking.
    """
    settings = get_settings()
    logger.info("Account API starting up")
    app.state.user_store = UserStore(db_url=settings.database_url)
    app.state.hasher = PasswordHasher(settings.password_pepper, rounds=settings.password_hash_rounds)
    codec = TokenCodec(settings.secret_key)
    app.state.issuer = TokenIssuer(
        codec,
        access_ttl=settings.access_token_ttl_seconds,
        refresh_ttl=settings.refresh_token_ttl_seconds,
    )
    app.state.verifier = TokenVerifier(codec, app.state.issuer)
    logger.info(
        "Token services initialized (access_ttl=%ds, refresh_ttl=%ds)",
        settings.access_token_ttl_seconds,
        settings.refresh_token_ttl_seconds,
    )

    yield

    app.state.user_store.close()
    logger.info("Account API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Account API",
    description="User accounts behind bearer-token authentication with access/refresh rotation.",
    version=_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


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

app.include_router(account_router, tags=["Account"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map a classified failure to its status code.

    Only the class's constant code and message are sent -- never the cause.
    """
    response = _error_response(_AUTH_ERROR_STATUS.get(type(exc), 401), exc.code, exc.message)
    if isinstance(exc, _BEARER_CHALLENGE):
        response.headers["WWW-Authenticate"] = "Bearer"
    response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_response(429, "rate_limited", "Too many requests.", str(exc))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Structural validation failures are reported as MalformedInput.

    The submitted values are left out of the detail; on the credential
    routes they would echo passwords back.
    """
    errors = [{k: v for k, v in err.items() if k != "input"} for err in exc.errors()]
    return _error_response(
        _AUTH_ERROR_STATUS[MalformedInput],
        MalformedInput.code,
        MalformedInput.message,
        str(errors),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with detail={"code": ..., "message": ...}.
    When detail is already a structured dict, use it directly.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Unauthenticated endpoints
# ---------------------------------------------------------------------------


@app.get("/index", tags=["Root"])
async def index() -> dict:
    """Landing endpoint. Public, returns an empty object."""
    return {}


@app.get("/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=_VERSION)
