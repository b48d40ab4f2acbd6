"""
api/main.py -- FastAPI application entry point for the login service.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware -- adds CORS headers for allowed browser origins
  2. log_requests   -- one access log line per request with latency

Lifespan builds every long-lived collaborator once (settings, credential
store, directory client, JWKS cache, token issuer, orchestrator) and stores
them on app.state. A configuration error raises ConfigurationFatal there,
which aborts startup -- the service never serves traffic misconfigured.
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

from accounts.orchestrator import AccountOrchestrator
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.google import GoogleIdentityVerifier, JwksKeyCache
from auth.passwords import PasswordHasher
from auth.store import CredentialStore
from auth.tokens import TokenIssuer
from core.config import Settings, get_settings
from core.errors import AuthenticationRefused, LoginServiceError
from directory.client import UserDirectoryClient
from directory.contracts import UserDirectory
from directory.memory import InMemoryUserDirectory

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("loginsvc.api")


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def build_directory(settings: Settings) -> UserDirectory:
    """HTTP client when a directory URL is configured; in-memory fallback in dev mode."""
    if settings.user_directory_url:
        return UserDirectoryClient(
            settings.user_directory_url,
            internal_token=settings.user_directory_token,
            timeout=settings.outbound_timeout_seconds,
        )
    logger.warning("USER_DIRECTORY_URL not set -- using in-memory user directory (profiles are not persisted)")
    return InMemoryUserDirectory()


def build_orchestrator(
    settings: Settings,
    credentials: CredentialStore,
    directory: UserDirectory,
) -> tuple[AccountOrchestrator, TokenIssuer]:
    """Assemble the account use cases. Raises ConfigurationFatal on a bad signing secret."""
    token_issuer = TokenIssuer(
        settings.jwt_secret,
        settings.jwt_issuer,
        access_expire_minutes=settings.access_token_expire_minutes,
        refresh_expire_days=settings.refresh_token_expire_days,
    )
    jwks = JwksKeyCache(
        settings.google_jwks_uri,
        timeout=settings.outbound_timeout_seconds,
        min_refresh_seconds=settings.jwks_min_refresh_seconds,
    )
    verifier = GoogleIdentityVerifier(settings.google_client_id, jwks)
    if not settings.google_client_id:
        logger.warning("GOOGLE_CLIENT_ID not set -- Google sign-in will reject every token")
    accounts = AccountOrchestrator(
        credentials,
        directory,
        verifier,
        token_issuer,
        PasswordHasher(rounds=settings.bcrypt_rounds),
    )
    return accounts, token_issuer


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build collaborators on startup, release them on shutdown.

    Startup order matters: settings first (validates the secret), then the
    credential store, then everything that depends on them.
    """
    logger.info("Login service starting up")
    settings = get_settings()
    app.state.credentials = CredentialStore(settings.credentials_db_url)
    logger.info("Credential store initialized")
    app.state.directory = build_directory(settings)
    app.state.accounts, app.state.token_issuer = build_orchestrator(
        settings, app.state.credentials, app.state.directory
    )
    logger.info("Account orchestrator initialized")

    yield

    app.state.credentials.close()
    logger.info("Login service shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Login Service",
    description="Local email/password and Google Sign-In authentication with signed session tokens.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


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

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(LoginServiceError)
async def login_service_error_handler(request: Request, exc: LoginServiceError) -> JSONResponse:
    """Render a use-case error with its stable code.

    Authentication refusals log their specific code (account_locked, ...) but
    answer with the generic public code.
    """
    if isinstance(exc, AuthenticationRefused):
        logger.info("Authentication refused on %s: %s", request.url.path, exc.code)
    elif exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    response = JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})
    if exc.status_code == 401:
        response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    When detail is already a structured dict, use it directly as the error
    field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=__version__)
