"""
api/routes/v1/auth.py -- Authentication and registration REST endpoints.

Routes:
  POST /api/v1/auth/login     -- email/password login; returns an access token
  POST /api/v1/auth/register  -- create a LOCAL account; 201
  POST /api/v1/auth/google    -- Google ID token sign-in; returns access + refresh tokens
  GET  /api/v1/auth/me        -- identity carried by the Bearer token (requires auth)

Handlers are plain `def`: bcrypt, SQLAlchemy and the directory client all
block, so FastAPI runs them in its threadpool instead of on the event loop.

Errors: use-case failures are LoginServiceError subclasses and are rendered by
the handler in api/main.py. Handlers do not catch them.

Security:
  Cache-Control: no-store on every response that carries a token.
  Login failures all answer 401 invalid_credentials (see core/errors.py).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from accounts.orchestrator import AccountOrchestrator
from api.models import (
    GoogleAuthRequest,
    GoogleAuthResponse,
    LoginRequest,
    LoginResponse,
    MeResponse,
    RegisterRequest,
    RegisterResponse,
)
from auth.dependencies import require_principal
from auth.models import Principal

# Auth policy:
# - POST /api/v1/auth/login:     public
# - POST /api/v1/auth/register:  public
# - POST /api/v1/auth/google:    public
# - GET  /api/v1/auth/me:        requires auth (require_principal)
router = APIRouter()


def _accounts(request: Request) -> AccountOrchestrator:
    return request.app.state.accounts


def _no_store(resp: JSONResponse) -> JSONResponse:
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return a short-lived access token.

    No refresh token is issued on password login.
    """
    result = _accounts(request).login(body.email, body.password)
    return _no_store(
        JSONResponse(status_code=200, content=LoginResponse.from_result(result).model_dump(by_alias=True))
    )


@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a LOCAL account: remote profile first, then the local credential."""
    result = _accounts(request).register(
        body.first_name,
        body.last_name,
        body.email,
        body.password,
        username=body.username,
    )
    return JSONResponse(status_code=201, content=RegisterResponse.from_result(result).model_dump(by_alias=True))


@router.post("/auth/google", response_model=GoogleAuthResponse)
def google(request: Request, body: GoogleAuthRequest) -> JSONResponse:
    """Exchange a verified Google ID token for an access/refresh token pair."""
    result = _accounts(request).google_auth(body.id_token)
    return _no_store(
        JSONResponse(status_code=200, content=GoogleAuthResponse.from_result(result).model_dump(by_alias=True))
    )


@router.get("/auth/me", response_model=MeResponse)
def me(principal: Principal = Depends(require_principal)) -> MeResponse:
    """Return the identity carried by the caller's access token."""
    return MeResponse(user_id=principal.user_id, email=principal.email, name=principal.name)
