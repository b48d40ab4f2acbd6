"""
auth/dependencies.py -- FastAPI Depends() helpers for request authentication.

Only one method is recognized: an "Authorization: Bearer <access token>"
header carrying a token minted by TokenIssuer.

get_principal() is the soft variant: a missing, malformed, expired or
refresh-typed token yields Principal.anonymous() and the request proceeds.
Authorization decisions belong to the policy layer, not here.

require_principal() is that policy layer in its simplest form: it wraps
get_principal() and raises HTTP 401 when the principal is anonymous.

Layer rule: no imports from accounts/ or directory/.
  auth/dependencies.py may import from fastapi because this module is part of
  the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import Principal
from auth.tokens import TokenIssuer


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        return token or None
    return None


def get_principal(request: Request) -> Principal:
    """Return the principal for the request's Bearer token, or the anonymous principal.

    Never raises.
    """
    token = _bearer_token(request)
    if not token:
        return Principal.anonymous()
    issuer: TokenIssuer = request.app.state.token_issuer
    principal = issuer.decode_access_token(token)
    return principal if principal is not None else Principal.anonymous()


def require_principal(request: Request) -> Principal:
    """Require an authenticated principal. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(principal: Principal = Depends(require_principal)): ...
    """
    principal = get_principal(request)
    if not principal.authenticated:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return principal
