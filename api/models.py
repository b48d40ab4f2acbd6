"""
API request and response models for the login service REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/ and accounts/, which own
the internal representation. Route handlers map between the two.

Wire format is camelCase (firstName, accessToken, ...). Python code uses the
snake_case attribute names; the alias generator does the translation and
populate_by_name lets tests build models either way.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from accounts.models import GoogleAuthResult, LoginResult, RegistrationResult


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(_CamelModel):
    """Request body for POST /api/v1/auth/login."""

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=100)


class RegisterRequest(_CamelModel):
    """Request body for POST /api/v1/auth/register.

    Length limits mirror the orchestrator's own checks so malformed bodies
    are rejected before any store is touched. Format checks (email shape,
    blank-after-strip) stay in the orchestrator.
    """

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=8, max_length=100)
    username: Optional[str] = Field(default=None, max_length=100)


class GoogleAuthRequest(_CamelModel):
    """Request body for POST /api/v1/auth/google. Blank tokens are reported as missing_token."""

    id_token: str = ""


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LoginResponse(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    access_token: str
    token_type: str
    expires_in: int
    user_id: str
    email: str

    @classmethod
    def from_result(cls, result: LoginResult) -> "LoginResponse":
        return cls(
            access_token=result.access_token,
            token_type=result.token_type,
            expires_in=result.expires_in,
            user_id=result.user_id,
            email=result.email,
        )


class RegisterResponse(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    user_id: str
    first_name: str
    last_name: str
    email: str
    status: str

    @classmethod
    def from_result(cls, result: RegistrationResult) -> "RegisterResponse":
        return cls(
            user_id=result.user_id,
            first_name=result.first_name,
            last_name=result.last_name,
            email=result.email,
            status=result.status.value,
        )


class GoogleAuthResponse(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    access_token: str
    refresh_token: str
    user_id: str
    email: str
    name: Optional[str] = None

    @classmethod
    def from_result(cls, result: GoogleAuthResult) -> "GoogleAuthResponse":
        return cls(
            access_token=result.tokens.access_token,
            refresh_token=result.tokens.refresh_token,
            user_id=result.user_id,
            email=result.email,
            name=result.name,
        )


class MeResponse(_CamelModel):
    """Identity of the caller, as carried by the access token."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    user_id: str
    email: Optional[str] = None
    name: Optional[str] = None


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
