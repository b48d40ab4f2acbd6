"""
core/errors.py -- Error taxonomy for the login service.

Every error carries a stable machine-readable code and an HTTP status next to
the human message. External clients branch on the codes, so a code never
changes once released -- add a new class instead.

Usage:
    from core.errors import InvalidCredentials

    raise InvalidCredentials()
    raise EmailAlreadyRegistered("ana@site.com is already registered.")

The API layer renders any LoginServiceError as
    {"error": {"code": ..., "message": ...}}
with exc.status_code. Authentication refusals are collapsed to the public
code "invalid_credentials" there (see public_code).
"""

from __future__ import annotations

from typing import Any


class LoginServiceError(Exception):
    """Base exception with error code support."""

    code: str = "internal_error"
    status_code: int = 500
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None) -> None:
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(f"[{self.code}] {self.message}")

    @property
    def public_code(self) -> str:
        """The code reported to HTTP callers. Same as code unless a subclass hides it."""
        return self.code

    @property
    def public_message(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert to the API error envelope body."""
        return {"code": self.public_code, "message": self.public_message}


# ---------------------------------------------------------------------------
# Client input
# ---------------------------------------------------------------------------


class ValidationError(LoginServiceError):
    code = "validation_error"
    status_code = 400
    default_message = "Request validation failed."


class MissingToken(ValidationError):
    code = "missing_token"
    default_message = "Google ID token not provided."


# ---------------------------------------------------------------------------
# Authentication refusals
# ---------------------------------------------------------------------------


class AuthenticationRefused(LoginServiceError):
    """Local login refused. Callers only ever see the generic code and message."""

    code = "invalid_credentials"
    status_code = 401
    default_message = "Invalid email or password."

    @property
    def public_code(self) -> str:
        return AuthenticationRefused.code

    @property
    def public_message(self) -> str:
        return AuthenticationRefused.default_message


class InvalidCredentials(AuthenticationRefused):
    code = "invalid_credentials"


class AccountLocked(AuthenticationRefused):
    code = "account_locked"
    default_message = "Account is locked."


class AccountDisabled(AuthenticationRefused):
    code = "account_disabled"
    default_message = "Account is disabled."


# ---------------------------------------------------------------------------
# Registration conflicts
# ---------------------------------------------------------------------------


class EmailAlreadyRegistered(LoginServiceError):
    code = "email_already_registered"
    status_code = 409
    default_message = "Email is already registered."


class RemoteConflictUnresolvable(LoginServiceError):
    code = "remote_conflict_unresolvable"
    status_code = 409
    default_message = "Account exists in the user directory but could not be recovered. Contact support."


class RemoteConflict(LoginServiceError):
    """Raised by a UserDirectory when the email or username already exists remotely."""

    code = "remote_conflict"
    status_code = 409
    default_message = "User already exists in the user directory."


# ---------------------------------------------------------------------------
# Google assertions
# ---------------------------------------------------------------------------


class InvalidToken(LoginServiceError):
    code = "invalid_token"
    status_code = 401
    default_message = "Invalid token."


class EmailNotVerified(LoginServiceError):
    code = "email_not_verified"
    status_code = 401
    default_message = "Email is not verified by Google."


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


class UpstreamUnavailable(LoginServiceError):
    code = "upstream_unavailable"
    status_code = 502
    default_message = "An upstream service is unavailable."


class ConfigurationFatal(LoginServiceError):
    """Startup-time configuration error. Must stop the service from serving traffic."""

    code = "configuration_fatal"
    status_code = 500
    default_message = "Service is misconfigured."
