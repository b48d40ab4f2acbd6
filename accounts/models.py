"""
accounts/models.py -- Result dataclasses returned by the account use cases.

The API layer maps these to its camelCase response models; nothing here knows
about HTTP.
"""

from __future__ import annotations

from dataclasses import dataclass

from auth.models import AuthTokenPair, CredentialStatus


@dataclass(frozen=True)
class RegistrationResult:
    user_id: str
    first_name: str
    last_name: str
    username: str
    email: str
    status: CredentialStatus = CredentialStatus.ACTIVE


@dataclass(frozen=True)
class LoginResult:
    access_token: str
    expires_in: int  # seconds
    user_id: str
    email: str
    token_type: str = "Bearer"


@dataclass(frozen=True)
class GoogleAuthResult:
    user_id: str
    email: str
    name: str | None
    tokens: AuthTokenPair
