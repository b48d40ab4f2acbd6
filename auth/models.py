"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores, the
verifier and the orchestrator do the work; these only own the shape.

Layer rule: no imports from api/, accounts/, or directory/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class CredentialStatus(str, Enum):
    ACTIVE = "ACTIVE"
    LOCKED = "LOCKED"
    DISABLED = "DISABLED"


@dataclass
class Credential:
    """Local record binding an email to a password digest, LOCAL provider only.

    email is always stored lower-cased; CredentialStore normalizes on both
    write and read so the uniqueness invariant holds on any storage engine.

    password_hash is excluded from repr so it never lands in a log line.
    user_id references the remote profile and is not enforced locally.
    """

    user_id: str
    email: str
    password_hash: str = field(repr=False)
    status: CredentialStatus = CredentialStatus.ACTIVE
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class VerifiedIdentity:
    """Claims extracted from a Google ID token after full verification. Never persisted."""

    subject: str
    email: str
    email_verified: bool
    name: str | None = None
    picture: str | None = None


@dataclass(frozen=True)
class AuthTokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class Principal:
    """Request-scoped identity extracted from a valid access token.

    authenticated=False is the anonymous principal: the request proceeds,
    and the policy layer decides whether that is acceptable.
    """

    user_id: str | None = None
    email: str | None = None
    name: str | None = None
    authenticated: bool = False

    @classmethod
    def anonymous(cls) -> Principal:
        return cls()
