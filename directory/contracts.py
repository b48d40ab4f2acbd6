"""
directory/contracts.py -- The narrow interface the login service needs from the
remote user directory, plus the profile shape it returns.

The directory owns profiles. We read and create them through this contract
and never treat a local copy as authoritative.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable


class Provider(str, Enum):
    LOCAL = "LOCAL"
    GOOGLE = "GOOGLE"


@dataclass(frozen=True)
class RemoteProfile:
    id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    username: str = ""
    provider: Provider = Provider.LOCAL
    active: bool = True

    @property
    def display_name(self) -> str:
        """Full name, falling back to the username. May be empty."""
        full = f"{self.first_name} {self.last_name}".strip()
        return full or self.username


@runtime_checkable
class UserDirectory(Protocol):
    """Contract for user directory implementations.

    Transport or protocol failures raise core.errors.UpstreamUnavailable.
    """

    def exists_by_email(self, email: str) -> bool: ...

    def exists_by_username(self, username: str) -> bool: ...

    def create_local_user(
        self,
        first_name: str,
        last_name: str,
        username: str,
        email: str,
        password: str,
    ) -> RemoteProfile:
        """Create a LOCAL profile. Raises core.errors.RemoteConflict if email or username is taken."""
        ...

    def find_by_email(self, email: str) -> RemoteProfile | None: ...

    def upsert_google_user(
        self,
        subject: str,
        email: str,
        name: str | None,
        picture: str | None,
        email_verified: bool,
    ) -> RemoteProfile:
        """Create or update the GOOGLE profile keyed by subject/email."""
        ...


def split_full_name(name: str | None) -> tuple[str, str]:
    """Split "Ana Maria Lee" into ("Ana", "Maria Lee"). Empty parts are ""."""
    parts = (name or "").strip().split(" ", 1)
    first = parts[0]
    last = parts[1].strip() if len(parts) > 1 else ""
    return first, last


def email_local_part(email: str) -> str:
    return email.split("@", 1)[0]
