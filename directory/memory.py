"""
directory/memory.py -- Process-local UserDirectory.

Used when DEBUG=true and no USER_DIRECTORY_URL is configured, and by the test
suite. Behaves like the remote service as far as the contract goes: emails
and usernames are unique (case-insensitive), create raises RemoteConflict,
Google upserts are keyed by subject first and email second.

Not for production: profiles vanish on restart and nothing is shared between
processes.
"""

from __future__ import annotations

import threading
import uuid

from core.errors import RemoteConflict
from directory.contracts import Provider, RemoteProfile, email_local_part, split_full_name


class InMemoryUserDirectory:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._profiles: dict[str, RemoteProfile] = {}
        self._google_subjects: dict[str, str] = {}

    def exists_by_email(self, email: str) -> bool:
        return self._by_email(email) is not None

    def exists_by_username(self, username: str) -> bool:
        wanted = username.lower()
        return any(p.username.lower() == wanted for p in list(self._profiles.values()))

    def create_local_user(
        self,
        first_name: str,
        last_name: str,
        username: str,
        email: str,
        password: str,
    ) -> RemoteProfile:
        with self._lock:
            if self.exists_by_email(email) or self.exists_by_username(username):
                raise RemoteConflict()
            profile = RemoteProfile(
                id=str(uuid.uuid4()),
                email=email.lower(),
                first_name=first_name,
                last_name=last_name,
                username=username,
                provider=Provider.LOCAL,
            )
            self._profiles[profile.id] = profile
        return profile

    def find_by_email(self, email: str) -> RemoteProfile | None:
        return self._by_email(email)

    def upsert_google_user(
        self,
        subject: str,
        email: str,
        name: str | None,
        picture: str | None,
        email_verified: bool,
    ) -> RemoteProfile:
        first_name, last_name = split_full_name(name)
        with self._lock:
            existing_id = self._google_subjects.get(subject)
            existing = self._profiles.get(existing_id) if existing_id else self._by_email(email)
            profile = RemoteProfile(
                id=existing.id if existing else str(uuid.uuid4()),
                email=email.lower(),
                first_name=first_name,
                last_name=last_name,
                username=existing.username if existing else email_local_part(email),
                provider=Provider.GOOGLE,
            )
            self._profiles[profile.id] = profile
            self._google_subjects[subject] = profile.id
        return profile

    def _by_email(self, email: str) -> RemoteProfile | None:
        wanted = email.strip().lower()
        for profile in list(self._profiles.values()):
            if profile.email == wanted:
                return profile
        return None
