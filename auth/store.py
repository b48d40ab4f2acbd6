"""
auth/store.py -- SQLAlchemy Core persistence layer for local credentials.

Pattern: Repository + Data Mapper. CredentialStore is the repository;
_row_to_credential is the mapper. Orchestrator and route code never touch SQL.

Security:
  All queries use bound parameters. No f-strings in SQL.
  password_hash is never logged; Credential hides it from repr.

Email uniqueness:
  The UNIQUE constraint on email only means "one credential per email" because
  every write and every read lower-cases the email first. No collation is
  assumed, so the invariant survives a move to another engine.

Lifecycle:
  Credentials are created by registration and mutated only by administrative
  status changes (set_status). There is deliberately no delete method.

Layer rule: no imports from api/, accounts/, or directory/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine

from auth.models import Credential, CredentialStatus


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_credentials = Table(
    "credentials",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(64), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("status", String(20), nullable=False, server_default=CredentialStatus.ACTIVE.value),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers proceed without blocking during writes."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _next_timestamp(previous: str | None = None) -> str:
    """Current UTC time as ISO 8601, strictly after previous when given.

    Wall clocks can step backwards; updated_at must not.
    """
    now = datetime.now(timezone.utc)
    if previous:
        floor = datetime.fromisoformat(previous) + timedelta(microseconds=1)
        if now < floor:
            now = floor
    return now.isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CredentialStore:
    """Repository for Credential entities.

    Usage:
        store = CredentialStore("sqlite:///:memory:")
        store.save(Credential(user_id="u-1", email="Ana@Site.com", password_hash=digest))
        cred = store.find_by_email("ana@site.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_email(self, email: str) -> Credential | None:
        """Look up a credential by email, case-insensitively. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _credentials.select().where(_credentials.c.email == normalize_email(email))
            ).fetchone()
        return _row_to_credential(row) if row is not None else None

    def get_by_id(self, credential_id: str) -> Credential | None:
        with self.engine.connect() as conn:
            row = conn.execute(_credentials.select().where(_credentials.c.id == credential_id)).fetchone()
        return _row_to_credential(row) if row is not None else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, credential: Credential) -> Credential:
        """Insert a new credential or update an existing one; return the stored record.

        A credential without an id is new: id, created_at and updated_at are
        assigned here. Otherwise the row is updated and updated_at moves
        forward. id and created_at are never changed by an update.

        Raises sqlalchemy.exc.IntegrityError if another credential already
        owns the (normalized) email. Callers treat that as a registration race.
        """
        email = normalize_email(credential.email)
        if credential.id is None:
            now = _next_timestamp()
            stored = Credential(
                id=str(uuid.uuid4()),
                user_id=credential.user_id,
                email=email,
                password_hash=credential.password_hash,
                status=credential.status,
                created_at=now,
                updated_at=now,
            )
            with self.engine.connect() as conn:
                conn.execute(
                    _credentials.insert().values(
                        id=stored.id,
                        user_id=stored.user_id,
                        email=stored.email,
                        password_hash=stored.password_hash,
                        status=stored.status.value,
                        created_at=stored.created_at,
                        updated_at=stored.updated_at,
                    )
                )
                conn.commit()
            return stored

        existing = self.get_by_id(credential.id)
        if existing is None:
            raise LookupError(f"Credential {credential.id} does not exist")
        updated_at = _next_timestamp(existing.updated_at)
        with self.engine.connect() as conn:
            conn.execute(
                _credentials.update()
                .where(_credentials.c.id == credential.id)
                .values(
                    user_id=credential.user_id,
                    email=email,
                    password_hash=credential.password_hash,
                    status=credential.status.value,
                    updated_at=updated_at,
                )
            )
            conn.commit()
        return Credential(
            id=existing.id,
            user_id=credential.user_id,
            email=email,
            password_hash=credential.password_hash,
            status=credential.status,
            created_at=existing.created_at,
            updated_at=updated_at,
        )

    def set_status(self, credential_id: str, status: CredentialStatus) -> bool:
        """Change a credential's status. Administrative use only.

        Returns True if a row was updated, False if credential_id was not found.
        """
        existing = self.get_by_id(credential_id)
        if existing is None:
            return False
        existing.status = status
        self.save(existing)
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_credential(row) -> Credential:
    return Credential(
        id=row.id,
        user_id=row.user_id,
        email=row.email,
        password_hash=row.password_hash,
        status=CredentialStatus(row.status),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
