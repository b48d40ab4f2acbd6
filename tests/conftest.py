"""
tests/conftest.py -- Shared test fixtures for the login service.

This module provides:
  - RSA signing material and a fake JWKS endpoint for Google ID tokens
  - make_google_token(): mint ID tokens the way Google would
  - unit fixtures: hasher, token_issuer, credentials, directory, verifier, accounts
  - api_client: TestClient wired to isolated stores through a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are used for the
API client because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread.

DEBUG must be set before any api/ import so Settings() auto-generates a
signing secret and accepts a missing USER_DIRECTORY_URL.
"""

from __future__ import annotations

import os
import time
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock

# CRITICAL: Set DEBUG before any api/ or core/ import.
os.environ.setdefault("DEBUG", "true")

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from jose import jwk, jwt

from accounts.orchestrator import AccountOrchestrator
from api.main import app
from auth.google import GoogleIdentityVerifier, JwksKeyCache
from auth.passwords import PasswordHasher
from auth.store import CredentialStore
from auth.tokens import TokenIssuer
from directory.memory import InMemoryUserDirectory

TEST_SECRET = "test-signing-secret-that-is-long-enough-0123456789"
TEST_ISSUER = "login-service-test"
GOOGLE_CLIENT_ID = "test-client.apps.googleusercontent.com"
GOOGLE_KID = "google-test-kid-1"
JWKS_URI = "https://keys.example.test/oauth2/v3/certs"

# ---------------------------------------------------------------------------
# RSA material -- generated once per session, key generation is slow
# ---------------------------------------------------------------------------


def generate_private_pem() -> str:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


def public_jwk_for(private_pem: str, kid: str) -> dict:
    public_key = jwk.construct(private_pem, algorithm="RS256").public_key()
    data = public_key.to_dict()
    data["kid"] = kid
    data["use"] = "sig"
    return data


PRIVATE_PEM = generate_private_pem()
PUBLIC_JWK = public_jwk_for(PRIVATE_PEM, GOOGLE_KID)


def make_google_token(
    sub: str = "google-sub-123",
    email: str = "ana@gmail.com",
    email_verified: bool = True,
    name: str | None = "Ana Lee",
    picture: str | None = "https://example.test/ana.png",
    iss: str = "https://accounts.google.com",
    aud: str | list[str] = GOOGLE_CLIENT_ID,
    exp_delta: int = 3600,
    kid: str = GOOGLE_KID,
    private_pem: str = PRIVATE_PEM,
    include_exp: bool = True,
) -> str:
    """Build an RS256 ID token shaped like Google's."""
    now = int(time.time())
    claims: dict = {
        "iss": iss,
        "aud": aud,
        "sub": sub,
        "email": email,
        "email_verified": email_verified,
        "name": name,
        "picture": picture,
        "iat": now,
    }
    if include_exp:
        claims["exp"] = now + exp_delta
    return jwt.encode(claims, private_pem, algorithm="RS256", headers={"kid": kid})


def make_jwks_session(*jwks: dict) -> MagicMock:
    """A requests.Session stand-in whose GET returns the given keys."""
    session = MagicMock()
    resp = MagicMock()
    resp.status_code = 200
    resp.raise_for_status.return_value = None
    resp.json.return_value = {"keys": list(jwks)}
    session.get.return_value = resp
    return session


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    # Minimum bcrypt cost keeps the suite fast; production uses 12.
    return PasswordHasher(rounds=4)


@pytest.fixture
def token_issuer() -> TokenIssuer:
    return TokenIssuer(TEST_SECRET, TEST_ISSUER, access_expire_minutes=15, refresh_expire_days=7)


@pytest.fixture
def credentials() -> Generator[CredentialStore, None, None]:
    store = CredentialStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def directory() -> InMemoryUserDirectory:
    return InMemoryUserDirectory()


@pytest.fixture
def jwks_session() -> MagicMock:
    return make_jwks_session(PUBLIC_JWK)


@pytest.fixture
def verifier(jwks_session: MagicMock) -> GoogleIdentityVerifier:
    return GoogleIdentityVerifier(GOOGLE_CLIENT_ID, JwksKeyCache(JWKS_URI, session=jwks_session))


@pytest.fixture
def accounts(credentials, directory, verifier, token_issuer, hasher) -> AccountOrchestrator:
    return AccountOrchestrator(credentials, directory, verifier, token_issuer, hasher)


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------


def _patch_lifespan(credentials: CredentialStore, accounts: AccountOrchestrator, token_issuer: TokenIssuer):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-built test collaborators into app.state so routes see isolated
    stores and the fake JWKS endpoint instead of real services.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.credentials = credentials
        app.state.directory = accounts.directory
        app.state.accounts = accounts
        app.state.token_issuer = token_issuer
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(hasher: PasswordHasher) -> Generator[tuple[TestClient, AccountOrchestrator], None, None]:
    """Yield (client, accounts) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan, so tests
    hit real route handlers, exception handlers and dependencies.
    """
    db_url = f"sqlite:///file:test_credentials_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    credentials = CredentialStore(db_url)
    token_issuer = TokenIssuer(TEST_SECRET, TEST_ISSUER, access_expire_minutes=15, refresh_expire_days=7)
    verifier = GoogleIdentityVerifier(GOOGLE_CLIENT_ID, JwksKeyCache(JWKS_URI, session=make_jwks_session(PUBLIC_JWK)))
    accounts = AccountOrchestrator(credentials, InMemoryUserDirectory(), verifier, token_issuer, hasher)

    app.router.lifespan_context = _patch_lifespan(credentials, accounts, token_issuer)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, accounts

    credentials.close()
