"""
tests/test_config.py -- Startup configuration rules in core/config.py.

Settings is constructed directly with keyword arguments, which take priority
over the environment, so these tests are independent of DEBUG set by conftest.
"""

from __future__ import annotations

import pytest

from api.main import build_directory, build_orchestrator
from auth.store import CredentialStore
from core.config import Settings
from core.errors import ConfigurationFatal
from directory.client import UserDirectoryClient
from directory.memory import InMemoryUserDirectory

GOOD_SECRET = "a" * 32


def test_production_requires_secret():
    with pytest.raises(ConfigurationFatal):
        Settings(debug=False, jwt_secret="", user_directory_url="http://users.internal")


def test_short_secret_rejected_in_every_mode():
    with pytest.raises(ConfigurationFatal):
        Settings(debug=False, jwt_secret="a" * 31, user_directory_url="http://users.internal")
    with pytest.raises(ConfigurationFatal):
        Settings(debug=True, jwt_secret="a" * 31)


def test_debug_generates_secret(caplog):
    settings = Settings(debug=True, jwt_secret="")
    assert len(settings.jwt_secret.encode()) >= 32
    assert any("auto-generated JWT_SECRET" in r.getMessage() for r in caplog.records)


def test_production_requires_user_directory():
    with pytest.raises(ConfigurationFatal):
        Settings(debug=False, jwt_secret=GOOD_SECRET, user_directory_url="")


def test_defaults():
    settings = Settings(debug=False, jwt_secret=GOOD_SECRET, user_directory_url="http://users.internal")
    assert settings.access_token_expire_minutes == 15
    assert settings.refresh_token_expire_days == 7
    assert settings.bcrypt_rounds == 12
    assert settings.google_jwks_uri == "https://www.googleapis.com/oauth2/v3/certs"


def test_build_directory_picks_implementation():
    remote = Settings(debug=False, jwt_secret=GOOD_SECRET, user_directory_url="http://users.internal")
    assert isinstance(build_directory(remote), UserDirectoryClient)
    local = Settings(debug=True, jwt_secret=GOOD_SECRET, user_directory_url="")
    assert isinstance(build_directory(local), InMemoryUserDirectory)


def test_build_orchestrator_uses_configured_lifetimes():
    settings = Settings(debug=True, jwt_secret=GOOD_SECRET, access_token_expire_minutes=5, bcrypt_rounds=4)
    store = CredentialStore("sqlite:///:memory:")
    try:
        accounts, token_issuer = build_orchestrator(settings, store, InMemoryUserDirectory())
        assert token_issuer.access_expires_in_seconds == 300
        assert accounts.tokens is token_issuer
    finally:
        store.close()
