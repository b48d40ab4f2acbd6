"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the login service happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET).

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Dev mode generates a signing secret with a warning;
      production mode refuses to start without one.

Security notes:
  JWT_SECRET shorter than 32 bytes is rejected outright. HS256 signing relies
  on key entropy -- a short key makes every issued session forgeable.

  Both failures raise ConfigurationFatal, which pydantic does not wrap, so the
  process dies before it can serve traffic.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
accounts/, or directory/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.errors import ConfigurationFatal

logger = logging.getLogger("loginsvc.config")

MIN_SECRET_BYTES = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    credentials_db_url: str = "sqlite:///credentials.db"

    # ------------------------------------------------------------------
    # Session tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises.
    jwt_secret: str = ""
    jwt_issuer: str = "login-service"
    access_token_expire_minutes: int = 15
    refresh_token_expire_days: int = 7

    # ------------------------------------------------------------------
    # Password hashing
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # Google Sign-In (empty client id means Google login is disabled)
    # ------------------------------------------------------------------

    google_client_id: str = ""
    google_jwks_uri: str = "https://www.googleapis.com/oauth2/v3/certs"
    jwks_min_refresh_seconds: float = 30.0

    # ------------------------------------------------------------------
    # Remote user directory
    # ------------------------------------------------------------------

    user_directory_url: str = ""
    user_directory_token: str = ""
    # Applied to every outbound call (user directory and JWKS).
    outbound_timeout_seconds: float = 5.0

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """Enforce the JWT_SECRET policy.

        Dev mode (DEBUG=true): auto-generate a random secret with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode: refuse to start if JWT_SECRET is missing.

        Both modes: reject secrets shorter than 32 bytes.
        """
        if not self.jwt_secret:
            if self.debug:
                self.jwt_secret = secrets.token_hex(32)
                logger.warning("Using auto-generated JWT_SECRET. Sessions will not persist across restarts.")
            else:
                raise ConfigurationFatal(
                    "JWT_SECRET is required in production mode. "
                    "Set JWT_SECRET in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.jwt_secret.encode("utf-8")) < MIN_SECRET_BYTES:
            raise ConfigurationFatal(f"JWT_SECRET must be at least {MIN_SECRET_BYTES} bytes.")
        return self

    @model_validator(mode="after")
    def validate_user_directory(self) -> "Settings":
        """Production mode needs a real user directory; dev mode may run without one."""
        if not self.user_directory_url and not self.debug:
            raise ConfigurationFatal("USER_DIRECTORY_URL is required in production mode.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
