"""
auth/tokens.py -- Session token issuing and validation.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with JWT_SECRET and carry
       sub (remote user id), iss, iat and exp. Access tokens add email and
       name; refresh tokens add type=refresh and nothing else.

  Refresh tokens never pass as access tokens. decode_access_token() rejects
       any payload with type=refresh, so a stolen long-lived refresh token
       cannot be replayed against API routes.

  Stateless: there is no revocation list. The expiry durations are the only
       bound on a token's lifetime.

  Secret: at least 32 bytes (UTF-8). A missing or short secret raises
       ConfigurationFatal from the constructor -- TokenIssuer is built once at
       startup, so a bad secret stops the service instead of failing per
       request.

Verification returns None on any failure -- the dependency layer turns that
into an anonymous principal.

Layer rule: no imports from api/, accounts/, or directory/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.models import AuthTokenPair, Principal
from core.config import MIN_SECRET_BYTES
from core.errors import ConfigurationFatal

logger = logging.getLogger("loginsvc.auth.tokens")

_ALGORITHM = "HS256"
_REFRESH_TYPE = "refresh"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """Mints and validates HS256 session tokens.

    Args:
        secret:                 Shared signing secret, >= 32 bytes.
        issuer:                 Value of the iss claim; also checked on decode.
        access_expire_minutes:  Access token lifetime.
        refresh_expire_days:    Refresh token lifetime.
        clock:                  Returns the current UTC datetime. Tests pass a
                                fixed clock to mint already-expired tokens.
    """

    def __init__(
        self,
        secret: str,
        issuer: str,
        access_expire_minutes: int = 15,
        refresh_expire_days: int = 7,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret:
            raise ConfigurationFatal("JWT signing secret is not configured.")
        if len(secret.encode("utf-8")) < MIN_SECRET_BYTES:
            raise ConfigurationFatal(f"JWT signing secret is too short; use at least {MIN_SECRET_BYTES} bytes.")
        self._secret = secret
        self.issuer = issuer
        self.access_expire_minutes = access_expire_minutes
        self.refresh_expire_days = refresh_expire_days
        self._clock = clock

    @property
    def access_expires_in_seconds(self) -> int:
        return self.access_expire_minutes * 60

    # ------------------------------------------------------------------
    # Issuing
    # ------------------------------------------------------------------

    def issue_access_token(self, user_id: str, email: str, name: str | None) -> str:
        now = self._clock()
        payload = {
            "sub": str(user_id),
            "iss": self.issuer,
            "email": email,
            "name": name,
            "iat": now,
            "exp": now + timedelta(minutes=self.access_expire_minutes),
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def issue_refresh_token(self, user_id: str) -> str:
        now = self._clock()
        payload = {
            "sub": str(user_id),
            "iss": self.issuer,
            "type": _REFRESH_TYPE,
            "iat": now,
            "exp": now + timedelta(days=self.refresh_expire_days),
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def issue_pair(self, user_id: str, email: str, name: str | None) -> AuthTokenPair:
        return AuthTokenPair(
            access_token=self.issue_access_token(user_id, email, name),
            refresh_token=self.issue_refresh_token(user_id),
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def decode_access_token(self, token: str) -> Principal | None:
        """Verify an access token and return its principal, or None on any failure.

        Rejects: bad signature, other algorithms, expired or exp-less tokens,
        a foreign issuer, and refresh tokens.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                issuer=self.issuer,
                options={"require_exp": True, "require_sub": True, "verify_aud": False},
            )
        except JWTError as exc:
            logger.debug("Access token rejected: %s", exc)
            return None
        if payload.get("type") == _REFRESH_TYPE:
            logger.debug("Refresh token presented where an access token is required")
            return None
        return Principal(
            user_id=payload["sub"],
            email=payload.get("email"),
            name=payload.get("name"),
            authenticated=True,
        )
