"""
auth/google.py -- Google Sign-In ID token verification.

The client (browser or mobile app) obtains an ID token from Google and posts
it here. We never talk to Google on the user's behalf; we only fetch Google's
public signing keys (JWKS) and verify the token locally with python-jose.

Verification order (first failure wins, all raise InvalidToken):
  1. Header parses and names alg=RS256. Checked before any key lookup, so
     "none" and HS256 tokens (alg confusion: HMAC keyed with the public key)
     are rejected outright.
  2. A key with the header kid exists (one cache refresh on a miss).
  3. Signature verifies against that key.
  4. exp present and in the future; aud contains our client id.
  5. iss is one of the two canonical Google issuer strings.

Key cache (JwksKeyCache):
  Keys are cached by kid. Reads never take the lock. A kid miss triggers a
  refresh under a lock that serializes refreshes: a thread that waited on the
  lock re-checks the cache first, so N simultaneous misses cost one fetch.
  Refreshes are also spaced by min_refresh_seconds so a stream of tokens with
  bogus kids cannot turn into a stream of JWKS fetches. This is how Google's
  key rotation is picked up without a redeploy.
  After a failed fetch, misses inside the cooldown raise UpstreamUnavailable
  (the key set is unknown); kids already cached keep verifying.

[H1] email_verified is extracted but not enforced here -- the orchestrator
     refuses unverified emails, keeping this module a pure verifier.

Layer rule: no imports from api/, accounts/, or directory/.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

import requests
from jose import JWTError, jwt

from auth.models import VerifiedIdentity
from core.errors import InvalidToken, UpstreamUnavailable

logger = logging.getLogger("loginsvc.auth.google")

GOOGLE_ISSUERS = frozenset({"accounts.google.com", "https://accounts.google.com"})

_ALGORITHM = "RS256"


# ---------------------------------------------------------------------------
# JWKS cache
# ---------------------------------------------------------------------------


class JwksKeyCache:
    """Thread-safe kid -> JWK cache with single-flight refresh.

    Args:
        jwks_uri:             URL of the JWKS document.
        timeout:              Seconds for each HTTP request.
        min_refresh_seconds:  Minimum spacing between two fetches.
        session:              requests.Session (or compatible) used for fetches.
        clock:                Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        jwks_uri: str,
        timeout: float = 5.0,
        min_refresh_seconds: float = 30.0,
        session: requests.Session | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.jwks_uri = jwks_uri
        self.timeout = timeout
        self.min_refresh_seconds = min_refresh_seconds
        self._session = session or requests.Session()
        self._clock = clock
        # Replaced wholesale on refresh, never mutated in place, so readers
        # always see a complete key set without locking.
        self._keys: dict[str, dict[str, Any]] = {}
        self._last_refresh: float | None = None
        self._last_refresh_failed = False
        self._refresh_lock = threading.Lock()

    def get(self, kid: str) -> dict[str, Any] | None:
        """Return the JWK for kid, refreshing the cache once on a miss."""
        key = self._keys.get(kid)
        if key is not None:
            return key
        with self._refresh_lock:
            # Another thread may have refreshed while we waited.
            key = self._keys.get(kid)
            if key is not None:
                return key
            if self._refresh_allowed():
                self._refresh()
            elif self._last_refresh_failed:
                raise UpstreamUnavailable("Google signing keys are unavailable.")
            return self._keys.get(kid)

    def _refresh_allowed(self) -> bool:
        if self._last_refresh is None:
            return True
        return self._clock() - self._last_refresh >= self.min_refresh_seconds

    def _refresh(self) -> None:
        document = self._fetch()
        keys = {k["kid"]: k for k in document.get("keys", []) if isinstance(k, dict) and k.get("kid")}
        self._keys = keys
        self._last_refresh = self._clock()
        self._last_refresh_failed = False
        logger.info("JWKS refreshed from %s (%d keys)", self.jwks_uri, len(keys))

    def _fetch(self) -> dict[str, Any]:
        """GET the JWKS document, retrying once on a transport or HTTP error."""
        last_error: Exception | None = None
        for attempt in (1, 2):
            try:
                resp = self._session.get(self.jwks_uri, timeout=self.timeout)
                resp.raise_for_status()
                document = resp.json()
            except (requests.RequestException, ValueError) as exc:
                last_error = exc
                logger.warning("JWKS fetch attempt %d from %s failed: %s", attempt, self.jwks_uri, exc)
                continue
            if not isinstance(document, dict) or "keys" not in document:
                last_error = ValueError("JWKS response is missing 'keys'")
                logger.warning("JWKS fetch attempt %d from %s returned an invalid document", attempt, self.jwks_uri)
                continue
            return document
        # Record the attempt so a dead endpoint is not hammered on every request.
        self._last_refresh = self._clock()
        self._last_refresh_failed = True
        raise UpstreamUnavailable("Google signing keys are unavailable.") from last_error


# ---------------------------------------------------------------------------
# Verifier
# ---------------------------------------------------------------------------


class GoogleIdentityVerifier:
    """Validate Google ID tokens and extract the verified identity.

    Usage:
        verifier = GoogleIdentityVerifier(client_id, JwksKeyCache(jwks_uri))
        identity = verifier.verify(id_token)
    """

    def __init__(self, client_id: str, keys: JwksKeyCache) -> None:
        self.client_id = client_id
        self.keys = keys

    def verify(self, id_token: str) -> VerifiedIdentity:
        if not self.client_id:
            logger.warning("Google ID token received but GOOGLE_CLIENT_ID is not configured")
            raise InvalidToken("Google Sign-In is not configured.")

        try:
            header = jwt.get_unverified_header(id_token)
        except JWTError as exc:
            raise InvalidToken("Malformed Google ID token.") from exc

        if header.get("alg") != _ALGORITHM:
            logger.warning("Rejected Google ID token signed with alg=%r", header.get("alg"))
            raise InvalidToken("Unsupported token algorithm.")

        kid = header.get("kid")
        if not kid:
            raise InvalidToken("Google ID token has no key id.")
        key = self.keys.get(kid)
        if key is None:
            logger.warning("No Google signing key matches kid=%s", kid)
            raise InvalidToken("Unknown signing key.")

        try:
            claims = jwt.decode(
                id_token,
                key,
                algorithms=[_ALGORITHM],
                audience=self.client_id,
                options={"require_exp": True, "verify_iss": False, "verify_at_hash": False},
            )
        except JWTError as exc:
            logger.info("Google ID token failed verification: %s", exc)
            raise InvalidToken() from exc

        if claims.get("iss") not in GOOGLE_ISSUERS:
            logger.warning("Rejected Google ID token with issuer %r", claims.get("iss"))
            raise InvalidToken("Invalid issuer.")

        subject = claims.get("sub")
        email = claims.get("email")
        if not subject or not email:
            raise InvalidToken("Google ID token is missing sub or email.")

        logger.info("Google ID token verified for subject %s", subject)
        return VerifiedIdentity(
            subject=subject,
            email=email,
            email_verified=claims.get("email_verified") in (True, "true"),
            name=claims.get("name"),
            picture=claims.get("picture"),
        )
