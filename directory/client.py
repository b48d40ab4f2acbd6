"""
directory/client.py -- HTTP client for the remote user directory service.

Every call:
  - is a POST with a JSON body (emails never travel in query strings or logs
    of intermediate proxies),
  - carries the shared internal-service credential in X-Internal-Token,
  - uses the configured timeout -- an unbounded call would pin a worker
    thread for as long as the directory hangs.

Failure mapping:
  409 on create            -> RemoteConflict (caller may recover)
  404 on find-by-email     -> None
  timeout / connection err -> UpstreamUnavailable
  any other non-2xx        -> UpstreamUnavailable
  non-JSON / wrong shape   -> UpstreamUnavailable

No retries here. Retry policy belongs to the transport in front of us.

The plaintext password is forwarded on create_local_user because the
directory contract requires it; it is never logged.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from core.errors import RemoteConflict, UpstreamUnavailable
from directory.contracts import Provider, RemoteProfile, email_local_part, split_full_name

logger = logging.getLogger("loginsvc.directory")

EXISTS_BY_EMAIL_PATH = "/users/exists/email"
EXISTS_BY_USERNAME_PATH = "/users/exists/username"
CREATE_LOCAL_PATH = "/users/local"
FIND_BY_EMAIL_PATH = "/users/find-by-email"
UPSERT_GOOGLE_PATH = "/users/google"


class UserDirectoryClient:
    """requests-based UserDirectory implementation.

    Args:
        base_url:        Directory base URL, e.g. "http://users-svc:8080".
        internal_token:  Shared secret sent as X-Internal-Token.
        timeout:         Seconds for each request (connect and read).
        session:         Optional requests.Session, injectable for tests.
    """

    def __init__(
        self,
        base_url: str,
        internal_token: str = "",
        timeout: float = 5.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        # A handful of hops is plenty for an internal service.
        self._session.max_redirects = 3
        self._headers = {"Content-Type": "application/json"}
        if internal_token:
            self._headers["X-Internal-Token"] = internal_token

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    def exists_by_email(self, email: str) -> bool:
        logger.info("Checking user directory for email existence")
        body = self._json(self._post(EXISTS_BY_EMAIL_PATH, {"email": email}))
        return _exists_flag(body)

    def exists_by_username(self, username: str) -> bool:
        logger.info("Checking user directory for username %s", username)
        body = self._json(self._post(EXISTS_BY_USERNAME_PATH, {"username": username}))
        return _exists_flag(body)

    def create_local_user(
        self,
        first_name: str,
        last_name: str,
        username: str,
        email: str,
        password: str,
    ) -> RemoteProfile:
        logger.info("Creating LOCAL user %s in user directory", username)
        resp = self._post(
            CREATE_LOCAL_PATH,
            {
                "name": first_name,
                "lastname": last_name,
                "username": username,
                "email": email,
                "provider": Provider.LOCAL.value,
                "active": True,
                "password": password,
            },
            expected=(200, 201, 409),
        )
        if resp.status_code == 409:
            logger.info("User directory reported a conflict creating %s", username)
            raise RemoteConflict()
        return _to_profile(self._json(resp))

    def find_by_email(self, email: str) -> RemoteProfile | None:
        resp = self._post(FIND_BY_EMAIL_PATH, {"email": email}, expected=(200, 404))
        if resp.status_code == 404:
            return None
        return _to_profile(self._json(resp))

    def upsert_google_user(
        self,
        subject: str,
        email: str,
        name: str | None,
        picture: str | None,
        email_verified: bool,
    ) -> RemoteProfile:
        first_name, last_name = split_full_name(name)
        logger.info("Upserting GOOGLE user (subject %s) in user directory", subject)
        resp = self._post(
            UPSERT_GOOGLE_PATH,
            {
                "name": first_name,
                "lastname": last_name,
                "username": email_local_part(email),
                "email": email,
                "provider": Provider.GOOGLE.value,
                "googleSub": subject,
                "picture": picture,
                "emailVerified": email_verified,
            },
            expected=(200, 201),
        )
        return _to_profile(self._json(resp))

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _post(
        self,
        path: str,
        payload: dict[str, Any],
        expected: tuple[int, ...] = (200,),
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            resp = self._session.post(url, json=payload, headers=self._headers, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("User directory call to %s failed: %s", path, exc)
            raise UpstreamUnavailable("User directory is unavailable.") from exc
        if resp.status_code not in expected:
            logger.error("User directory call to %s returned HTTP %d", path, resp.status_code)
            raise UpstreamUnavailable("User directory returned an unexpected response.")
        return resp

    @staticmethod
    def _json(resp: requests.Response) -> dict[str, Any]:
        try:
            body = resp.json()
        except ValueError as exc:
            logger.error("User directory returned a non-JSON body (HTTP %d)", resp.status_code)
            raise UpstreamUnavailable("User directory returned an invalid response.") from exc
        if not isinstance(body, dict):
            logger.error("User directory returned a non-object body (HTTP %d)", resp.status_code)
            raise UpstreamUnavailable("User directory returned an invalid response.")
        return body


# ---------------------------------------------------------------------------
# Mappers
# ---------------------------------------------------------------------------


def _exists_flag(body: dict[str, Any]) -> bool:
    if not isinstance(body.get("exists"), bool):
        logger.error("User directory exists response has no boolean 'exists'")
        raise UpstreamUnavailable("User directory returned an invalid response.")
    return body["exists"]


def _to_profile(body: dict[str, Any]) -> RemoteProfile:
    if not body.get("id") or not body.get("email"):
        logger.error("User directory profile is missing id or email")
        raise UpstreamUnavailable("User directory returned an invalid response.")
    try:
        provider = Provider(body.get("provider") or Provider.LOCAL.value)
    except ValueError:
        logger.warning("User directory returned unknown provider %r; treating as LOCAL", body.get("provider"))
        provider = Provider.LOCAL
    return RemoteProfile(
        id=str(body["id"]),
        email=body["email"],
        first_name=body.get("name") or "",
        last_name=body.get("lastname") or "",
        username=body.get("username") or "",
        provider=provider,
        active=bool(body.get("active", True)),
    )
