"""
accounts/orchestrator.py -- Register, Login and GoogleAuth use cases.

Account state lives in two places with no shared transaction:
  - the local CredentialStore (email -> password digest + status), and
  - the remote UserDirectory (profile, authoritative identity).

Register as a two-step saga:
  1. create the remote profile,
  2. write the local credential.
The remote write goes first. If the process dies between the two, the
system holds "remote profile, no local credential" -- a valid, recoverable
state: the user re-registers, the directory answers 409, we look the profile
up by email and adopt its id. Only LOCAL profiles are adopted: a GOOGLE
profile with the same email was never part of a Register. The reverse
order could leave a credential that logs in to an identity no other
service can find.

Login never tells the caller which step failed: unknown email, wrong
password, corrupt digest, locked and disabled accounts all surface to HTTP as
"invalid_credentials". The distinct exception classes exist for logs and
for programmatic callers.

Layer rule: no imports from api/. accounts/ may import from auth/, core/ and
directory/.
"""

from __future__ import annotations

import logging
import re
import secrets

from sqlalchemy.exc import IntegrityError

from accounts.models import GoogleAuthResult, LoginResult, RegistrationResult
from auth.google import GoogleIdentityVerifier
from auth.models import Credential, CredentialStatus
from auth.passwords import MalformedDigest, PasswordHasher
from auth.store import CredentialStore, normalize_email
from auth.tokens import TokenIssuer
from core.errors import (
    AccountDisabled,
    AccountLocked,
    EmailAlreadyRegistered,
    EmailNotVerified,
    InvalidCredentials,
    MissingToken,
    RemoteConflict,
    RemoteConflictUnresolvable,
    UpstreamUnavailable,
    ValidationError,
)
from directory.contracts import Provider, UserDirectory, email_local_part

logger = logging.getLogger("loginsvc.accounts")

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 100

# Deliberately loose: one "@", no whitespace, a dot in the domain. The
# directory and the mail provider are the real judges of deliverability.
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _require(value: str | None, field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} is required.")
    return value.strip()


def validate_email(email: str | None) -> str:
    """Return the normalized email or raise ValidationError."""
    email = normalize_email(_require(email, "email"))
    if len(email) > 255 or not _EMAIL_RE.match(email):
        raise ValidationError("email is not a valid email address.")
    return email


def validate_password(password: str | None) -> str:
    if password is None or not password.strip():
        raise ValidationError("password is required.")
    if not PASSWORD_MIN_LENGTH <= len(password) <= PASSWORD_MAX_LENGTH:
        raise ValidationError(
            f"password must be between {PASSWORD_MIN_LENGTH} and {PASSWORD_MAX_LENGTH} characters."
        )
    return password


class AccountOrchestrator:
    """Coordinates the account use cases across the local and remote stores.

    Usage:
        accounts = AccountOrchestrator(store, directory, verifier, issuer, hasher)
        accounts.register("Ana", "Lee", "ana@site.com", "secretpw1")
        result = accounts.login("ANA@site.com", "secretpw1")
    """

    def __init__(
        self,
        credentials: CredentialStore,
        directory: UserDirectory,
        verifier: GoogleIdentityVerifier,
        tokens: TokenIssuer,
        hasher: PasswordHasher,
    ) -> None:
        self.credentials = credentials
        self.directory = directory
        self.verifier = verifier
        self.tokens = tokens
        self.hasher = hasher

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    def register(
        self,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        username: str | None = None,
    ) -> RegistrationResult:
        first_name = _require(first_name, "firstName")
        last_name = _require(last_name, "lastName")
        email = validate_email(email)
        password = validate_password(password)

        # Local check first: re-registration is the common case and costs no remote call.
        if self.credentials.find_by_email(email) is not None:
            logger.info("Registration refused: %s already has a local credential", email)
            raise EmailAlreadyRegistered()

        if username and username.strip():
            username = username.strip()
        else:
            username = self._derive_username(email)

        user_id = self._create_or_adopt_profile(first_name, last_name, username, email, password)

        credential = Credential(
            user_id=user_id,
            email=email,
            password_hash=self.hasher.hash(password),
            status=CredentialStatus.ACTIVE,
        )
        try:
            stored = self.credentials.save(credential)
        except IntegrityError as exc:
            # A concurrent registration for the same email won the unique index.
            logger.info("Registration race lost for %s", email)
            raise EmailAlreadyRegistered() from exc

        logger.info("Registered LOCAL credential %s for user %s", stored.id, user_id)
        return RegistrationResult(
            user_id=user_id,
            first_name=first_name,
            last_name=last_name,
            username=username,
            email=email,
            status=stored.status,
        )

    def _derive_username(self, email: str) -> str:
        """Email local-part, with a random suffix when another account already holds it.

        ana@a.com and ana@b.com both derive "ana"; the second gets e.g. "ana3f9c1a".
        An explicit username is never rewritten.
        """
        base = email_local_part(email)
        if not self.directory.exists_by_username(base):
            return base
        candidate = f"{base}{secrets.token_hex(3)}"
        logger.info("Derived username %s is taken; using %s", base, candidate)
        return candidate

    def _create_or_adopt_profile(
        self,
        first_name: str,
        last_name: str,
        username: str,
        email: str,
        password: str,
    ) -> str:
        """Create the remote profile, or adopt the one a previous attempt left behind."""
        try:
            profile = self.directory.create_local_user(first_name, last_name, username, email, password)
            return profile.id
        except RemoteConflict:
            logger.info("User directory already knows %s; attempting recovery", email)

        existing = self.directory.find_by_email(email)
        if existing is None:
            # The conflict was not on the email. Most likely the username is
            # taken by another account; either way we cannot safely heal this.
            username_taken = self.directory.exists_by_username(username)
            logger.error(
                "Unresolvable directory conflict for %s (username %s taken: %s)",
                email,
                username,
                username_taken,
            )
            raise RemoteConflictUnresolvable()

        # Only a LOCAL profile can be the leftover of an earlier Register.
        if existing.provider is not Provider.LOCAL:
            logger.warning(
                "Refusing to adopt %s profile %s for local registration of %s",
                existing.provider.value,
                existing.id,
                email,
            )
            raise RemoteConflictUnresolvable()

        logger.warning("Adopting existing LOCAL directory profile %s for %s", existing.id, email)
        return existing.id

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> LoginResult:
        email = normalize_email(_require(email, "email"))
        if password is None or password == "":
            raise ValidationError("password is required.")

        credential = self.credentials.find_by_email(email)
        if credential is None:
            # Equalize timing -- do NOT return before running bcrypt.
            self.hasher.burn(password)
            logger.info("Login refused for %s: no local credential", email)
            raise InvalidCredentials()

        if credential.status == CredentialStatus.DISABLED:
            self.hasher.burn(password)
            logger.info("Login refused for %s: credential disabled", email)
            raise AccountDisabled()
        if credential.status == CredentialStatus.LOCKED:
            self.hasher.burn(password)
            logger.info("Login refused for %s: credential locked", email)
            raise AccountLocked()

        try:
            matches = self.hasher.verify(password, credential.password_hash)
        except MalformedDigest as exc:
            logger.error("Login refused for %s: stored digest for credential %s is corrupt", email, credential.id)
            raise InvalidCredentials() from exc
        if not matches:
            logger.info("Login refused for %s: password mismatch", email)
            raise InvalidCredentials()

        name = self._display_name(email)
        token = self.tokens.issue_access_token(credential.user_id, credential.email, name)
        logger.info("Login succeeded for user %s", credential.user_id)
        return LoginResult(
            access_token=token,
            expires_in=self.tokens.access_expires_in_seconds,
            user_id=credential.user_id,
            email=credential.email,
        )

    def _display_name(self, email: str) -> str:
        """Best-effort display name from the directory; the email local-part otherwise."""
        try:
            profile = self.directory.find_by_email(email)
        except UpstreamUnavailable:
            logger.warning("User directory unavailable during login; using fallback display name")
            return email_local_part(email)
        if profile is None or not profile.display_name:
            return email_local_part(email)
        return profile.display_name

    # ------------------------------------------------------------------
    # Google
    # ------------------------------------------------------------------

    def google_auth(self, id_token: str | None) -> GoogleAuthResult:
        if id_token is None or not id_token.strip():
            raise MissingToken()

        identity = self.verifier.verify(id_token.strip())
        if not identity.email_verified:
            logger.info("Google sign-in refused for subject %s: email not verified", identity.subject)
            raise EmailNotVerified(f"The email {identity.email} is not verified by Google.")

        profile = self.directory.upsert_google_user(
            identity.subject,
            identity.email,
            identity.name,
            identity.picture,
            identity.email_verified,
        )
        name = profile.display_name or identity.name
        tokens = self.tokens.issue_pair(profile.id, profile.email, name)
        logger.info("Google sign-in succeeded for user %s", profile.id)
        return GoogleAuthResult(user_id=profile.id, email=profile.email, name=name, tokens=tokens)
