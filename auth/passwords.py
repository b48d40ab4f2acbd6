"""
auth/passwords.py -- bcrypt password hashing.

bcrypt is used directly rather than through passlib: passlib's wrap-bug
detection builds a password longer than 72 bytes, which bcrypt 4.x rejects.

72-byte window: bcrypt only ever looked at the first 72 bytes of a password,
and bcrypt 5.x raises instead of truncating. Passwords are accepted up to 100
characters, so both hash() and verify() cut the UTF-8 encoding to 72 bytes.
The cut is applied identically on both sides, so verification is unchanged
for digests produced by older bcrypt releases.

Malformed digests: bcrypt.checkpw raises ValueError ("Invalid salt") when the
stored digest is not a bcrypt digest. That is corrupt data, not a wrong
password, so verify() logs it and raises MalformedDigest. The orchestrator
still answers the caller with the same InvalidCredentials.
"""

from __future__ import annotations

import logging

import bcrypt

logger = logging.getLogger("loginsvc.auth.passwords")

_BCRYPT_MAX_BYTES = 72


class MalformedDigest(Exception):
    """The stored digest could not be parsed as a bcrypt digest."""


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Salted, self-describing bcrypt digests ($2b$<cost>$<salt><hash>).

    Usage:
        hasher = PasswordHasher(rounds=12)
        digest = hasher.hash("secretpw1")
        hasher.verify("secretpw1", digest)  # True
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        # Timing equalization dummy digest. Verified whenever no credential
        # exists so response time does not reveal which emails are registered.
        self._dummy_digest = self.hash("loginsvc_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a bcrypt digest of the given plaintext password."""
        return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, digest: str) -> bool:
        """Return True if the plaintext matches the digest. Constant-time compare.

        Raises MalformedDigest when digest is not a valid bcrypt digest.
        """
        try:
            return bcrypt.checkpw(_encode(plain), digest.encode("utf-8"))
        except ValueError as exc:
            logger.error("Stored password digest is malformed: %s", exc)
            raise MalformedDigest(str(exc)) from exc

    def burn(self, plain: str) -> None:
        """Run one verification against the dummy digest and discard the result."""
        self.verify(plain, self._dummy_digest)
