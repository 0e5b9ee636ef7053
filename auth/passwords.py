"""
auth/passwords.py -- bcrypt password hashing.

bcrypt is the right choice for low-entropy secrets (passwords) because its
cost factor makes brute force expensive. The salt is random per call and
embedded in the output, so verify() needs only the stored value.

Using bcrypt directly rather than passlib[bcrypt]: passlib's wrap-bug
detection feeds bcrypt a password longer than 72 bytes, which bcrypt 4.x
rejects. Direct usage has no compatibility shim.

72-byte limit: bcrypt ignores (older releases) or rejects (newer releases)
input past 72 bytes. hash() refuses such input with InvalidInputError so two
long passwords sharing a prefix can never collide.

There is no fallback hash. If bcrypt cannot be imported the process fails
at startup.
"""

from __future__ import annotations

import bcrypt

from auth.errors import InvalidInputError

BCRYPT_MAX_BYTES = 72


class PasswordHasher:
    """Salted, deliberately slow one-way hash with a tunable work factor."""

    def __init__(self, rounds: int = 12) -> None:
        if not 4 <= rounds <= 31:
            raise ValueError("bcrypt rounds must be between 4 and 31.")
        self.rounds = rounds
        # Timing equalization: computed once per hasher at the same cost as
        # real hashes, so verify_dummy() burns exactly as much bcrypt work as
        # a real mismatch.
        self._dummy_hash = self.hash("jobportal_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of the plaintext password.

        Raises InvalidInputError for an empty password or one longer than
        72 UTF-8 bytes.
        """
        if not plain:
            raise InvalidInputError("Password must not be empty.")
        encoded = plain.encode("utf-8")
        if len(encoded) > BCRYPT_MAX_BYTES:
            raise InvalidInputError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes.")
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext matches the hash. Never raises."""
        if not plain or not hashed:
            return False
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except Exception:
            return False

    def verify_dummy(self, plain: str) -> bool:
        """Run a full bcrypt check against the dummy hash and return False.

        Called when the account does not exist, so response time does not
        reveal whether an email is registered.
        """
        self.verify(plain or "x", self._dummy_hash)
        return False
