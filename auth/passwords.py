"""
auth/passwords.py -- bcrypt password hashing.

bcrypt is used directly (no passlib wrapper). Its per-hash random salt means
two users with the same password get different hashes, and its cost factor
makes offline brute force expensive. checkpw() compares in constant time.

bcrypt only looks at the first 72 bytes of input and current releases raise
on anything longer, so hash() rejects such input up front with ValueError.
"""

from __future__ import annotations

import bcrypt

MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """Hash and verify passwords at a fixed bcrypt cost.

    The cost comes from Settings.bcrypt_rounds. A dummy hash is computed once
    at construction so dummy_verify() costs the same as a real check.
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        self._dummy_hash = self.hash("tourguard_timing_dummy")

    def hash(self, plain: str) -> str:
        if not plain:
            raise ValueError("Password cannot be empty.")
        encoded = plain.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password cannot be longer than {MAX_PASSWORD_BYTES} bytes.")
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str | None) -> bool:
        """Return True if the plaintext matches the hash. Never raises."""
        if not plain or not hashed:
            return False
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            # Malformed stored hash or over-long input.
            return False

    def dummy_verify(self, plain: str) -> None:
        """Burn one verify's worth of time. Used when the account does not exist."""
        self.verify(plain or "x", self._dummy_hash)
