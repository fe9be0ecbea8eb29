"""Hashing and verification of complaint secrets.

Complaints filed without an account are protected by a short passphrase
chosen by the citizen.  Only a salted bcrypt hash of it is ever stored;
verification goes through ``bcrypt.checkpw``, which compares in constant
time.  The same primitive is used for account passwords elsewhere in the
platform.

bcrypt is CPU-bound (roughly a quarter of a second at the default cost),
so the async helpers run it in a worker thread to keep the event loop
responsive.
"""

from __future__ import annotations

import asyncio
from typing import Final

import bcrypt
import structlog

logger = structlog.get_logger(__name__)

# bcrypt ignores (or rejects, in recent releases) input beyond 72 bytes.
BCRYPT_MAX_BYTES: Final[int] = 72


def fits_bcrypt(plaintext: str) -> bool:
    """True if *plaintext* is within bcrypt's input limit once UTF-8 encoded."""
    return len(plaintext.encode("utf-8")) <= BCRYPT_MAX_BYTES


class SecretManager:
    """Salted, constant-time hashing for complaint secrets.

    Parameters
    ----------
    rounds:
        bcrypt cost factor (4-31).  Tests use 4; production uses 12.
    """

    __slots__ = ("_rounds",)

    def __init__(self, rounds: int = 12) -> None:
        if not 4 <= rounds <= 31:
            raise ValueError(f"bcrypt rounds must be between 4 and 31, got {rounds}")
        self._rounds = rounds

    def hash(self, plaintext: str) -> str:
        """Return a salted bcrypt hash of *plaintext*.

        Raises
        ------
        ValueError
            If *plaintext* is empty or longer than 72 bytes once encoded.
        """
        encoded = plaintext.encode("utf-8")
        if not encoded:
            raise ValueError("Secret cannot be empty")
        if len(encoded) > BCRYPT_MAX_BYTES:
            raise ValueError(f"Secret cannot exceed {BCRYPT_MAX_BYTES} bytes")
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._rounds)).decode("utf-8")

    def verify(self, plaintext: str, hashed: str) -> bool:
        """Return *True* iff *plaintext* hashes to *hashed*.

        Empty or oversized input and malformed hashes verify as *False*
        rather than raising.
        """
        encoded = plaintext.encode("utf-8")
        if not encoded or len(encoded) > BCRYPT_MAX_BYTES or not hashed:
            return False
        try:
            return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
        except ValueError:
            logger.warning("secret.malformed_hash")
            return False

    async def hash_async(self, plaintext: str) -> str:
        return await asyncio.to_thread(self.hash, plaintext)

    async def verify_async(self, plaintext: str, hashed: str) -> bool:
        return await asyncio.to_thread(self.verify, plaintext, hashed)
