"""Password hashing with bcrypt.

Hashing runs in a worker thread so the event loop keeps serving other
requests while bcrypt burns its cost factor.
"""

from __future__ import annotations

import asyncio
from functools import lru_cache

import bcrypt

from otp_auth.config import settings

# bcrypt only reads the first 72 bytes of a password; bcrypt 5 raises on
# anything longer, so both sides are cut to the same prefix.
BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:BCRYPT_MAX_BYTES]


def _hash(plain: str, rounds: int) -> str:
    return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def _check(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the store
        return False


@lru_cache(maxsize=None)
def _dummy_hash(rounds: int) -> str:
    """Hash checked when the identity is unknown or has no password.

    Built with the caller's cost factor so a failed login costs the same
    bcrypt work either way.
    """
    return _hash("otp-auth-timing-dummy", rounds)


async def hash_password(plain: str, rounds: int | None = None) -> str:
    """Return a salted bcrypt hash of *plain*."""
    return await asyncio.to_thread(_hash, plain, rounds or settings.bcrypt_rounds)


async def verify_password(plain: str, hashed: str | None, rounds: int | None = None) -> bool:
    """Return ``True`` if *plain* matches *hashed*.

    A ``None`` hash always fails, after spending the same bcrypt work as a
    real comparison at *rounds*.
    """
    if hashed is None:
        dummy = _dummy_hash(rounds or settings.bcrypt_rounds)
        await asyncio.to_thread(_check, plain, dummy)
        return False
    return await asyncio.to_thread(_check, plain, hashed)
