"""OTP issuer — generates, stores and dispatches one-time codes."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from otp_auth.database.repository import OTPRepository
from otp_auth.errors import ValidationError
from otp_auth.services.locks import KeyedLock
from otp_auth.services.notifier import Notifier

logger = logging.getLogger(__name__)

# Inclusive bounds; the floor keeps every code exactly six digits long.
OTP_MIN = 100_000
OTP_MAX = 999_999


def generate_code() -> str:
    """Return a uniformly random 6-digit code."""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


def _utcnow() -> datetime:
    return datetime.now(UTC)


class OTPIssuer:
    """Issues a fresh code for an email and hands it to the notifier.

    Flow
    ----
    1. Purge every outstanding code for the email.
    2. Persist the new code with ``expires_at = now + ttl`` and commit.
    3. Await delivery through the notifier.

    Steps 1 and 2 run under a per-email lock so concurrent requests in this
    process cannot interleave their purge and insert.  The committed code
    stays valid even if step 3 fails.
    """

    def __init__(
        self,
        otps: OTPRepository,
        notifier: Notifier,
        locks: KeyedLock,
        ttl_seconds: int = 300,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._otps = otps
        self._notifier = notifier
        self._locks = locks
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    async def issue_otp(self, email: str) -> None:
        """Issue and deliver a new code for *email*.

        Raises ``ValidationError`` for a blank email, ``StorageError`` if the
        code could not be stored and ``DeliveryError`` if it could not be sent.
        """
        email = (email or "").strip()
        if not email:
            raise ValidationError("Email is required")

        code = generate_code()
        async with self._locks.hold(email):
            now = self._clock()
            purged = await self._otps.delete_all(email)
            await self._otps.create(
                email=email, code=code, created_at=now, expires_at=now + self._ttl
            )
            await self._otps.commit()

        if purged:
            logger.debug("Purged %d stale OTP(s) for %s", purged, email)
        logger.info("OTP issued for %s, valid until %s", email, now + self._ttl)

        await self._notifier.send_otp(email, code, int(self._ttl.total_seconds() // 60))
