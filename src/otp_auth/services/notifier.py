"""Notifier — abstract interface for out-of-band OTP delivery."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Delivers a one-time code to the owner of an email address.

    Implementations raise ``DeliveryError`` when the code could not be
    handed off.  Callers await delivery inline and never retry.
    """

    @abstractmethod
    async def send_otp(self, email: str, code: str, ttl_minutes: int) -> None:
        """Deliver *code* to *email*.

        Parameters
        ----------
        email:
            Recipient address (the identity the code was issued for).
        code:
            The plaintext one-time code.
        ttl_minutes:
            How long the code stays valid, quoted in the message body.
        """


class LogNotifier(Notifier):
    """Development notifier: writes the code to the server log instead of mailing it."""

    async def send_otp(self, email: str, code: str, ttl_minutes: int) -> None:
        logger.info(
            "📧 OTP for %s: %s  (valid %d min, SMTP not configured)",
            email,
            code,
            ttl_minutes,
        )
