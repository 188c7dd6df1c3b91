"""Email service — delivers one-time codes via async SMTP."""

from __future__ import annotations

import logging
from email.message import EmailMessage

import aiosmtplib

from otp_auth.config import Settings, settings
from otp_auth.errors import DeliveryError
from otp_auth.services.notifier import LogNotifier, Notifier

logger = logging.getLogger(__name__)


class EmailNotifier(Notifier):
    """Sends OTP emails using the configured SMTP server."""

    def __init__(self, config: Settings | None = None) -> None:
        self._config = config or settings

    def build_message(self, to_email: str, code: str, ttl_minutes: int) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = "Your OTP Code"
        msg["From"] = self._config.email_from
        msg["To"] = to_email
        msg.set_content(f"Your OTP is {code}. It expires in {ttl_minutes} minutes.")
        return msg

    async def send_otp(self, email: str, code: str, ttl_minutes: int) -> None:
        """Send the code to *email*, raising ``DeliveryError`` on any SMTP failure."""
        msg = self.build_message(email, code, ttl_minutes)

        logger.info("Sending OTP email to %s", email)
        try:
            await aiosmtplib.send(
                msg,
                hostname=self._config.smtp_host,
                port=self._config.smtp_port,
                username=self._config.smtp_username or None,
                password=self._config.smtp_password or None,
                start_tls=True,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            raise DeliveryError(f"SMTP delivery to {email} failed: {exc}") from exc

        logger.info("OTP email sent to %s", email)


def build_notifier(config: Settings | None = None) -> Notifier:
    """Pick the SMTP notifier when a mail host is configured, else log codes."""
    config = config or settings
    if config.smtp_host:
        return EmailNotifier(config)
    logger.warning("SMTP_HOST not set — OTP codes will be written to the log only")
    return LogNotifier()
