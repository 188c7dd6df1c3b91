"""Authenticator — decides register/login requests and issues session tokens."""

from __future__ import annotations

import hmac
import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager, nullcontext
from datetime import UTC, datetime

from otp_auth.database.repository import OTPRepository, UserRepository
from otp_auth.errors import (
    ConflictError,
    ExpiredCredentialError,
    InvalidCredentialError,
    ValidationError,
)
from otp_auth.services.credentials import Credential, OTPCredential, PasswordCredential
from otp_auth.services.locks import KeyedLock
from otp_auth.services.passwords import hash_password, verify_password
from otp_auth.services.token_issuer import SessionTokenIssuer

logger = logging.getLogger(__name__)

INVALID_OTP = "Invalid OTP"
EXPIRED_OTP = "OTP expired"
INVALID_CREDENTIALS = "Invalid credentials"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Authenticator:
    """Registers and logs in identities with either a password or an OTP.

    Flow
    ----
    * ``register`` checks an OTP credential first, rejects a known email,
      then hashes the password or consumes the OTP, creates the identity
      and returns a session token.  Nothing is deleted before the duplicate
      check, so a rejected registration leaves the code usable.
    * ``login`` looks the identity up, verifies the credential and returns a
      session token.  Unknown emails and wrong credentials fail identically.

    OTP consumption happens under the same per-email lock the issuer uses,
    and a code only counts as consumed if this request actually deleted it.
    """

    def __init__(
        self,
        users: UserRepository,
        otps: OTPRepository,
        tokens: SessionTokenIssuer,
        locks: KeyedLock,
        bcrypt_rounds: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._users = users
        self._otps = otps
        self._tokens = tokens
        self._locks = locks
        self._bcrypt_rounds = bcrypt_rounds
        self._clock = clock

    async def register(
        self, email: str, credential: Credential, name: str | None = None
    ) -> str:
        """Create a new identity and return its session token."""
        email = self._require_email(email)

        password_hash: str | None = None
        async with self._otp_guard(email, credential):
            if isinstance(credential, OTPCredential):
                await self._check_otp(email, credential.code, INVALID_OTP, EXPIRED_OTP)

            if await self._users.exists(email):
                logger.info("Registration rejected, %s already exists", email)
                raise ConflictError()

            if isinstance(credential, PasswordCredential):
                password_hash = await hash_password(credential.password, self._bcrypt_rounds)
            elif isinstance(credential, OTPCredential):
                await self._redeem_otp(email, INVALID_OTP)
            else:
                raise TypeError(f"Unsupported credential: {type(credential).__name__}")

            user = await self._users.create(email, password_hash, name)
            await self._users.commit()

        logger.info(
            "Registered %s (id=%s) via %s",
            email,
            user.id,
            "password" if password_hash else "OTP",
        )
        return self._tokens.issue(user.id, email)

    async def login(self, email: str, credential: Credential) -> str:
        """Verify *credential* for an existing identity and return a session token."""
        email = self._require_email(email)
        user = await self._users.find_by_email(email)

        if isinstance(credential, PasswordCredential):
            matched = await verify_password(
                credential.password,
                user.password_hash if user else None,
                self._bcrypt_rounds,
            )
            if user is None or not matched:
                logger.info("Password login failed for %s", email)
                raise InvalidCredentialError(INVALID_CREDENTIALS)
        elif isinstance(credential, OTPCredential):
            if user is None:
                logger.info("OTP login for unknown email %s", email)
                raise InvalidCredentialError(INVALID_CREDENTIALS)
            async with self._otp_guard(email, credential):
                await self._check_otp(
                    email, credential.code, INVALID_CREDENTIALS, INVALID_CREDENTIALS
                )
                await self._redeem_otp(email, INVALID_CREDENTIALS)
                await self._otps.commit()
        else:
            raise TypeError(f"Unsupported credential: {type(credential).__name__}")

        logger.info("User %s (id=%s) logged in", email, user.id)
        return self._tokens.issue(user.id, email)

    # ── Private helpers ──────────────────────────────────

    @staticmethod
    def _require_email(email: str | None) -> str:
        email = (email or "").strip()
        if not email:
            raise ValidationError()
        return email

    def _otp_guard(
        self, email: str, credential: Credential
    ) -> AbstractAsyncContextManager[None]:
        if isinstance(credential, OTPCredential):
            return self._locks.hold(email)
        return nullcontext()

    async def _check_otp(
        self, email: str, code: str, invalid_message: str, expired_message: str
    ) -> None:
        """Validate *code* against the most recent record for *email*."""
        record = await self._otps.find_latest(email)
        if record is None:
            logger.info("No outstanding OTP for %s", email)
            raise InvalidCredentialError(invalid_message)

        supplied = code.strip().encode("utf-8")
        stored = record.code.strip().encode("utf-8")
        if not hmac.compare_digest(supplied, stored):
            logger.info("OTP mismatch for %s", email)
            raise InvalidCredentialError(invalid_message)

        if record.is_expired(self._clock()):
            logger.info("Expired OTP presented for %s", email)
            raise ExpiredCredentialError(expired_message)

    async def _redeem_otp(self, email: str, invalid_message: str) -> None:
        """Delete every record for *email*; the code only counts if we removed it."""
        if not await self._otps.delete_all(email):
            # Another request consumed it between our read and delete
            logger.info("OTP for %s already consumed", email)
            raise InvalidCredentialError(invalid_message)
