"""Repositories — data access layer for identities and one-time codes.

Both repositories share the caller's ``AsyncSession``; services decide when
a unit of work is committed.  Driver errors never leave this module raw:
they are rolled back and re-raised as ``StorageError`` (or ``ConflictError``
for a duplicate email).
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from otp_auth.errors import ConflictError, StorageError
from otp_auth.models import OTPCode, User

logger = logging.getLogger(__name__)


class _Repository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def commit(self) -> None:
        """Commit the shared session."""
        try:
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise StorageError(f"commit failed: {exc}") from exc

    async def _fail(self, operation: str, exc: SQLAlchemyError) -> StorageError:
        await self._session.rollback()
        return StorageError(f"{operation} failed: {exc}")


class UserRepository(_Repository):
    """Encapsulates all database queries related to identities."""

    async def find_by_email(self, email: str) -> User | None:
        """Look up an identity by its exact email address."""
        stmt = select(User).where(User.email == email)
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise await self._fail("user lookup", exc) from exc
        return result.scalar_one_or_none()

    async def exists(self, email: str) -> bool:
        return await self.find_by_email(email) is not None

    async def create(
        self, email: str, password_hash: str | None, name: str | None = None
    ) -> User:
        """Insert a new identity and flush it so ``id`` is populated.

        Raises ``ConflictError`` if the email is already registered, which
        covers the window between an ``exists`` check and this insert.
        """
        user = User(email=email, password_hash=password_hash, name=name)
        self._session.add(user)
        try:
            await self._session.flush()
        except IntegrityError as exc:
            await self._session.rollback()
            logger.info("Duplicate registration for %s rejected by constraint", email)
            raise ConflictError() from exc
        except SQLAlchemyError as exc:
            raise await self._fail("user insert", exc) from exc
        return user


class OTPRepository(_Repository):
    """Encapsulates all database queries related to one-time codes."""

    async def create(
        self, email: str, code: str, created_at: datetime, expires_at: datetime
    ) -> OTPCode:
        record = OTPCode(
            email=email, code=code, created_at=created_at, expires_at=expires_at
        )
        self._session.add(record)
        try:
            await self._session.flush()
        except SQLAlchemyError as exc:
            raise await self._fail("OTP insert", exc) from exc
        return record

    async def find_latest(self, email: str) -> OTPCode | None:
        """Return the most recently created code for *email*.

        ``id`` breaks ties between rows created within the same clock tick.
        """
        stmt = (
            select(OTPCode)
            .where(OTPCode.email == email)
            .order_by(OTPCode.created_at.desc(), OTPCode.id.desc())
            .limit(1)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise await self._fail("OTP lookup", exc) from exc
        return result.scalar_one_or_none()

    async def delete_all(self, email: str) -> int:
        """Delete every code issued to *email* and return how many were removed."""
        stmt = delete(OTPCode).where(OTPCode.email == email)
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise await self._fail("OTP purge", exc) from exc
        return result.rowcount or 0
