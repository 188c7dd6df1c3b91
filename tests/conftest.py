"""Shared fixtures — in-memory database, frozen clock, mocked notifier."""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta

# Must be set before any otp_auth import reads the settings singleton.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-long-enough-0123456789")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DEBUG", "false")

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from otp_auth.config import settings
from otp_auth.models import Base
from otp_auth.services.locks import KeyedLock
from otp_auth.services.notifier import LogNotifier
from otp_auth.services.token_issuer import SessionTokenIssuer

TEST_SECRET = settings.jwt_secret


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest_asyncio.fixture
async def session_factory():
    """Fresh in-memory database with all tables created."""
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 5, 1, 12, 0, tzinfo=UTC))


@pytest.fixture
def notifier():
    """Notifier whose delivery is mocked — never logs or sends anything."""
    svc = LogNotifier()
    svc.send_otp = AsyncMock()
    return svc


@pytest.fixture
def locks():
    return KeyedLock()


@pytest.fixture
def token_issuer():
    return SessionTokenIssuer(secret=TEST_SECRET)


def sent_code(notifier) -> str:
    """The code passed to the most recent ``send_otp`` call."""
    return notifier.send_otp.call_args.args[1]
