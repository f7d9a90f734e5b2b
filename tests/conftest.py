"""Pytest configuration and shared fixtures."""

import os
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Set test environment variables before the app modules read them
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")

from lotledger.config import Settings
from lotledger.database.models import Base
from lotledger.identity import StaffIdentity, StaticIdentityProvider
from lotledger.service import LotLedger

from factories import FIXED_NOW


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Create test settings pointing at a throwaway SQLite database."""
    return Settings(
        database_url_override=f"sqlite+aiosqlite:///{tmp_path / 'ledger_test.db'}",
        debug=True,
        store_retry_attempts=3,
        store_retry_base_delay=0,
        store_retry_max_delay=0,
    )


@pytest_asyncio.fixture
async def test_engine(test_settings: Settings) -> AsyncGenerator[Any, None]:
    """Create a test database engine with all tables."""
    engine = create_async_engine(test_settings.database_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: Any) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def staff() -> StaffIdentity:
    """A regular staff member."""
    return StaffIdentity(name="Jordan Lee", email="jordan@example.com", role="staff")


@pytest.fixture
def owner() -> StaffIdentity:
    """A staff member with the privileged owner role."""
    return StaffIdentity(name="Sam Rivera", email="sam@example.com", role="owner")


@pytest.fixture
def make_ledger(
    session_factory: async_sessionmaker[AsyncSession],
    test_settings: Settings,
) -> Callable[..., LotLedger]:
    """Build a ledger for a given staff member with the clock fixed at FIXED_NOW."""

    def factory(staff: Optional[StaffIdentity] = None, clock: Callable[[], datetime] = lambda: FIXED_NOW) -> LotLedger:
        return LotLedger(
            session_factory,
            StaticIdentityProvider(staff),
            config=test_settings,
            clock=clock,
        )

    return factory
