"""
Test Configuration Module
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from llmmux.config import Settings
from llmmux.db.models import Base


# Use in-memory database for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def make_settings(**overrides) -> Settings:
    """Settings isolated from the environment's .env file"""
    values = {
        "DATABASE_URL": TEST_DATABASE_URL,
        "BACKENDS": "",
        "VLLM_SERVERS": "",
        "API_KEY_SOURCE": "database",
        "API_KEYS": "",
        "JWT_SECRET": "test-secret-key-for-session-tokens-0123456789",
        "DEBUG": False,
        "ENABLE_CORS": False,
        "RATE_LIMIT_ENABLED": True,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest_asyncio.fixture
async def async_engine():
    """Create async database engine for testing"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Clean up
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine"""
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for testing"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings_factory():
    """Build Settings with overrides"""
    return make_settings
