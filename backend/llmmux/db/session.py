"""
Database Session Management Module

Provides asynchronous database session management, supporting SQLite and PostgreSQL.
"""

from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from llmmux.config import Settings


class Database:
    """
    Engine and session factory owned by the application container

    Example:
        db = Database(settings)
        await db.init_models()
        async with db.session_factory() as session:
            ...
    """

    def __init__(self, settings: Settings):
        is_sqlite = settings.DATABASE_TYPE == "sqlite"
        engine_kwargs: dict = {"echo": settings.DEBUG}
        if is_sqlite:
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            # An in-memory database only lives as long as its single connection
            if ":memory:" in settings.DATABASE_URL:
                engine_kwargs["poolclass"] = StaticPool

        self.engine: AsyncEngine = create_async_engine(settings.DATABASE_URL, **engine_kwargs)

        # Enable foreign keys for SQLite (required for CASCADE deletes)
        if is_sqlite:
            @event.listens_for(self.engine.sync_engine, "connect")
            def _set_sqlite_pragma(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def init_models(self) -> None:
        """
        Create all defined table structures. Called on application startup.
        """
        from llmmux.db.models import Base

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Yield a session, rolling back on error (FastAPI dependency)
        """
        async with self.session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def dispose(self) -> None:
        await self.engine.dispose()
