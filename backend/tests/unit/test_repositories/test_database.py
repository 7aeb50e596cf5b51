"""
Database engine configuration tests
"""

import pytest
from sqlalchemy import text

from llmmux.db.session import Database


@pytest.mark.asyncio
async def test_sqlite_database_enables_foreign_keys(settings):
    assert settings.DATABASE_TYPE == "sqlite"
    db = Database(settings)
    try:
        await db.init_models()
        async with db.session_factory() as session:
            result = await session.execute(text("PRAGMA foreign_keys"))
            assert result.scalar() == 1
    finally:
        await db.dispose()
