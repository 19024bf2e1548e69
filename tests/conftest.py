import asyncio
import os

# Tests run against SQLite; must be set before saga.settings is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from saga import models  # noqa: F401  registers tables on Base.metadata
from saga.database import Base, session_factory


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'saga-test.db'}"


@pytest.fixture
def run(db_url):
    """Run ``scenario(db)`` on a fresh database inside its own event loop."""

    async def _main(scenario):
        engine = create_async_engine(db_url)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        maker = session_factory(engine)
        try:
            async with maker() as db:
                return await scenario(db)
        finally:
            await engine.dispose()

    def _run(scenario):
        return asyncio.run(_main(scenario))

    return _run
