"""
Tests for engine URL handling, dialect-aware upserts and process startup.

Run with: python -m pytest tests/test_database.py -v
"""

import asyncio
import logging

import pytest
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import create_async_engine

from saga import database, main
from saga.database import _normalize_url, upsert_insert
from saga.models import UserPrompt
from saga.settings.config import settings


class TestNormalizeUrl:

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("postgresql://u:p@db:5432/saga", "postgresql+asyncpg://u:p@db:5432/saga"),
            ("postgresql+psycopg2://u:p@db/saga", "postgresql+asyncpg://u:p@db/saga"),
            ("postgresql+asyncpg://u:p@db/saga", "postgresql+asyncpg://u:p@db/saga"),
            ("sqlite+aiosqlite:///tmp/x.db", "sqlite+aiosqlite:///tmp/x.db"),
        ],
    )
    def test_urls(self, raw, expected):
        assert _normalize_url(raw) == expected


class TestUpsertInsert:

    def test_sqlite_dialect_chosen_for_test_engine(self, run):
        async def scenario(db):
            stmt = upsert_insert(db, UserPrompt.__table__)
            assert stmt.__class__.__module__.startswith("sqlalchemy.dialects.sqlite")
            # both dialect inserts expose the same conflict clause
            assert hasattr(stmt, "on_conflict_do_nothing")

        run(scenario)


class TestLogging:

    def test_configure_logging_uses_settings_level(self, monkeypatch):
        seen = {}
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: seen.update(kw))
        monkeypatch.setattr(main.settings, "LOG_LEVEL", "DEBUG")

        main.configure_logging()
        assert seen["level"] == "DEBUG"
        assert seen["format"] == main.LOG_FORMAT

        main.configure_logging("warning")
        assert seen["level"] == "WARNING"


class TestStartup:

    def _table_names(self, db_url, monkeypatch, create_all):
        engine = create_async_engine(db_url)
        monkeypatch.setattr(database, "engine", engine)
        monkeypatch.setattr(settings, "RUN_DB_CREATE_ALL", create_all)
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: None)

        async def _main():
            try:
                await main.on_startup()
                async with engine.connect() as conn:
                    return await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
            finally:
                await engine.dispose()

        return set(asyncio.run(_main()))

    def test_startup_creates_schema_when_enabled(self, db_url, monkeypatch):
        tables = self._table_names(db_url, monkeypatch, True)
        assert {"project_prompt_state", "user_prompts", "chapter", "prompt", "interaction"} <= tables

    def test_startup_leaves_schema_to_migrations_by_default(self, db_url, monkeypatch):
        assert self._table_names(db_url, monkeypatch, False) == set()
