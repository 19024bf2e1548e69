from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .settings.config import settings


def _normalize_url(raw_url: str) -> str:
    if raw_url.startswith("postgresql+psycopg"):
        # if someone provided a sync URL by mistake, upgrade it to async
        return "postgresql+asyncpg" + raw_url[raw_url.index("://"):]
    if raw_url.startswith("postgresql://"):
        return raw_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return raw_url


DATABASE_URL = _normalize_url(settings.DATABASE_URL)

engine = create_async_engine(DATABASE_URL, echo=settings.DB_ECHO, future=True)
Base = declarative_base()


def session_factory(bind=None):
    """Session maker with the project's session settings, bound to ``bind`` or the app engine."""
    return sessionmaker(bind or engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


def upsert_insert(db: AsyncSession, table):
    """Dialect ``insert`` that supports ``on_conflict_do_nothing`` (Postgres in prod, SQLite in tests)."""
    if db.get_bind().dialect.name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert as sqlite_insert
        return sqlite_insert(table)
    from sqlalchemy.dialects.postgresql import insert as pg_insert
    return pg_insert(table)


async def init_db():
    # Only run create_all in dev, never in prod with Alembic
    if settings.RUN_DB_CREATE_ALL:
        from . import models  # noqa: F401  registers tables on Base.metadata
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
