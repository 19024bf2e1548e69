# services/catalog.py
"""Read-only access to the chapter curriculum.

Chapters are ordered by ``order_index`` with ``id`` as the tiebreak; prompts
inside a chapter the same way. Only active rows are ever returned.
"""
from __future__ import annotations

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from saga.models import Chapter, Prompt

_CHAPTER_ORDER = (Chapter.order_index.asc(), Chapter.id.asc())
_PROMPT_ORDER = (Prompt.order_index.asc(), Prompt.id.asc())


async def list_active_chapters(db: AsyncSession) -> list[Chapter]:
    rows = await db.execute(select(Chapter).where(Chapter.is_active.is_(True)).order_by(*_CHAPTER_ORDER))
    return list(rows.scalars().all())


async def count_active_chapters(db: AsyncSession) -> int:
    q = select(func.count(Chapter.id)).where(Chapter.is_active.is_(True))
    return int((await db.execute(q)).scalar_one() or 0)


async def get_chapter(db: AsyncSession, chapter_id: int | None) -> Chapter | None:
    if chapter_id is None:
        return None
    return await db.get(Chapter, chapter_id, populate_existing=True)


async def first_active_chapter(db: AsyncSession) -> Chapter | None:
    q = select(Chapter).where(Chapter.is_active.is_(True)).order_by(*_CHAPTER_ORDER).limit(1)
    return (await db.execute(q)).scalars().first()


async def next_active_chapter(db: AsyncSession, chapter: Chapter) -> Chapter | None:
    """First active chapter strictly after ``chapter`` in curriculum order."""
    q = (
        select(Chapter)
        .where(Chapter.is_active.is_(True))
        .where(
            or_(
                Chapter.order_index > chapter.order_index,
                and_(Chapter.order_index == chapter.order_index, Chapter.id > chapter.id),
            )
        )
        .order_by(*_CHAPTER_ORDER)
        .limit(1)
    )
    return (await db.execute(q)).scalars().first()


async def active_prompts(db: AsyncSession, chapter_id: int) -> list[Prompt]:
    q = (
        select(Prompt)
        .where(Prompt.chapter_id == chapter_id, Prompt.is_active.is_(True))
        .order_by(*_PROMPT_ORDER)
    )
    return list((await db.execute(q)).scalars().all())
