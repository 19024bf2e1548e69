# services/prompt_state.py
"""Per-project curriculum cursor.

One ``ProjectPromptState`` row per project. Writes are either guarded upserts
(lazy creation), compare-and-swap updates (chapter moves) or a single atomic
increment (system acknowledgements), so concurrent callers never lose updates
or create duplicate rows.
"""
from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from saga.database import upsert_insert
from saga.errors import PromptStateConflict, PromptStateError
from saga.models import ProjectPromptState, utcnow

logger = logging.getLogger(__name__)


async def get_state(db: AsyncSession, project_id: int) -> ProjectPromptState | None:
    q = (
        select(ProjectPromptState)
        .where(ProjectPromptState.project_id == project_id)
        .execution_options(populate_existing=True)
    )
    return (await db.execute(q)).scalars().first()


async def create_state(db: AsyncSession, project_id: int, chapter_id: int) -> ProjectPromptState:
    """Create the cursor at (chapter_id, 0), tolerating a concurrent creator.

    If another caller inserted first, their row wins and is returned as-is.
    """
    now = utcnow()
    stmt = (
        upsert_insert(db, ProjectPromptState.__table__)
        .values(
            project_id=project_id,
            current_chapter_id=chapter_id,
            current_prompt_index=0,
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=["project_id"])
    )
    try:
        await db.execute(stmt)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Could not initialize prompt state for project %s", project_id)
        raise PromptStateError(project_id, "Failed to initialize prompt state") from exc

    state = await get_state(db, project_id)
    if state is None:
        raise PromptStateConflict(project_id, "state row missing after upsert")
    return state


async def move_to_chapter(db: AsyncSession, state: ProjectPromptState, chapter_id: int) -> ProjectPromptState:
    """Point the cursor at the start of ``chapter_id``.

    The update only applies if the row still holds the position we read;
    otherwise someone else moved it and ``PromptStateConflict`` is raised.
    """
    project_id = state.project_id
    if state.current_chapter_id is None:
        same_chapter = ProjectPromptState.current_chapter_id.is_(None)
    else:
        same_chapter = ProjectPromptState.current_chapter_id == state.current_chapter_id
    stmt = (
        update(ProjectPromptState)
        .where(ProjectPromptState.project_id == project_id)
        .where(same_chapter)
        .where(ProjectPromptState.current_prompt_index == state.current_prompt_index)
        .values(current_chapter_id=chapter_id, current_prompt_index=0, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    try:
        matched = (await db.execute(stmt)).rowcount
        # a lost compare-and-swap wrote nothing; commit so loaded rows stay usable
        await db.commit()
        if matched != 1:
            raise PromptStateConflict(project_id, f"cursor moved before advancing to chapter {chapter_id}")
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Could not advance project %s to chapter %s", project_id, chapter_id)
        raise PromptStateError(project_id, "Failed to advance chapter") from exc

    logger.info("Project %s advanced to chapter %s", project_id, chapter_id)
    moved = await get_state(db, project_id)
    if moved is None:
        raise PromptStateConflict(project_id, "state row vanished after chapter advance")
    return moved


async def increment_index(db: AsyncSession, project_id: int) -> bool:
    """Atomically move the cursor one prompt forward. False when the project has no state yet."""
    now = utcnow()
    stmt = (
        update(ProjectPromptState)
        .where(ProjectPromptState.project_id == project_id)
        .values(
            current_prompt_index=ProjectPromptState.current_prompt_index + 1,
            last_delivered_at=now,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    try:
        res = await db.execute(stmt)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Could not record delivery for project %s", project_id)
        raise PromptStateError(project_id, "Failed to update prompt state") from exc
    return res.rowcount > 0
