# services/user_prompts.py
from __future__ import annotations

import logging

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from saga.errors import InvalidUserPrompt
from saga.models import UserPrompt, utcnow
from saga.settings.config import settings

logger = logging.getLogger(__name__)


def _clean_text(text: str | None) -> str:
    return (text or "").strip()


async def insert_user_prompt(
    db: AsyncSession,
    project_id: int,
    text: str,
    priority: int,
    created_by: int | None,
    parent_story_id: int | None = None,
    *,
    source_interaction_id: int | None = None,
    commit: bool = True,
) -> UserPrompt:
    body = _clean_text(text)
    if not body:
        raise InvalidUserPrompt("User prompt text is required")
    max_priority = int(settings.USER_PROMPT_MAX_PRIORITY)
    if not 0 <= int(priority) <= max_priority:
        raise InvalidUserPrompt(f"Priority must be between 0 and {max_priority}")

    up = UserPrompt(
        project_id=project_id,
        text=body,
        priority=int(priority),
        created_by=created_by,
        parent_story_id=parent_story_id,
        source_interaction_id=source_interaction_id,
        is_delivered=False,
        created_at=utcnow(),
    )
    db.add(up)
    await db.flush()
    if commit:
        await db.commit()
    logger.debug("Queued user prompt %s for project %s (priority %s)", up.id, project_id, up.priority)
    return up


async def peek_highest_undelivered(db: AsyncSession, project_id: int) -> UserPrompt | None:
    """Most urgent undelivered prompt: priority desc, then oldest first."""
    q = (
        select(UserPrompt)
        .options(selectinload(UserPrompt.parent_story), selectinload(UserPrompt.creator))
        .where(UserPrompt.project_id == project_id, UserPrompt.is_delivered.is_(False))
        .order_by(UserPrompt.priority.desc(), UserPrompt.created_at.asc(), UserPrompt.id.asc())
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return (await db.execute(q)).scalars().first()


async def mark_delivered(db: AsyncSession, user_prompt_id: int, project_id: int | None = None) -> bool:
    """Flip is_delivered to true. Re-marking a delivered prompt is a no-op.

    Returns False only when no such prompt exists (in that project).
    """
    preds = [UserPrompt.id == user_prompt_id]
    if project_id is not None:
        preds.append(UserPrompt.project_id == project_id)

    res = await db.execute(
        update(UserPrompt)
        .where(*preds, UserPrompt.is_delivered.is_(False))
        .values(is_delivered=True, delivered_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if res.rowcount:
        return True

    exists = (await db.execute(select(UserPrompt.id).where(*preds))).scalar_one_or_none()
    return exists is not None


async def count_undelivered(db: AsyncSession, project_id: int) -> int:
    q = select(func.count(UserPrompt.id)).where(
        UserPrompt.project_id == project_id, UserPrompt.is_delivered.is_(False)
    )
    return int((await db.execute(q)).scalar_one() or 0)
