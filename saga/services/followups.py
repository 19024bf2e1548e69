# services/followups.py
"""Facilitator interactions and their conversion into queued follow-up prompts."""
from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from saga.database import session_factory, upsert_insert
from saga.errors import InvalidUserPrompt
from saga.models import Interaction, InteractionType, Story, UserPrompt, utcnow
from saga.settings.config import settings

logger = logging.getLogger(__name__)


async def convert_followup(db: AsyncSession, interaction: Interaction) -> UserPrompt | None:
    """Queue a follow-up interaction as a top-priority user prompt.

    Converting the same interaction twice returns the prompt created the first time.
    Non-followup interactions are ignored.
    """
    if interaction.type != InteractionType.followup.value:
        return None

    story = await db.get(Story, interaction.story_id)
    if story is None:
        logger.warning("Follow-up %s points at missing story %s", interaction.id, interaction.story_id)
        return None

    body = (interaction.content or "").strip()
    if not body:
        raise InvalidUserPrompt(f"Follow-up {interaction.id} has no content")

    stmt = (
        upsert_insert(db, UserPrompt.__table__)
        .values(
            project_id=story.project_id,
            text=body,
            priority=int(settings.FOLLOWUP_PROMPT_PRIORITY),
            created_by=interaction.facilitator_id,
            parent_story_id=story.id,
            source_interaction_id=interaction.id,
            is_delivered=False,
            created_at=utcnow(),
        )
        .on_conflict_do_nothing(index_elements=["source_interaction_id"])
    )
    await db.execute(stmt)
    await db.commit()

    up = (
        await db.execute(select(UserPrompt).where(UserPrompt.source_interaction_id == interaction.id))
    ).scalars().first()
    if up is not None:
        logger.info(
            "Follow-up %s on story %s queued as user prompt %s for project %s",
            interaction.id, story.id, up.id, story.project_id,
        )
    return up


async def record_interaction(
    db: AsyncSession,
    story_id: int,
    facilitator_id: int | None,
    interaction_type: str,
    content: str,
) -> Interaction:
    """Persist a facilitator interaction on a story.

    Follow-ups are then converted into a queued user prompt on a separate
    session. A failed conversion is logged and never undoes the interaction.
    """
    kind = InteractionType(interaction_type)
    text = (content or "").strip()
    if not text:
        raise ValueError("Interaction content is required")

    interaction = Interaction(
        story_id=story_id,
        facilitator_id=facilitator_id,
        type=kind.value,
        content=text,
        created_at=utcnow(),
    )
    db.add(interaction)
    await db.commit()
    await db.refresh(interaction)

    if kind is InteractionType.followup:
        async with session_factory(db.bind)() as conv_db:
            try:
                await convert_followup(conv_db, interaction)
            except Exception:  # noqa: BLE001
                await conv_db.rollback()
                logger.exception("Converting follow-up %s into a user prompt failed", interaction.id)

    return interaction


async def mark_followup_answered(db: AsyncSession, interaction_id: int, story_id: int) -> bool:
    """Stamp a follow-up as answered by ``story_id``. Failures are logged, not raised."""
    try:
        res = await db.execute(
            update(Interaction)
            .where(Interaction.id == interaction_id, Interaction.type == InteractionType.followup.value)
            .values(answered_at=utcnow(), answer_story_id=story_id)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to mark follow-up %s answered by story %s", interaction_id, story_id)
        return False

    if not res.rowcount:
        logger.warning("No follow-up interaction %s to mark answered", interaction_id)
        return False
    return True
