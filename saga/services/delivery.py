# services/delivery.py
"""Next-prompt resolution and delivery acknowledgement.

Queued user prompts (facilitator follow-ups) always win. Otherwise the project's
cursor is read (and created on first use) and the prompt at
``current_prompt_index`` of its chapter is served. A cursor past the end of its
chapter is moved to the start of the next active chapter, repeating at most once
per chapter in the catalog so runs of empty chapters still terminate. Nothing is
cached about exhaustion: each call re-reads the live catalog, so chapters added
later are picked up.
"""
from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from saga.errors import PromptStateConflict, PromptStateError
from saga.models import Chapter, Prompt, ProjectPromptState, UserPrompt
from saga.schemas import (
    AcknowledgeRequest,
    Acknowledgement,
    AckResponse,
    ChapterRef,
    DeliveredPrompt,
    NextPromptResponse,
    PromptProgress,
    StoryRef,
    SystemAck,
    UserAck,
)
from saga.services import catalog
from saga.services.access import ensure_project_access
from saga.services.prompt_state import create_state, get_state, increment_index, move_to_chapter
from saga.services.user_prompts import count_undelivered, mark_delivered, peek_highest_undelivered
from saga.settings.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------
# Payload builders
# ---------------------------------------------
def _user_payload(up: UserPrompt) -> DeliveredPrompt:
    story_ref = None
    if up.parent_story is not None:
        story_ref = StoryRef.model_validate(up.parent_story)
    elif up.parent_story_id is not None:
        story_ref = StoryRef(id=up.parent_story_id)

    creator_name = None
    if up.creator is not None:
        creator_name = up.creator.display_name or up.creator.email

    return DeliveredPrompt(
        id=up.id,
        text=up.text,
        source="user",
        parent_story_ref=story_ref,
        priority=up.priority,
        created_by=up.created_by,
        creator_name=creator_name,
        created_at=up.created_at,
    )


def _system_payload(prompt: Prompt, chapter: Chapter) -> DeliveredPrompt:
    return DeliveredPrompt(
        id=prompt.id,
        text=prompt.text,
        source="system",
        chapter_ref=ChapterRef.model_validate(chapter),
        order_index=prompt.order_index,
        created_at=prompt.created_at,
    )


# ---------------------------------------------
# Resolution
# ---------------------------------------------
async def _chapter_prompts(db: AsyncSession, chapter: Chapter) -> list[Prompt]:
    # a chapter deactivated under a live cursor counts as exhausted
    if not chapter.is_active:
        return []
    return await catalog.active_prompts(db, chapter.id)


async def _move_or_reread(
    db: AsyncSession, state: ProjectPromptState, chapter_id: int
) -> tuple[ProjectPromptState, bool]:
    """Move the cursor to the start of ``chapter_id``.

    If another caller moved it first, the state they left is returned with
    ``False`` and the walk carries on from there. A conflict whose re-read shows
    no change is re-raised.
    """
    project_id = state.project_id
    seen = (state.current_chapter_id, state.current_prompt_index)
    try:
        return await move_to_chapter(db, state, chapter_id), True
    except PromptStateConflict:
        fresh = await get_state(db, project_id)
        if fresh is None or (fresh.current_chapter_id, fresh.current_prompt_index) == seen:
            raise
        logger.info(
            "Project %s cursor moved concurrently to chapter %s index %s",
            project_id, fresh.current_chapter_id, fresh.current_prompt_index,
        )
        return fresh, False


async def _resolve_system_prompt(db: AsyncSession, project_id: int) -> DeliveredPrompt | None:
    state = await get_state(db, project_id)
    if state is None:
        first = await catalog.first_active_chapter(db)
        if first is None:
            return None
        state = await create_state(db, project_id, first.id)

    # only our own chapter moves count; re-reads after a lost race do not
    max_steps = await catalog.count_active_chapters(db) + 1
    steps = 0
    while steps < max_steps:
        chapter = await catalog.get_chapter(db, state.current_chapter_id)
        if chapter is None:
            # cursor lost its chapter (deleted); start over from the top of the curriculum
            target = await catalog.first_active_chapter(db)
        else:
            prompts = await _chapter_prompts(db, chapter)
            idx = state.current_prompt_index
            if 0 <= idx < len(prompts):
                return _system_payload(prompts[idx], chapter)
            target = await catalog.next_active_chapter(db, chapter)
            if target is not None:
                logger.debug("Project %s finished chapter %s at index %s", project_id, chapter.id, idx)
        if target is None:
            return None

        state, moved = await _move_or_reread(db, state, target.id)
        if moved:
            steps += 1

    logger.warning("Project %s: no deliverable prompt within %s chapter steps", project_id, max_steps)
    return None


async def get_next_prompt(db: AsyncSession, project_id: int) -> DeliveredPrompt | None:
    """Prompt the storyteller should see next, or None when nothing is available.

    May initialize the project's cursor or move it to a later chapter.
    Raises PromptStateError when a required state write cannot be persisted.
    """
    up = await peek_highest_undelivered(db, project_id)
    if up is not None:
        return _user_payload(up)

    retries = max(0, int(settings.STATE_CONFLICT_RETRIES))
    while True:
        try:
            prompt = await _resolve_system_prompt(db, project_id)
        except PromptStateConflict as exc:
            if retries <= 0:
                logger.error("Giving up on prompt state for project %s: %s", project_id, exc)
                raise PromptStateError(project_id, "Prompt state changed concurrently") from exc
            retries -= 1
            logger.info("Prompt state race for project %s, re-reading: %s", project_id, exc)
            continue
        if prompt is None:
            logger.debug("No prompt available for project %s", project_id)
        return prompt


# ---------------------------------------------
# Acknowledgement
# ---------------------------------------------
async def _current_system_prompt_id(db: AsyncSession, state: ProjectPromptState) -> int | None:
    chapter = await catalog.get_chapter(db, state.current_chapter_id)
    if chapter is None:
        return None
    prompts = await _chapter_prompts(db, chapter)
    idx = state.current_prompt_index
    return prompts[idx].id if 0 <= idx < len(prompts) else None


async def acknowledge_delivery(db: AsyncSession, project_id: int, ack: Acknowledgement) -> bool:
    if isinstance(ack, UserAck):
        ok = await mark_delivered(db, ack.user_prompt_id, project_id=project_id)
        if not ok:
            logger.warning("Ack for unknown user prompt %s in project %s", ack.user_prompt_id, project_id)
        return ok

    if isinstance(ack, SystemAck):
        if settings.VERIFY_SYSTEM_ACK:
            state = await get_state(db, project_id)
            served = await _current_system_prompt_id(db, state) if state else None
            if served != ack.prompt_id:
                logger.warning(
                    "Rejected ack of prompt %s for project %s; cursor is at %s",
                    ack.prompt_id, project_id, served,
                )
                return False
        advanced = await increment_index(db, project_id)
        if not advanced:
            logger.warning("Ack of prompt %s for project %s with no prompt state", ack.prompt_id, project_id)
        return advanced

    raise TypeError(f"Unsupported acknowledgement: {ack!r}")


def acknowledgement_from_flag(prompt_id: int, is_user_prompt: bool) -> Acknowledgement:
    return AcknowledgeRequest(prompt_id=prompt_id, is_user_prompt=is_user_prompt).to_ack()


# ---------------------------------------------
# Caller-facing operations
# ---------------------------------------------
async def next_prompt(db: AsyncSession, project_id: int, caller_id: int) -> NextPromptResponse:
    await ensure_project_access(db, project_id, caller_id)
    prompt = await get_next_prompt(db, project_id)
    return NextPromptResponse(prompt=prompt, is_user_prompt=bool(prompt and prompt.source == "user"))


async def acknowledge(
    db: AsyncSession,
    project_id: int,
    prompt_id: int,
    is_user_prompt: bool,
    caller_id: int,
) -> AckResponse:
    await ensure_project_access(db, project_id, caller_id)
    ack = acknowledgement_from_flag(prompt_id, is_user_prompt)
    return AckResponse(ok=await acknowledge_delivery(db, project_id, ack))


async def get_progress(db: AsyncSession, project_id: int) -> PromptProgress:
    """Where the project's cursor stands. Read-only: never creates or moves state."""
    pending = await count_undelivered(db, project_id)
    state = await get_state(db, project_id)
    if state is None:
        return PromptProgress(project_id=project_id, pending_user_prompts=pending)

    chapter = await catalog.get_chapter(db, state.current_chapter_id)
    prompts = await _chapter_prompts(db, chapter) if chapter is not None else []
    idx = state.current_prompt_index
    exhausted = False
    if chapter is None:
        exhausted = await catalog.first_active_chapter(db) is None
    elif idx >= len(prompts):
        exhausted = await catalog.next_active_chapter(db, chapter) is None

    return PromptProgress(
        project_id=project_id,
        initialized=True,
        chapter=ChapterRef.model_validate(chapter) if chapter is not None else None,
        prompt_index=idx,
        chapter_prompt_count=len(prompts),
        pending_user_prompts=pending,
        exhausted=exhausted,
        last_delivered_at=state.last_delivered_at,
    )
