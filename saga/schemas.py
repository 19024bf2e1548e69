from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel


# =========================
# REFERENCE SCHEMAS
# =========================
class ChapterRef(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    order_index: int

    class Config:
        from_attributes = True


class StoryRef(BaseModel):
    id: int
    title: Optional[str] = None

    class Config:
        from_attributes = True


# =========================
# DELIVERED PROMPT
# =========================
PromptSource = Literal["system", "user"]


class DeliveredPrompt(BaseModel):
    id: int
    text: str
    source: PromptSource
    # system prompts
    chapter_ref: Optional[ChapterRef] = None
    order_index: Optional[int] = None
    # user prompts
    parent_story_ref: Optional[StoryRef] = None
    priority: Optional[int] = None
    created_by: Optional[int] = None
    creator_name: Optional[str] = None
    created_at: Optional[datetime] = None


class NextPromptResponse(BaseModel):
    prompt: Optional[DeliveredPrompt] = None
    is_user_prompt: bool = False


# =========================
# ACKNOWLEDGEMENT
# =========================
@dataclass(frozen=True, slots=True)
class SystemAck:
    """The curriculum prompt at the cursor was shown."""
    prompt_id: int


@dataclass(frozen=True, slots=True)
class UserAck:
    """A queued user prompt was shown."""
    user_prompt_id: int


Acknowledgement = Union[SystemAck, UserAck]


class AcknowledgeRequest(BaseModel):
    prompt_id: int
    is_user_prompt: bool = False

    def to_ack(self) -> Acknowledgement:
        if self.is_user_prompt:
            return UserAck(user_prompt_id=self.prompt_id)
        return SystemAck(prompt_id=self.prompt_id)


class AckResponse(BaseModel):
    ok: bool


# =========================
# PROGRESS
# =========================
class PromptProgress(BaseModel):
    project_id: int
    initialized: bool = False
    chapter: Optional[ChapterRef] = None
    prompt_index: int = 0
    chapter_prompt_count: int = 0
    pending_user_prompts: int = 0
    exhausted: bool = False
    last_delivered_at: Optional[datetime] = None
