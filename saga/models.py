from datetime import datetime, timezone
import enum

from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, Text, DateTime, func,
    UniqueConstraint, Index, JSON,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# JSONB on Postgres, plain JSON elsewhere (tests run on SQLite)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class RoleStatus(str, enum.Enum):
    active = "active"
    pending = "pending"
    removed = "removed"


class InteractionType(str, enum.Enum):
    comment = "comment"
    followup = "followup"


# ---------------------------
# USERS / PROJECTS
# ---------------------------
class User(Base):
    __tablename__ = "user"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    display_name = Column(String(128), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())


class Project(Base):
    __tablename__ = "project"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    created_by = Column(Integer, ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    roles = relationship("ProjectRole", back_populates="project", cascade="all, delete-orphan")
    prompt_state = relationship(
        "ProjectPromptState",
        back_populates="project",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ProjectRole(Base):
    __tablename__ = "project_role"

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey("project.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("user.id", ondelete="CASCADE"), index=True, nullable=False)
    role = Column(String(32), nullable=False, default="storyteller")  # facilitator|storyteller
    status = Column(SAEnum(RoleStatus), default=RoleStatus.active, nullable=False)

    project = relationship("Project", back_populates="roles")

    __table_args__ = (UniqueConstraint("project_id", "user_id", name="uq_project_role_user"),)


# ---------------------------
# CURRICULUM (read-only here)
# ---------------------------
class Chapter(Base):
    __tablename__ = "chapter"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    order_index = Column(Integer, nullable=False, default=0)  # lower = earlier
    is_active = Column(Boolean, nullable=False, default=True)

    prompts = relationship(
        "Prompt",
        back_populates="chapter",
        order_by="Prompt.order_index.asc()",
    )

    __table_args__ = (Index("ix_chapter_active_order", "is_active", "order_index"),)

    def __repr__(self):
        return f"<Chapter {self.id} #{self.order_index} {self.name!r}>"


class Prompt(Base):
    __tablename__ = "prompt"

    id = Column(Integer, primary_key=True, index=True)
    chapter_id = Column(Integer, ForeignKey("chapter.id", ondelete="CASCADE"), index=True, nullable=False)
    order_index = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    text = Column(Text, nullable=False)
    meta = Column("metadata", JSONType, nullable=True)  # tags, audio url, ...
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    chapter = relationship("Chapter", back_populates="prompts")

    def __repr__(self):
        return f"<Prompt {self.id} ch={self.chapter_id} #{self.order_index}>"


# ---------------------------
# DELIVERY STATE
# ---------------------------
class ProjectPromptState(Base):
    __tablename__ = "project_prompt_state"

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey("project.id", ondelete="CASCADE"), nullable=False)
    current_chapter_id = Column(Integer, ForeignKey("chapter.id", ondelete="SET NULL"), nullable=True)
    # next index to serve; may run past the end of the chapter (= exhausted)
    current_prompt_index = Column(Integer, nullable=False, default=0)
    last_delivered_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now())

    project = relationship("Project", back_populates="prompt_state")
    current_chapter = relationship("Chapter")

    __table_args__ = (UniqueConstraint("project_id", name="uq_project_prompt_state_project"),)


class UserPrompt(Base):
    __tablename__ = "user_prompts"

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey("project.id", ondelete="CASCADE"), index=True, nullable=False)
    text = Column(Text, nullable=False)
    priority = Column(Integer, nullable=False, default=0)  # higher = more urgent
    created_by = Column(Integer, ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    parent_story_id = Column(Integer, ForeignKey("story.id", ondelete="SET NULL"), nullable=True)
    source_interaction_id = Column(Integer, ForeignKey("interaction.id", ondelete="SET NULL"), nullable=True)
    is_delivered = Column(Boolean, nullable=False, default=False)  # false -> true only
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    parent_story = relationship("Story", foreign_keys=[parent_story_id])
    creator = relationship("User", foreign_keys=[created_by])

    __table_args__ = (
        UniqueConstraint("source_interaction_id", name="uq_user_prompt_source_interaction"),
        Index("ix_user_prompts_queue", "project_id", "is_delivered", "priority", "created_at"),
    )


# ---------------------------
# STORIES / INTERACTIONS
# ---------------------------
class Story(Base):
    __tablename__ = "story"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("project.id", ondelete="CASCADE"), index=True, nullable=False)
    storyteller_id = Column(Integer, ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(200), nullable=True)
    content = Column(Text, nullable=True)
    prompt_id = Column(Integer, ForeignKey("prompt.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    interactions = relationship(
        "Interaction",
        back_populates="story",
        foreign_keys="Interaction.story_id",
        cascade="all, delete-orphan",
    )


class Interaction(Base):
    __tablename__ = "interaction"

    id = Column(Integer, primary_key=True, index=True)
    story_id = Column(Integer, ForeignKey("story.id", ondelete="CASCADE"), index=True, nullable=False)
    facilitator_id = Column(Integer, ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    type = Column(String(16), nullable=False)  # comment|followup
    content = Column(Text, nullable=False)
    answered_at = Column(DateTime(timezone=True), nullable=True)
    answer_story_id = Column(Integer, ForeignKey("story.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    story = relationship("Story", back_populates="interactions", foreign_keys=[story_id])
