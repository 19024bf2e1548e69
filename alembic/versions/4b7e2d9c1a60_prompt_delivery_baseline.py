"""prompt delivery baseline

Revision ID: 4b7e2d9c1a60
Revises:
Create Date: 2026-10-19 09:12:04.118230
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "4b7e2d9c1a60"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(length=128), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
    )
    op.create_index("ix_user_id", "user", ["id"])
    op.create_index("ix_user_email", "user", ["email"], unique=True)

    op.create_table(
        "project",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("user.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
    )
    op.create_index("ix_project_id", "project", ["id"])

    op.create_table(
        "project_role",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("project.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="storyteller"),
        sa.Column(
            "status",
            sa.Enum("active", "pending", "removed", name="rolestatus"),
            nullable=False,
            server_default="active",
        ),
        sa.UniqueConstraint("project_id", "user_id", name="uq_project_role_user"),
    )
    op.create_index("ix_project_role_project_id", "project_role", ["project_id"])
    op.create_index("ix_project_role_user_id", "project_role", ["user_id"])

    op.create_table(
        "chapter",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_chapter_id", "chapter", ["id"])
    op.create_index("ix_chapter_active_order", "chapter", ["is_active", "order_index"])

    op.create_table(
        "prompt",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("chapter_id", sa.Integer(), sa.ForeignKey("chapter.id", ondelete="CASCADE"), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
    )
    op.create_index("ix_prompt_id", "prompt", ["id"])
    op.create_index("ix_prompt_chapter_id", "prompt", ["chapter_id"])

    op.create_table(
        "project_prompt_state",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("project.id", ondelete="CASCADE"), nullable=False),
        sa.Column("current_chapter_id", sa.Integer(), sa.ForeignKey("chapter.id", ondelete="SET NULL"), nullable=True),
        sa.Column("current_prompt_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.UniqueConstraint("project_id", name="uq_project_prompt_state_project"),
    )

    op.create_table(
        "story",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("project.id", ondelete="CASCADE"), nullable=False),
        sa.Column("storyteller_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="SET NULL"), nullable=True),
        sa.Column("title", sa.String(length=200), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("prompt_id", sa.Integer(), sa.ForeignKey("prompt.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
    )
    op.create_index("ix_story_id", "story", ["id"])
    op.create_index("ix_story_project_id", "story", ["project_id"])

    op.create_table(
        "interaction",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("story_id", sa.Integer(), sa.ForeignKey("story.id", ondelete="CASCADE"), nullable=False),
        sa.Column("facilitator_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="SET NULL"), nullable=True),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("answered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("answer_story_id", sa.Integer(), sa.ForeignKey("story.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
    )
    op.create_index("ix_interaction_id", "interaction", ["id"])
    op.create_index("ix_interaction_story_id", "interaction", ["story_id"])

    op.create_table(
        "user_prompts",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("project.id", ondelete="CASCADE"), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("user.id", ondelete="SET NULL"), nullable=True),
        sa.Column("parent_story_id", sa.Integer(), sa.ForeignKey("story.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "source_interaction_id",
            sa.Integer(),
            sa.ForeignKey("interaction.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("is_delivered", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.UniqueConstraint("source_interaction_id", name="uq_user_prompt_source_interaction"),
    )
    op.create_index("ix_user_prompts_project_id", "user_prompts", ["project_id"])
    op.create_index(
        "ix_user_prompts_queue",
        "user_prompts",
        ["project_id", "is_delivered", "priority", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_user_prompts_queue", table_name="user_prompts")
    op.drop_index("ix_user_prompts_project_id", table_name="user_prompts")
    op.drop_table("user_prompts")
    op.drop_index("ix_interaction_story_id", table_name="interaction")
    op.drop_index("ix_interaction_id", table_name="interaction")
    op.drop_table("interaction")
    op.drop_index("ix_story_project_id", table_name="story")
    op.drop_index("ix_story_id", table_name="story")
    op.drop_table("story")
    op.drop_table("project_prompt_state")
    op.drop_index("ix_prompt_chapter_id", table_name="prompt")
    op.drop_index("ix_prompt_id", table_name="prompt")
    op.drop_table("prompt")
    op.drop_index("ix_chapter_active_order", table_name="chapter")
    op.drop_index("ix_chapter_id", table_name="chapter")
    op.drop_table("chapter")
    op.drop_index("ix_project_role_user_id", table_name="project_role")
    op.drop_index("ix_project_role_project_id", table_name="project_role")
    op.drop_table("project_role")
    sa.Enum(name="rolestatus").drop(op.get_bind(), checkfirst=True)
    op.drop_index("ix_project_id", table_name="project")
    op.drop_table("project")
    op.drop_index("ix_user_email", table_name="user")
    op.drop_index("ix_user_id", table_name="user")
    op.drop_table("user")
