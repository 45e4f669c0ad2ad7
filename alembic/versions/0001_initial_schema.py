"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TS = sa.DateTime(timezone=True)


def upgrade() -> None:
    op.create_table(
        "prompts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, index=True),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("category", sa.String(64), nullable=False),
        sa.Column("domain", sa.String(128), nullable=False),
        sa.Column("current_version", sa.String(32), nullable=False),
        sa.Column("ethical_tags", sa.JSON, nullable=False),
        sa.Column("bias_detection_result", sa.JSON, nullable=True),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("updated_at", TS, nullable=False),
    )
    op.create_table(
        "tags",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), unique=True, nullable=False, index=True),
    )
    op.create_table(
        "prompt_tags",
        sa.Column(
            "prompt_id",
            sa.String(36),
            sa.ForeignKey("prompts.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "tag_id",
            sa.Integer,
            sa.ForeignKey("tags.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )
    op.create_table(
        "prompt_versions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "prompt_id",
            sa.String(36),
            sa.ForeignKey("prompts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer, nullable=False),
        sa.Column("version", sa.String(32), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("content_hash", sa.String(64), nullable=False),
        sa.Column("expected_outcome", sa.Text, nullable=False),
        sa.Column("rationale", sa.Text, nullable=False),
        sa.Column("author", sa.String(255), nullable=False),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("last_modified", TS, nullable=False),
        sa.UniqueConstraint("prompt_id", "version", name="uq_prompt_version"),
        sa.UniqueConstraint("prompt_id", "position", name="uq_prompt_version_position"),
    )
    op.create_table(
        "llm_call_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "version_id",
            sa.String(36),
            sa.ForeignKey("prompt_versions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("timestamp", TS, nullable=False),
        sa.Column("input", sa.Text, nullable=False),
        sa.Column("output", sa.Text, nullable=False),
        sa.Column("cost", sa.Float, nullable=False),
        sa.Column("token_usage", sa.Integer, nullable=False),
        sa.Column("success", sa.Boolean, nullable=False),
        sa.Column("error", sa.Text, nullable=True),
    )
    op.create_table(
        "prompt_votes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("prompt_id", sa.String(36), nullable=False, index=True),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("vote_type", sa.String(8), nullable=False),
        sa.Column("created_at", TS, nullable=False),
        sa.UniqueConstraint("prompt_id", "user_id", name="uq_vote_prompt_user"),
    )
    op.create_table(
        "prompt_comments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("prompt_id", sa.String(36), nullable=False, index=True),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("parent_comment_id", sa.String(36), nullable=True, index=True),
        sa.Column("created_at", TS, nullable=False),
    )
    op.create_table(
        "prompt_annotations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("comment_id", sa.String(36), nullable=False, index=True),
        sa.Column("start_position", sa.Integer, nullable=False),
        sa.Column("end_position", sa.Integer, nullable=False),
        sa.Column("annotation_type", sa.String(16), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("created_at", TS, nullable=False),
    )
    op.create_table(
        "shared_libraries",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("owner_id", sa.String(255), nullable=False, index=True),
        sa.Column("is_public", sa.Boolean, nullable=False),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("updated_at", TS, nullable=False),
    )
    op.create_table(
        "library_collaborators",
        sa.Column(
            "library_id",
            sa.String(36),
            sa.ForeignKey("shared_libraries.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("user_id", sa.String(255), primary_key=True),
        sa.Column("added_at", TS, nullable=False),
    )
    op.create_table(
        "library_prompts",
        sa.Column(
            "library_id",
            sa.String(36),
            sa.ForeignKey("shared_libraries.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("prompt_id", sa.String(36), primary_key=True),
        sa.Column("added_at", TS, nullable=False),
    )
    op.create_table(
        "prompt_evaluations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("prompt_id", sa.String(36), nullable=False, index=True),
        sa.Column("version", sa.String(32), nullable=False),
        sa.Column("evaluation_type", sa.String(16), nullable=False),
        sa.Column("score", sa.Float, nullable=False),
        sa.Column("metadata", sa.JSON, nullable=False),
        sa.Column("created_at", TS, nullable=False),
        sa.CheckConstraint("score >= 0 AND score <= 1", name="ck_evaluation_score"),
    )
    op.create_table(
        "cost_analytics",
        sa.Column("prompt_id", sa.String(36), primary_key=True),
        sa.Column("total_cost", sa.Float, nullable=False),
        sa.Column("average_cost_per_call", sa.Float, nullable=False),
        sa.Column("total_calls", sa.Integer, nullable=False),
        sa.Column("input_tokens", sa.Integer, nullable=False),
        sa.Column("output_tokens", sa.Integer, nullable=False),
        sa.Column("model_cost", sa.Float, nullable=False),
        sa.Column("range_start", TS, nullable=False),
        sa.Column("range_end", TS, nullable=False),
    )
    op.create_table(
        "ethical_templates",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), unique=True, nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("template", sa.Text, nullable=False),
        sa.Column("ethical_guidelines", sa.JSON, nullable=False),
        sa.Column("tags", sa.JSON, nullable=False),
        sa.Column("created_at", TS, nullable=False),
    )


def downgrade() -> None:
    op.drop_table("ethical_templates")
    op.drop_table("cost_analytics")
    op.drop_table("prompt_evaluations")
    op.drop_table("library_prompts")
    op.drop_table("library_collaborators")
    op.drop_table("shared_libraries")
    op.drop_table("prompt_annotations")
    op.drop_table("prompt_comments")
    op.drop_table("prompt_votes")
    op.drop_table("llm_call_logs")
    op.drop_table("prompt_versions")
    op.drop_table("prompt_tags")
    op.drop_table("tags")
    op.drop_table("prompts")
