"""001 initial pipeline tables

Revision ID: 001_initial_pipeline
Revises:
Create Date: 2026-10-19

Creates the four pipeline tables:
    - monitoring_targets: hashtags/accounts watched per tag
    - brand_profiles: the single brand profile row (id=1)
    - prompt_templates: per-tag prompt overrides
    - work_items: one row per discovered video with its explicit stage
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial_pipeline"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

target_type = postgresql.ENUM("hashtag", "username", name="targettype", create_type=False)
item_stage = postgresql.ENUM(
    "discovered",
    "scored",
    "generated",
    "submitted",
    "confirmed",
    "boosted",
    "failed",
    name="itemstage",
    create_type=False,
)
job_status = postgresql.ENUM(
    "pending", "running", "completed", "failed", name="jobstatus", create_type=False
)


def upgrade() -> None:
    """Create enum types and pipeline tables."""
    bind = op.get_bind()
    # Types are shared between columns, so create them once up front
    target_type.create(bind, checkfirst=True)
    item_stage.create(bind, checkfirst=True)
    job_status.create(bind, checkfirst=True)

    op.create_table(
        "monitoring_targets",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("target_type", target_type, nullable=False),
        sa.Column("value", sa.String(100), nullable=False),
        sa.Column("tag", sa.String(50), nullable=False, server_default="general"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("target_type", "value", "tag", name="uq_monitoring_target"),
    )
    op.create_index("ix_monitoring_targets_tag", "monitoring_targets", ["tag"])

    op.create_table(
        "brand_profiles",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(200), nullable=False),
        sa.Column("product_description", sa.Text(), nullable=False, server_default=""),
        sa.Column("target_audience", sa.Text(), nullable=False, server_default=""),
        sa.Column("persona", sa.Text(), nullable=False, server_default=""),
        sa.Column("account_ref", sa.String(100), nullable=True),
        sa.Column("account_handle", sa.String(100), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "prompt_templates",
        sa.Column("tag", sa.String(50), nullable=False),
        sa.Column("relevance_prompt", sa.Text(), nullable=True),
        sa.Column("response_prompt", sa.Text(), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("tag"),
    )

    op.create_table(
        "work_items",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("external_id", sa.String(64), nullable=False),
        sa.Column("source_tag", sa.String(50), nullable=False),
        sa.Column("source_type", target_type, nullable=False),
        sa.Column("source_value", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("author_handle", sa.String(100), nullable=False, server_default="unknown"),
        sa.Column("cover_url", sa.Text(), nullable=True),
        sa.Column("play_url", sa.Text(), nullable=True),
        sa.Column("posted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("digg_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("comment_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("play_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("share_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("stage", item_stage, nullable=False, server_default="discovered"),
        sa.Column("failed_stage", sa.String(30), nullable=True),
        sa.Column("is_relevant", sa.Boolean(), nullable=True),
        sa.Column("relevance_score", sa.Integer(), nullable=True),
        sa.Column("relevance_reason", sa.Text(), nullable=True),
        sa.Column("relevance_source", sa.String(20), nullable=True),
        sa.Column("response_text", sa.Text(), nullable=True),
        sa.Column("submission_ref", sa.String(100), nullable=True),
        sa.Column("submission_status", job_status, nullable=True),
        sa.Column("submission_result_url", sa.Text(), nullable=True),
        sa.Column("submission_error", sa.Text(), nullable=True),
        sa.Column("boost_order_ref", sa.String(100), nullable=True),
        sa.Column("boost_status", job_status, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "relevance_score IS NULL OR (relevance_score >= 0 AND relevance_score <= 100)",
            name="ck_work_items_relevance_score_range",
        ),
    )
    op.create_index("ix_work_items_external_id", "work_items", ["external_id"], unique=True)
    op.create_index("ix_work_items_tag_stage", "work_items", ["source_tag", "stage"])


def downgrade() -> None:
    """Drop pipeline tables and enum types."""
    op.drop_index("ix_work_items_tag_stage", table_name="work_items")
    op.drop_index("ix_work_items_external_id", table_name="work_items")
    op.drop_table("work_items")
    op.drop_table("prompt_templates")
    op.drop_table("brand_profiles")
    op.drop_index("ix_monitoring_targets_tag", table_name="monitoring_targets")
    op.drop_table("monitoring_targets")

    bind = op.get_bind()
    job_status.drop(bind, checkfirst=True)
    item_stage.drop(bind, checkfirst=True)
    target_type.drop(bind, checkfirst=True)
