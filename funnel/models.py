"""SQLAlchemy 2.0 ORM models.

This module contains all SQLAlchemy models for the engagement pipeline.
All models use the Mapped[type] annotation pattern required by SQLAlchemy 2.0.

The WorkItem table is the single source of truth for pipeline progress. The
orchestrator never keeps durable state anywhere else: a run that is stopped,
crashes or times out is resumed simply by running again, because every
stage's eligibility predicate reads the item's stored `stage`.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, validates

from funnel.exceptions import InvalidStateTransitionError


def utcnow() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


class TargetType(enum.Enum):
    """Kind of monitored target a discovery query runs against."""

    HASHTAG = "hashtag"
    USERNAME = "username"


class ItemStage(enum.Enum):
    """Explicit per-item pipeline stage.

    Stored on the row so eligibility never has to be inferred from a
    combination of nullable fields.

    Happy Path:
        discovered → scored → generated → submitted → confirmed → boosted

    Scored-but-irrelevant items stay at `scored` forever (generation requires
    is_relevant). `failed` is terminal; `WorkItem.failed_stage` records where.
    """

    DISCOVERED = "discovered"
    SCORED = "scored"
    GENERATED = "generated"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    BOOSTED = "boosted"
    FAILED = "failed"


class JobStatus(enum.Enum):
    """Status of an asynchronous job on a remote platform (comment or boost order)."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_JOB_STATUSES


TERMINAL_JOB_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

# Ordering for monotonic transitions; completed and failed share the top rank
JOB_STATUS_RANK = {
    JobStatus.PENDING: 0,
    JobStatus.RUNNING: 1,
    JobStatus.COMPLETED: 2,
    JobStatus.FAILED: 2,
}


def is_forward_transition(current: JobStatus | None, new: JobStatus) -> bool:
    """Check whether moving from `current` to `new` is a legal forward step.

    Args:
        current: Stored status (None when the job has just been created)
        new: Reported status

    Returns:
        True if `new` strictly advances `current`. Terminal statuses never
        advance, and equal statuses are not transitions.

    Example:
        >>> is_forward_transition(JobStatus.PENDING, JobStatus.RUNNING)
        True
        >>> is_forward_transition(JobStatus.COMPLETED, JobStatus.PENDING)
        False
    """
    if current is None:
        return True
    if current.is_terminal:
        return False
    return JOB_STATUS_RANK[new] > JOB_STATUS_RANK[current]


def _job_status_enum(name: str) -> Enum:
    return Enum(
        JobStatus,
        native_enum=True,
        name=name,
        values_callable=lambda x: [e.value for e in x],
    )


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class MonitoringTarget(Base):
    """A hashtag or account the discovery stage watches.

    Attributes:
        id: Internal UUID primary key.
        target_type: hashtag or username.
        value: Hashtag (without #) or account handle (without @).
        tag: Workflow group the target belongs to (e.g. "general",
            "competitor", "brand"). Runs are scoped to one tag.
        created_at: Timestamp when the target was added.
    """

    __tablename__ = "monitoring_targets"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    target_type: Mapped[TargetType] = mapped_column(
        Enum(
            TargetType,
            native_enum=True,
            name="targettype",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    value: Mapped[str] = mapped_column(String(100), nullable=False)
    tag: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="general",
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
    )

    __table_args__ = (
        UniqueConstraint("target_type", "value", "tag", name="uq_monitoring_target"),
    )

    def __repr__(self) -> str:
        return (
            f"<MonitoringTarget(type={self.target_type.value!r}, value={self.value!r}, "
            f"tag={self.tag!r})>"
        )


class BrandProfile(Base):
    """The brand being promoted. A single row (id=1) is supported.

    Attributes:
        product_name: Product or brand name.
        product_description: What the product does.
        target_audience: Who the product is for.
        persona: Voice used when writing responses.
        account_ref: Submission service account id used to post comments.
        account_handle: Public handle of that account (looked up when missing).
    """

    __tablename__ = "brand_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    product_name: Mapped[str] = mapped_column(String(200), nullable=False)
    product_description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    target_audience: Mapped[str] = mapped_column(Text, nullable=False, default="")
    persona: Mapped[str] = mapped_column(Text, nullable=False, default="")
    account_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)
    account_handle: Mapped[str | None] = mapped_column(String(100), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )

    def brand_context(self) -> str:
        """Render the brand context block handed to scoring and generation."""
        return (
            f"Product: {self.product_name}\n"
            f"Description: {self.product_description}\n"
            f"Target Audience: {self.target_audience}\n"
            f"Persona: {self.persona}"
        )

    @property
    def has_real_account(self) -> bool:
        """True when account_ref is set and is not a placeholder value."""
        return bool(self.account_ref) and "placeholder" not in (self.account_ref or "")

    def __repr__(self) -> str:
        account_info = "set" if self.account_ref else "not_set"
        return f"<BrandProfile(product={self.product_name!r}, account={account_info})>"


class PromptTemplate(Base):
    """Per-tag prompt overrides for scoring and response generation.

    Templates may use {{BRAND_CONTEXT}}, {{VIDEO_DESCRIPTION}} and {{PERSONA}}.
    A missing row or an empty prompt falls back to the built-in default.
    """

    __tablename__ = "prompt_templates"

    tag: Mapped[str] = mapped_column(String(50), primary_key=True)
    relevance_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    response_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<PromptTemplate(tag={self.tag!r})>"


class WorkItem(Base):
    """One discovered content unit (a video) tracked through the pipeline.

    Stage Fields:
        relevance: is_relevant, relevance_score (0-100), relevance_reason
        response: response_text
        submission: submission_ref, submission_status, submission_result_url
        boost: boost_order_ref, boost_status

    Invariants:
        - external_id is the natural dedup key; re-discovery refreshes stats
          only and never clears stage fields
        - submission_ref is immutable once assigned
        - submission_status and boost_status only move forward
          (see is_forward_transition); enforced by @validates

    Indexes:
        - ix_work_items_external_id: unique natural key
        - ix_work_items_tag_stage: eligibility queries per run
    """

    __tablename__ = "work_items"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    external_id: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        index=True,
    )

    # Provenance
    source_tag: Mapped[str] = mapped_column(String(50), nullable=False)
    source_type: Mapped[TargetType] = mapped_column(
        Enum(
            TargetType,
            native_enum=True,
            name="targettype",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    source_value: Mapped[str] = mapped_column(String(100), nullable=False)

    # Content (from discovery)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    author_handle: Mapped[str] = mapped_column(String(100), nullable=False, default="unknown")
    cover_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    play_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    posted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Engagement counters (informational, refreshed on re-discovery)
    digg_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    comment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    play_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    share_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Explicit pipeline stage
    stage: Mapped[ItemStage] = mapped_column(
        Enum(
            ItemStage,
            native_enum=True,
            name="itemstage",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=ItemStage.DISCOVERED,
    )
    failed_stage: Mapped[str | None] = mapped_column(String(30), nullable=True)

    # Relevance
    is_relevant: Mapped[bool | None] = mapped_column(nullable=True)
    relevance_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    relevance_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    relevance_source: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Response
    response_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Submission (asynchronous comment on the remote platform)
    submission_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)
    submission_status: Mapped[JobStatus | None] = mapped_column(
        _job_status_enum("jobstatus"),
        nullable=True,
    )
    submission_result_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    submission_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Boost (engagement order on the posted comment)
    boost_order_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)
    boost_status: Mapped[JobStatus | None] = mapped_column(
        _job_status_enum("jobstatus"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    __table_args__ = (
        Index("ix_work_items_tag_stage", "source_tag", "stage"),
        CheckConstraint(
            "relevance_score IS NULL OR (relevance_score >= 0 AND relevance_score <= 100)",
            name="ck_work_items_relevance_score_range",
        ),
    )

    @validates("submission_status", "boost_status")
    def validate_job_status(self, key: str, value: JobStatus | None) -> JobStatus | None:
        """Reject status regressions on submission and boost jobs.

        Args:
            key: "submission_status" or "boost_status"
            value: Reported status being assigned

        Returns:
            The value if the transition is forward (or a no-op re-assignment).

        Raises:
            InvalidStateTransitionError: If the assignment would move the job
                backwards or out of a terminal state.
        """
        current = getattr(self, key)
        if value is None or current is None or current == value:
            return value

        if not is_forward_transition(current, value):
            raise InvalidStateTransitionError(
                f"Invalid {key} transition: {current.value} → {value.value}",
                from_status=current,
                to_status=value,
            )
        return value

    @property
    def post_url(self) -> str:
        """Public URL of the content on the remote platform."""
        return f"https://www.tiktok.com/@{self.author_handle}/video/{self.external_id}"

    def __repr__(self) -> str:
        return (
            f"<WorkItem(id={self.id!s:.8}, external_id={self.external_id!r}, "
            f"stage={self.stage.value!r}, tag={self.source_tag!r})>"
        )
