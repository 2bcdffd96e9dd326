"""Item Store: durable per-item pipeline state.

This module is the only writer of WorkItem rows. Stage actions never touch
the database; the batch runner and completion poller hand their outputs to
the `record_*` / `apply_*` methods here.

Architecture:
- Short transaction pattern: every mutation opens its own transaction, loads
  the row with SELECT ... FOR UPDATE, applies the change and commits. No
  network calls happen while a transaction is open.
- Guards live here, next to the write: duplicate submission, response on an
  irrelevant item, boost without a confirmed submission, and status
  regressions are all rejected before anything is written.
- Eligibility predicates are SQL filters on the explicit `stage` column.

Usage:
    store = ItemStore()  # uses funnel.database.async_session_factory
    items = await store.list_eligible("general", "score")
    await store.record_relevance(item.id, result)
"""

import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from funnel import database
from funnel.exceptions import (
    ConfigurationError,
    DuplicateSubmissionError,
    ItemActionError,
)
from funnel.models import (
    BrandProfile,
    ItemStage,
    JobStatus,
    MonitoringTarget,
    PromptTemplate,
    WorkItem,
    is_forward_transition,
)
from funnel.schemas.content import RawContentItem, RelevanceResult, RemoteStatus
from funnel.utils.logging import get_logger

log = get_logger(__name__)

NON_TERMINAL_JOB_STATUSES = (JobStatus.PENDING, JobStatus.RUNNING)


def _awaiting(column: Any) -> Any:
    return or_(column.is_(None), column.in_(NON_TERMINAL_JOB_STATUSES))


# Stage name → SQL filter selecting the items that stage should process
ELIGIBILITY_PREDICATES: dict[str, Callable[[], Any]] = {
    "score": lambda: WorkItem.stage == ItemStage.DISCOVERED,
    "generate": lambda: and_(
        WorkItem.stage == ItemStage.SCORED,
        WorkItem.is_relevant.is_(True),
        WorkItem.response_text.is_(None),
    ),
    "submit": lambda: and_(
        WorkItem.stage == ItemStage.GENERATED,
        WorkItem.submission_ref.is_(None),
    ),
    "verify_submission": lambda: and_(
        WorkItem.stage == ItemStage.SUBMITTED,
        or_(
            _awaiting(WorkItem.submission_status),
            # completed before the comment URL was published
            and_(
                WorkItem.submission_status == JobStatus.COMPLETED,
                WorkItem.submission_result_url.is_(None),
            ),
        ),
    ),
    "boost": lambda: and_(
        WorkItem.stage == ItemStage.CONFIRMED,
        WorkItem.submission_result_url.is_not(None),
        WorkItem.boost_order_ref.is_(None),
    ),
    "verify_boost": lambda: and_(
        WorkItem.stage == ItemStage.BOOSTED,
        _awaiting(WorkItem.boost_status),
    ),
}


class ItemStore:
    """Async repository for WorkItem state and the pipeline's shared records.

    Args:
        session_factory: Session factory to use. Defaults to the application
            factory in funnel.database (tests inject an SQLite factory).
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._session_factory = session_factory

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        factory = self._session_factory or database.async_session_factory
        if factory is None:
            raise ConfigurationError(
                "Database not configured. Set DATABASE_URL environment variable."
            )
        return factory

    @asynccontextmanager
    async def _locked_item(self, item_id: uuid.UUID) -> AsyncIterator[WorkItem]:
        """Open a short transaction holding a row lock on one item."""
        async with self.session_factory() as db, db.begin():
            item = await db.get(WorkItem, item_id, with_for_update=True)
            if item is None:
                raise ItemActionError("Item not found", item_id=item_id)
            yield item

    # ------------------------------------------------------------------
    # Shared context reads
    # ------------------------------------------------------------------

    async def get_targets(self, tag: str) -> list[MonitoringTarget]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(MonitoringTarget)
                .where(MonitoringTarget.tag == tag)
                .order_by(MonitoringTarget.created_at, MonitoringTarget.id)
            )
            return list(result.scalars().all())

    async def get_brand_profile(self) -> BrandProfile | None:
        async with self.session_factory() as db:
            return await db.get(BrandProfile, 1)

    async def get_prompt_template(self, tag: str) -> PromptTemplate | None:
        async with self.session_factory() as db:
            return await db.get(PromptTemplate, tag)

    # ------------------------------------------------------------------
    # Item reads
    # ------------------------------------------------------------------

    async def get(self, item_id: uuid.UUID) -> WorkItem | None:
        async with self.session_factory() as db:
            return await db.get(WorkItem, item_id)

    async def list_eligible(self, tag: str, stage: str) -> list[WorkItem]:
        """List items of one tag that `stage` should process, in insertion order.

        Args:
            tag: Source tag the run is scoped to
            stage: Key of ELIGIBILITY_PREDICATES

        Raises:
            KeyError: If stage has no eligibility predicate
        """
        predicate = ELIGIBILITY_PREDICATES[stage]()
        async with self.session_factory() as db:
            result = await db.execute(
                select(WorkItem)
                .where(WorkItem.source_tag == tag, predicate)
                .order_by(WorkItem.created_at, WorkItem.id)
            )
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def upsert_discovered(
        self, target: MonitoringTarget, raw: RawContentItem
    ) -> tuple[WorkItem, bool]:
        """Insert a newly discovered item, or refresh the stats of a known one.

        Re-discovery never clears stage fields and never changes the item's
        source tag, even when another tag's target found it.

        Returns:
            (item, created) where created is False for re-discovered items
        """
        for _ in range(2):
            try:
                async with self.session_factory() as db, db.begin():
                    result = await db.execute(
                        select(WorkItem)
                        .where(WorkItem.external_id == raw.external_id)
                        .with_for_update()
                    )
                    existing = result.scalar_one_or_none()
                    if existing is not None:
                        existing.digg_count = raw.digg_count
                        existing.comment_count = raw.comment_count
                        existing.play_count = raw.play_count
                        existing.share_count = raw.share_count
                        return existing, False

                    item = WorkItem(
                        external_id=raw.external_id,
                        source_tag=target.tag,
                        source_type=target.target_type,
                        source_value=target.value,
                        description=raw.description,
                        author_handle=raw.author_handle,
                        cover_url=raw.cover_url,
                        play_url=raw.play_url,
                        posted_at=raw.posted_at,
                        digg_count=raw.digg_count,
                        comment_count=raw.comment_count,
                        play_count=raw.play_count,
                        share_count=raw.share_count,
                        stage=ItemStage.DISCOVERED,
                    )
                    db.add(item)
                    return item, True
            except IntegrityError:
                # Another run inserted the same external_id first; refresh instead
                log.info("discovery_insert_race", external_id=raw.external_id)
        raise ItemActionError(
            f"Could not store discovered item {raw.external_id}", stage="discover"
        )

    async def record_relevance(self, item_id: uuid.UUID, result: RelevanceResult) -> WorkItem:
        """Store a relevance result. Re-analysis of a scored item overwrites it."""
        async with self._locked_item(item_id) as item:
            if item.stage not in (ItemStage.DISCOVERED, ItemStage.SCORED):
                raise ItemActionError(
                    f"Cannot score item in stage {item.stage.value}",
                    item_id=item_id,
                    stage="score",
                )
            item.is_relevant = result.is_relevant
            item.relevance_score = result.relevance_score
            item.relevance_reason = result.reasoning
            item.relevance_source = result.source
            item.stage = ItemStage.SCORED
            return item

    async def record_response(self, item_id: uuid.UUID, text: str) -> WorkItem:
        """Store a generated response. Only relevant, scored items accept one."""
        async with self._locked_item(item_id) as item:
            if item.is_relevant is not True:
                raise ItemActionError(
                    "Response requires a relevant item", item_id=item_id, stage="generate"
                )
            if item.stage != ItemStage.SCORED:
                raise ItemActionError(
                    f"Cannot store response in stage {item.stage.value}",
                    item_id=item_id,
                    stage="generate",
                )
            item.response_text = text
            item.stage = ItemStage.GENERATED
            return item

    async def record_submission(self, item_id: uuid.UUID, external_ref: str) -> WorkItem:
        """Assign the submission's external ref. The ref is immutable once set.

        Raises:
            DuplicateSubmissionError: If the item already has a submission ref
            ItemActionError: If the item has no response to submit
        """
        async with self._locked_item(item_id) as item:
            if item.submission_ref is not None:
                raise DuplicateSubmissionError(item_id, item.submission_ref)
            if item.response_text is None:
                raise ItemActionError(
                    "Submission requires a response", item_id=item_id, stage="submit"
                )
            item.submission_ref = external_ref
            item.submission_status = JobStatus.PENDING
            item.stage = ItemStage.SUBMITTED
            log.info("submission_recorded", item_id=str(item_id), external_ref=external_ref)
            return item

    async def apply_submission_status(self, item_id: uuid.UUID, remote: RemoteStatus) -> bool:
        """Persist a reported submission status if it moves the item forward.

        A completed job without a result URL stays SUBMITTED (and eligible for
        verify_submission) until a later report carries the URL; only then is
        the item CONFIRMED.

        Returns:
            True if anything was written, False for no-ops and regressions
        """
        async with self._locked_item(item_id) as item:
            if (
                item.submission_status == JobStatus.COMPLETED
                and item.stage == ItemStage.SUBMITTED
                and remote.status == JobStatus.COMPLETED
            ):
                if not remote.result_url:
                    return False
                item.submission_result_url = remote.result_url
                item.stage = ItemStage.CONFIRMED
                log.info("submission_result_url_recorded", item_id=str(item_id))
                return True

            if not is_forward_transition(item.submission_status, remote.status):
                if item.submission_status != remote.status:
                    log.warning(
                        "submission_status_regression_ignored",
                        item_id=str(item_id),
                        current=item.submission_status.value if item.submission_status else None,
                        reported=remote.status.value,
                    )
                return False

            item.submission_status = remote.status
            if remote.status == JobStatus.COMPLETED and remote.result_url:
                item.submission_result_url = remote.result_url
                item.stage = ItemStage.CONFIRMED
            elif remote.status == JobStatus.COMPLETED:
                log.info("submission_completed_without_url", item_id=str(item_id))
            elif remote.status == JobStatus.FAILED:
                item.submission_error = remote.error
                item.stage = ItemStage.FAILED
                item.failed_stage = "verify_submission"
            return True

    async def record_boost(self, item_id: uuid.UUID, order_ref: str) -> WorkItem:
        """Assign the boost order ref. At most one boost order per item.

        Raises:
            ItemActionError: If an order already exists or the submission is
                not completed with a result URL
        """
        async with self._locked_item(item_id) as item:
            if item.boost_order_ref is not None:
                raise ItemActionError(
                    f"Item already boosted (order={item.boost_order_ref})",
                    item_id=item_id,
                    stage="boost",
                )
            if item.submission_status != JobStatus.COMPLETED or not item.submission_result_url:
                raise ItemActionError(
                    "Boost requires a completed submission with a result URL",
                    item_id=item_id,
                    stage="boost",
                )
            item.boost_order_ref = order_ref
            item.boost_status = JobStatus.PENDING
            item.stage = ItemStage.BOOSTED
            return item

    async def apply_boost_status(self, item_id: uuid.UUID, remote: RemoteStatus) -> bool:
        """Persist a reported boost status if it moves the order forward.

        A failed order marks the item failed; it is never re-ordered.
        """
        async with self._locked_item(item_id) as item:
            if not is_forward_transition(item.boost_status, remote.status):
                return False

            item.boost_status = remote.status
            if remote.status == JobStatus.FAILED:
                item.stage = ItemStage.FAILED
                item.failed_stage = "verify_boost"
            return True
