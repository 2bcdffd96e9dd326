"""Tests for the Item Store.

Tests cover:
- Discovery dedup on external_id (stats refresh only)
- Eligibility predicates per stage
- Stage guards on record_* methods
- Duplicate submission rejection
- Monotonic status application (regressions ignored)
"""

import uuid

import pytest

from funnel.exceptions import ConfigurationError, DuplicateSubmissionError, ItemActionError
from funnel.models import ItemStage, JobStatus
from funnel.schemas.content import RelevanceResult, RemoteStatus
from funnel.services.item_store import ItemStore
from tests.support.factories import (
    add_all,
    create_brand,
    create_raw_item,
    create_target,
    create_work_item,
)


def _relevance(is_relevant: bool = True, score: int = 80) -> RelevanceResult:
    return RelevanceResult(is_relevant=is_relevant, relevance_score=score, reasoning="test")


class TestConfiguration:
    """Tests for ItemStore wiring."""

    def test_missing_database_raises_configuration_error(self, monkeypatch):
        """[P1] Without a session factory the store reports missing config."""
        monkeypatch.setattr("funnel.database.async_session_factory", None)

        with pytest.raises(ConfigurationError, match="DATABASE_URL"):
            _ = ItemStore().session_factory


class TestUpsertDiscovered:
    """Tests for ItemStore.upsert_discovered."""

    @pytest.mark.asyncio
    async def test_creates_new_item(self, store, session_factory):
        """[P1] A new external_id creates a discovered item with provenance."""
        target = create_target("skincare", "general")
        await add_all(session_factory, target)

        item, created = await store.upsert_discovered(
            target, create_raw_item("v1", "Serum routine", digg_count=5)
        )

        assert created is True
        assert item.stage == ItemStage.DISCOVERED
        assert item.source_tag == "general"
        assert item.source_value == "skincare"
        assert item.digg_count == 5

    @pytest.mark.asyncio
    async def test_rediscovery_refreshes_stats_only(self, store, session_factory):
        """[P0] Re-discovery never clears stage fields.

        GIVEN: An item that has already been submitted
        WHEN: The same external_id is discovered again by another tag
        THEN: Only engagement counters change
        """
        existing = create_work_item(
            external_id="v1",
            stage=ItemStage.SUBMITTED,
            is_relevant=True,
            relevance_score=80,
            response_text="Nice!",
            submission_ref="c1",
            submission_status=JobStatus.PENDING,
            digg_count=1,
        )
        await add_all(session_factory, existing)

        item, created = await store.upsert_discovered(
            create_target("other", "competitor"),
            create_raw_item("v1", "changed text", digg_count=99),
        )

        assert created is False
        reloaded = await store.get(existing.id)
        assert reloaded.digg_count == 99
        assert reloaded.stage == ItemStage.SUBMITTED
        assert reloaded.submission_ref == "c1"
        assert reloaded.response_text == "Nice!"
        assert reloaded.source_tag == "general"
        assert reloaded.description == existing.description


class TestListEligible:
    """Tests for ItemStore.list_eligible."""

    @pytest.mark.asyncio
    async def test_filters_by_tag_and_stage(self, store, session_factory):
        """[P1] Each stage sees only its own items for the run's tag."""
        await add_all(
            session_factory,
            create_work_item("d1", tag="general", stage=ItemStage.DISCOVERED),
            create_work_item("d2", tag="competitor", stage=ItemStage.DISCOVERED),
            create_work_item("s1", stage=ItemStage.SCORED, is_relevant=True),
            create_work_item("s2", stage=ItemStage.SCORED, is_relevant=False),
        )

        score = await store.list_eligible("general", "score")
        generate = await store.list_eligible("general", "generate")

        assert [i.external_id for i in score] == ["d1"]
        assert [i.external_id for i in generate] == ["s1"]

    @pytest.mark.asyncio
    async def test_verify_stages_exclude_terminal_jobs(self, store, session_factory):
        """[P1] Only pending/running jobs are polled."""
        await add_all(
            session_factory,
            create_work_item(
                "p1",
                stage=ItemStage.SUBMITTED,
                submission_ref="c1",
                submission_status=JobStatus.PENDING,
            ),
            create_work_item(
                "r1",
                stage=ItemStage.SUBMITTED,
                submission_ref="c2",
                submission_status=JobStatus.RUNNING,
            ),
            create_work_item(
                "b1",
                stage=ItemStage.BOOSTED,
                boost_order_ref="o1",
                boost_status=JobStatus.COMPLETED,
            ),
        )

        verify = await store.list_eligible("general", "verify_submission")
        verify_boost = await store.list_eligible("general", "verify_boost")

        assert sorted(i.external_id for i in verify) == ["p1", "r1"]
        assert verify_boost == []

    @pytest.mark.asyncio
    async def test_unknown_stage_raises(self, store):
        with pytest.raises(KeyError):
            await store.list_eligible("general", "publish")


class TestStageRecords:
    """Tests for record_relevance, record_response and record_submission."""

    @pytest.mark.asyncio
    async def test_record_relevance_moves_to_scored(self, store, session_factory):
        item = create_work_item()
        await add_all(session_factory, item)

        updated = await store.record_relevance(item.id, _relevance(score=65))

        assert updated.stage == ItemStage.SCORED
        assert updated.relevance_score == 65
        assert updated.relevance_source == "llm"

    @pytest.mark.asyncio
    async def test_record_relevance_rejects_later_stage(self, store, session_factory):
        """[P1] Submitted items are never re-scored."""
        item = create_work_item(stage=ItemStage.SUBMITTED)
        await add_all(session_factory, item)

        with pytest.raises(ItemActionError, match="Cannot score"):
            await store.record_relevance(item.id, _relevance())

    @pytest.mark.asyncio
    async def test_record_response_requires_relevant(self, store, session_factory):
        """[P0] Irrelevant items never get a response."""
        item = create_work_item(stage=ItemStage.SCORED, is_relevant=False)
        await add_all(session_factory, item)

        with pytest.raises(ItemActionError, match="relevant"):
            await store.record_response(item.id, "Nice!")

    @pytest.mark.asyncio
    async def test_record_submission_sets_pending(self, store, session_factory):
        item = create_work_item(stage=ItemStage.GENERATED, is_relevant=True, response_text="Hi")
        await add_all(session_factory, item)

        updated = await store.record_submission(item.id, "c1")

        assert updated.submission_ref == "c1"
        assert updated.submission_status == JobStatus.PENDING
        assert updated.stage == ItemStage.SUBMITTED

    @pytest.mark.asyncio
    async def test_duplicate_submission_is_rejected(self, store, session_factory):
        """[P0] A second submission leaves the original ref unchanged.

        GIVEN: An item with submission ref r1
        WHEN: record_submission is called again with r2
        THEN: DuplicateSubmissionError is raised and the stored ref is still r1
        """
        item = create_work_item(
            stage=ItemStage.SUBMITTED,
            response_text="Hi",
            submission_ref="r1",
            submission_status=JobStatus.PENDING,
        )
        await add_all(session_factory, item)

        with pytest.raises(DuplicateSubmissionError):
            await store.record_submission(item.id, "r2")

        reloaded = await store.get(item.id)
        assert reloaded.submission_ref == "r1"

    @pytest.mark.asyncio
    async def test_unknown_item_raises(self, store):
        with pytest.raises(ItemActionError, match="not found"):
            await store.record_response(uuid.uuid4(), "Hi")


class TestApplyStatus:
    """Tests for apply_submission_status, record_boost and apply_boost_status."""

    async def _submitted(self, session_factory, status=JobStatus.PENDING):
        item = create_work_item(
            stage=ItemStage.SUBMITTED,
            response_text="Hi",
            submission_ref="c1",
            submission_status=status,
        )
        await add_all(session_factory, item)
        return item

    @pytest.mark.asyncio
    async def test_completed_confirms_item(self, store, session_factory):
        """[P1] Completion stores the result URL and confirms the item."""
        item = await self._submitted(session_factory)

        written = await store.apply_submission_status(
            item.id, RemoteStatus(status=JobStatus.COMPLETED, result_url="https://c/1")
        )

        assert written is True
        reloaded = await store.get(item.id)
        assert reloaded.stage == ItemStage.CONFIRMED
        assert reloaded.submission_result_url == "https://c/1"

    @pytest.mark.asyncio
    async def test_completed_without_url_stays_submitted(self, store, session_factory):
        """[P0] A comment completed before its URL exists is not confirmed yet.

        GIVEN: A submitted item
        WHEN: The job reports completed without a comment URL, then with one
        THEN: The item stays SUBMITTED and eligible for verification until the
              URL arrives, and is then CONFIRMED and eligible for boosting
        """
        item = await self._submitted(session_factory)

        written = await store.apply_submission_status(
            item.id, RemoteStatus(status=JobStatus.COMPLETED)
        )

        assert written is True
        reloaded = await store.get(item.id)
        assert reloaded.stage == ItemStage.SUBMITTED
        assert reloaded.submission_status == JobStatus.COMPLETED
        assert reloaded.submission_result_url is None
        verify = await store.list_eligible("general", "verify_submission")
        assert [i.id for i in verify] == [item.id]
        assert await store.list_eligible("general", "boost") == []

        assert await store.apply_submission_status(
            item.id, RemoteStatus(status=JobStatus.COMPLETED)
        ) is False

        written = await store.apply_submission_status(
            item.id, RemoteStatus(status=JobStatus.COMPLETED, result_url="https://c/1")
        )

        assert written is True
        reloaded = await store.get(item.id)
        assert reloaded.stage == ItemStage.CONFIRMED
        assert reloaded.submission_result_url == "https://c/1"
        assert await store.list_eligible("general", "verify_submission") == []
        assert [i.id for i in await store.list_eligible("general", "boost")] == [item.id]

    @pytest.mark.asyncio
    async def test_failed_marks_item_failed(self, store, session_factory):
        item = await self._submitted(session_factory)

        await store.apply_submission_status(
            item.id, RemoteStatus(status=JobStatus.FAILED, error="Post deleted")
        )

        reloaded = await store.get(item.id)
        assert reloaded.stage == ItemStage.FAILED
        assert reloaded.failed_stage == "verify_submission"
        assert reloaded.submission_error == "Post deleted"

    @pytest.mark.asyncio
    async def test_regression_is_ignored(self, store, session_factory):
        """[P0] A stale status never moves a job backwards."""
        item = await self._submitted(session_factory, status=JobStatus.RUNNING)

        written = await store.apply_submission_status(
            item.id, RemoteStatus(status=JobStatus.PENDING)
        )

        assert written is False
        reloaded = await store.get(item.id)
        assert reloaded.submission_status == JobStatus.RUNNING

    @pytest.mark.asyncio
    async def test_same_status_is_noop(self, store, session_factory):
        item = await self._submitted(session_factory)

        assert await store.apply_submission_status(
            item.id, RemoteStatus(status=JobStatus.PENDING)
        ) is False

    @pytest.mark.asyncio
    async def test_boost_requires_confirmed_submission(self, store, session_factory):
        """[P0] No boost without a completed submission."""
        item = await self._submitted(session_factory)

        with pytest.raises(ItemActionError, match="completed submission"):
            await store.record_boost(item.id, "o1")

    @pytest.mark.asyncio
    async def test_boost_only_once(self, store, session_factory):
        """[P0] At most one boost order per item."""
        item = create_work_item(
            stage=ItemStage.CONFIRMED,
            submission_ref="c1",
            submission_status=JobStatus.COMPLETED,
            submission_result_url="https://c/1",
        )
        await add_all(session_factory, item)

        boosted = await store.record_boost(item.id, "o1")
        assert boosted.stage == ItemStage.BOOSTED
        assert boosted.boost_status == JobStatus.PENDING

        with pytest.raises(ItemActionError, match="already boosted"):
            await store.record_boost(item.id, "o2")

    @pytest.mark.asyncio
    async def test_failed_boost_marks_item_failed(self, store, session_factory):
        item = create_work_item(
            stage=ItemStage.BOOSTED,
            submission_status=JobStatus.COMPLETED,
            boost_order_ref="o1",
            boost_status=JobStatus.RUNNING,
        )
        await add_all(session_factory, item)

        await store.apply_boost_status(item.id, RemoteStatus(status=JobStatus.FAILED))

        reloaded = await store.get(item.id)
        assert reloaded.stage == ItemStage.FAILED
        assert reloaded.failed_stage == "verify_boost"


class TestSharedReads:
    """Tests for targets, brand profile and prompt reads."""

    @pytest.mark.asyncio
    async def test_get_targets_scoped_by_tag(self, store, session_factory):
        await add_all(
            session_factory,
            create_target("skincare", "general"),
            create_target("rival", "competitor"),
        )

        targets = await store.get_targets("general")

        assert [t.value for t in targets] == ["skincare"]

    @pytest.mark.asyncio
    async def test_brand_profile(self, store, session_factory):
        assert await store.get_brand_profile() is None

        await add_all(session_factory, create_brand())

        brand = await store.get_brand_profile()
        assert brand.product_name == "GlowSerum"
