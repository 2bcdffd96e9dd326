"""Stage actions: one unit of work per item per pipeline stage.

Each action is an async callable taking a single subject (a WorkItem, or a
MonitoringTarget for discovery) and returning a StageResult. Actions:
- read the subject plus a StageContext captured once per batch
- call exactly one collaborator
- never write to the Item Store (the batch runner persists outputs)
- never raise for collaborator failures: ExternalServiceError and
  ItemActionError are returned as StageResult.failure(...)

Collaborators are described by Protocols so tests can pass plain stubs.
"""

from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar

from funnel.exceptions import DuplicateSubmissionError, ExternalServiceError, ItemActionError
from funnel.models import BrandProfile, JobStatus, MonitoringTarget, TargetType, WorkItem
from funnel.schemas.content import (
    BoostReceipt,
    RawContentItem,
    RelevanceResult,
    RemoteStatus,
    SubmissionReceipt,
)

T = TypeVar("T")


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """Success with an output, or failure with an ItemActionError."""

    output: T | None = None
    error: ItemActionError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, output: T) -> "StageResult[T]":
        return cls(output=output)

    @classmethod
    def failure(cls, error: ItemActionError) -> "StageResult[T]":
        return cls(error=error)


@dataclass(frozen=True)
class StageContext:
    """Shared, read-only context for one batch.

    Built by the orchestrator before a stage starts; a missing piece raises
    ConfigurationError there, so actions can rely on what they need being set.
    """

    brand: BrandProfile
    relevance_prompt: str | None = None
    response_prompt: str | None = None
    account_handle: str | None = None
    boost_quantity: int = 100

    @property
    def brand_context(self) -> str:
        return self.brand.brand_context()


# ---------------------------------------------------------------------------
# Collaborator contracts
# ---------------------------------------------------------------------------


class DiscoveryService(Protocol):
    async def discover(
        self, target_type: TargetType, value: str, limit: int
    ) -> list[RawContentItem]: ...


class RelevanceService(Protocol):
    async def score(
        self, description: str, brand_context: str, prompt: str | None = None
    ) -> RelevanceResult: ...


class ResponseService(Protocol):
    async def generate(
        self,
        description: str,
        brand_context: str,
        persona: str,
        prompt: str | None = None,
    ) -> str: ...


class SubmissionService(Protocol):
    async def submit(self, account_ref: str, post_url: str, text: str) -> str: ...

    async def check_status(self, external_ref: str) -> RemoteStatus: ...

    async def get_account_handle(self, account_ref: str) -> str | None: ...


class BoostService(Protocol):
    async def boost(self, result_url: str, author_handle: str, quantity: int) -> str: ...

    async def check_order(self, order_ref: str) -> RemoteStatus: ...


def _service_failure(error: ExternalServiceError, item_id: object, stage: str) -> ItemActionError:
    return ItemActionError(str(error), item_id=item_id, stage=stage)


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


class DiscoverAction:
    """Fetch raw content for one monitored target."""

    stage = "discover"

    def __init__(self, service: DiscoveryService, limit: int):
        self.service = service
        self.limit = limit

    async def __call__(self, target: MonitoringTarget) -> StageResult[list[RawContentItem]]:
        try:
            items = await self.service.discover(target.target_type, target.value, self.limit)
        except ExternalServiceError as e:
            return StageResult.failure(_service_failure(e, target.id, self.stage))
        return StageResult.success(items)


class ScoreAction:
    """Score one item's description against the brand context."""

    stage = "score"

    def __init__(self, scorer: RelevanceService, context: StageContext):
        self.scorer = scorer
        self.context = context

    async def __call__(self, item: WorkItem) -> StageResult[RelevanceResult]:
        try:
            result = await self.scorer.score(
                item.description,
                self.context.brand_context,
                self.context.relevance_prompt,
            )
        except ExternalServiceError as e:
            return StageResult.failure(_service_failure(e, item.id, self.stage))
        return StageResult.success(result)


class GenerateAction:
    """Write a promotional response for one relevant item."""

    stage = "generate"

    def __init__(self, generator: ResponseService, context: StageContext):
        self.generator = generator
        self.context = context

    async def __call__(self, item: WorkItem) -> StageResult[str]:
        if item.is_relevant is not True:
            return StageResult.failure(
                ItemActionError("Item is not relevant", item_id=item.id, stage=self.stage)
            )
        try:
            text = await self.generator.generate(
                item.description,
                self.context.brand_context,
                self.context.brand.persona,
                self.context.response_prompt,
            )
        except ExternalServiceError as e:
            return StageResult.failure(_service_failure(e, item.id, self.stage))
        return StageResult.success(text)


class SubmitAction:
    """Submit one item's response as a comment on its post.

    Refuses without calling the service when the item already carries a
    submission ref.
    """

    stage = "submit"

    def __init__(self, service: SubmissionService, context: StageContext):
        self.service = service
        self.context = context

    async def __call__(self, item: WorkItem) -> StageResult[SubmissionReceipt]:
        if item.submission_ref is not None:
            return StageResult.failure(DuplicateSubmissionError(item.id, item.submission_ref))
        if not item.response_text:
            return StageResult.failure(
                ItemActionError("No response to submit", item_id=item.id, stage=self.stage)
            )
        try:
            ref = await self.service.submit(
                self.context.brand.account_ref or "",
                item.post_url,
                item.response_text,
            )
        except ExternalServiceError as e:
            return StageResult.failure(_service_failure(e, item.id, self.stage))
        return StageResult.success(SubmissionReceipt(external_ref=ref))


class BoostAction:
    """Order engagement on one item's confirmed comment.

    Refuses without calling the service when an order already exists or the
    submission has not completed with a result URL.
    """

    stage = "boost"

    def __init__(self, service: BoostService, context: StageContext):
        self.service = service
        self.context = context

    async def __call__(self, item: WorkItem) -> StageResult[BoostReceipt]:
        if item.boost_order_ref is not None:
            return StageResult.failure(
                ItemActionError(
                    f"Item already boosted (order={item.boost_order_ref})",
                    item_id=item.id,
                    stage=self.stage,
                )
            )
        if item.submission_status != JobStatus.COMPLETED or not item.submission_result_url:
            return StageResult.failure(
                ItemActionError(
                    "Submission not confirmed with a result URL",
                    item_id=item.id,
                    stage=self.stage,
                )
            )
        try:
            order_ref = await self.service.boost(
                item.submission_result_url,
                self.context.account_handle or "",
                self.context.boost_quantity,
            )
        except ExternalServiceError as e:
            return StageResult.failure(_service_failure(e, item.id, self.stage))
        return StageResult.success(BoostReceipt(order_ref=order_ref))
