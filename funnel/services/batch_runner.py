"""Batch Runner: apply one stage action to a list of eligible items.

Isolation Contract:
    One item's failure never prevents the others from being processed, and
    run_batch never raises for partial failure. A failed action persists
    nothing, so the item stays eligible for a later run.

Processing Order:
    Sequential in input order by default. With max_concurrent > 1 items run
    in a semaphore-bounded pool; outcomes are still returned in input order.

Cancellation:
    The token is checked before each item. Once it fires, the remaining items
    are recorded as skipped; in-flight items finish normally.

Usage:
    outcomes = await run_batch(
        items,
        ScoreAction(scorer, context),
        lambda item, result: store.record_relevance(item.id, result),
        stage="score",
        cancel_token=token,
    )
"""

import asyncio
import enum
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from funnel.exceptions import ItemActionError
from funnel.services.stage_actions import StageResult
from funnel.utils.logging import get_logger
from funnel.utils.scheduling import CancellationToken

log = get_logger(__name__)


class OutcomeStatus(enum.Enum):
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class ItemOutcome:
    """Result of one item in a batch.

    Attributes:
        subject_id: Id of the item (or target) processed
        status: ok, failed or skipped
        reason: Failure or skip reason
        output: Action output for ok outcomes
    """

    subject_id: Any
    status: OutcomeStatus
    reason: str | None = None
    output: Any = None

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.OK


async def run_batch(
    items: Sequence[Any],
    action: Callable[[Any], Awaitable[StageResult[Any]]],
    persist: Callable[[Any, Any], Awaitable[Any]],
    *,
    stage: str,
    max_concurrent: int = 1,
    cancel_token: CancellationToken | None = None,
) -> list[ItemOutcome]:
    """Run `action` over `items`, persisting each success as it happens.

    Args:
        items: Items already filtered by the stage's eligibility predicate
        action: Stage action returning StageResult
        persist: Coroutine storing a successful output, called as
            persist(item, output). ItemActionError raised here (for example
            DuplicateSubmissionError) counts as a per-item failure.
        stage: Stage name for logging
        max_concurrent: Worker pool size (1 = sequential)
        cancel_token: Checked before each item

    Returns:
        One ItemOutcome per input item, in input order
    """
    if max_concurrent < 1:
        raise ValueError("max_concurrent must be at least 1")

    async def process(item: Any) -> ItemOutcome:
        subject_id = getattr(item, "id", None)

        if cancel_token is not None and cancel_token.is_cancelled:
            return ItemOutcome(subject_id, OutcomeStatus.SKIPPED, reason="cancelled")

        try:
            result = await action(item)
        except Exception as e:
            log.exception("item_action_crashed", stage=stage, item_id=str(subject_id))
            result = StageResult.failure(
                ItemActionError(f"Unexpected error: {e}", item_id=subject_id, stage=stage)
            )

        if not result.ok:
            reason = result.error.reason if result.error else "unknown error"
            log.warning("item_action_failed", stage=stage, item_id=str(subject_id), reason=reason)
            return ItemOutcome(subject_id, OutcomeStatus.FAILED, reason=reason)

        try:
            await persist(item, result.output)
        except ItemActionError as e:
            log.warning(
                "item_persist_rejected",
                stage=stage,
                item_id=str(subject_id),
                reason=e.reason,
            )
            return ItemOutcome(subject_id, OutcomeStatus.FAILED, reason=e.reason)

        return ItemOutcome(subject_id, OutcomeStatus.OK, output=result.output)

    if max_concurrent == 1:
        outcomes = [await process(item) for item in items]
    else:
        semaphore = asyncio.Semaphore(max_concurrent)

        async def bounded(item: Any) -> ItemOutcome:
            async with semaphore:
                return await process(item)

        outcomes = list(await asyncio.gather(*(bounded(item) for item in items)))

    log.info(
        "batch_completed",
        stage=stage,
        total=len(outcomes),
        succeeded=sum(1 for o in outcomes if o.status == OutcomeStatus.OK),
        failed=sum(1 for o in outcomes if o.status == OutcomeStatus.FAILED),
        skipped=sum(1 for o in outcomes if o.status == OutcomeStatus.SKIPPED),
    )
    return outcomes
