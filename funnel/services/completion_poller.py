"""Completion Poller: follow asynchronous remote jobs until they resolve.

Submitted comments and boost orders complete on the remote platform after an
unknown delay. The poller re-checks every still-pending item once per tick,
persists each forward status change as soon as it is seen and stops when
nothing is pending or the attempt budget is used up.

Per-item state machine:
    awaiting → completed | failed        (resolved, never re-queried)
    awaiting → timed_out                 (budget exhausted, not an error)

With require_result_url, a completed report without a result URL keeps the
item pending; a later report carrying the URL resolves it.

Tick Semantics:
    - Tick 1 runs immediately; later ticks wait `interval` seconds (Ticker)
    - All pending items are checked within the tick, bounded by a semaphore
    - A status-check error of any kind is logged; the item stays pending for
      that tick and the other items are unaffected
    - Reports that would move an item backwards are ignored
    - Cancellation is observed at the top of every tick and during sleeps;
      a cancelled poll ends with a final snapshot where cancelled=True and
      pending items are left pending (they are not timed out)

Usage:
    poller = CompletionPoller(
        check_status=lambda item: ugc.check_status(item.submission_ref),
        persist=lambda item, status: store.apply_submission_status(item.id, status),
        max_attempts=120,
        interval=30,
    )
    async for snapshot in poller.poll(items, token):
        print(snapshot.tick, len(snapshot.pending))
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from funnel.exceptions import ExternalServiceError, ItemActionError, RemoteTimeoutError
from funnel.models import JobStatus, is_forward_transition
from funnel.schemas.content import RemoteStatus
from funnel.utils.logging import get_logger
from funnel.utils.scheduling import CancellationToken, Ticker

log = get_logger(__name__)


def _advances(previous: RemoteStatus | None, report: RemoteStatus) -> bool:
    """Check whether `report` carries news over the last persisted report."""
    if previous is None:
        return True
    if report.status == previous.status:
        # a job can complete before its result URL is published
        return (
            report.status == JobStatus.COMPLETED
            and not previous.result_url
            and bool(report.result_url)
        )
    return is_forward_transition(previous.status, report.status)


@dataclass(frozen=True)
class PollSnapshot:
    """State of a poll after one tick.

    Item ids are grouped by outcome. `timed_out` and `timeouts` are only
    populated on the final snapshot of a poll that ran out of attempts.
    """

    tick: int
    max_attempts: int
    pending: tuple[Any, ...] = ()
    completed: tuple[Any, ...] = ()
    failed: tuple[Any, ...] = ()
    timed_out: tuple[Any, ...] = ()
    timeouts: tuple[RemoteTimeoutError, ...] = ()
    final: bool = False
    cancelled: bool = False

    @property
    def resolved(self) -> int:
        return len(self.completed) + len(self.failed)


class CompletionPoller:
    """Polls remote job status for a set of items.

    Args:
        check_status: Side-effect free coroutine returning the item's RemoteStatus
        persist: Coroutine storing a forward status change, called as
            persist(item, remote_status)
        max_attempts: Tick budget (hard upper bound on remote queries per item)
        interval: Seconds between ticks
        max_concurrent: Status checks in flight within one tick
        require_result_url: Treat completed reports without a result URL as
            still pending
    """

    def __init__(
        self,
        check_status: Callable[[Any], Awaitable[RemoteStatus]],
        persist: Callable[[Any, RemoteStatus], Awaitable[Any]],
        max_attempts: int,
        interval: float,
        max_concurrent: int = 5,
        require_result_url: bool = False,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.check_status = check_status
        self.persist = persist
        self.max_attempts = max_attempts
        self.interval = interval
        self.max_concurrent = max_concurrent
        self.require_result_url = require_result_url

    async def _check(self, item: Any, semaphore: asyncio.Semaphore) -> RemoteStatus | None:
        async with semaphore:
            try:
                return await self.check_status(item)
            except ExternalServiceError as e:
                log.warning("status_check_failed", item_id=str(item.id), error=str(e))
                return None
            except Exception as e:
                log.exception("status_check_crashed", item_id=str(item.id), error=str(e))
                return None

    async def poll(
        self,
        items: Sequence[Any],
        cancel_token: CancellationToken | None = None,
    ) -> AsyncIterator[PollSnapshot]:
        """Poll `items` until all resolve, the budget runs out or a stop is requested.

        Yields:
            One PollSnapshot per tick; the last one has final=True
        """
        token = cancel_token or CancellationToken()
        pending: dict[Any, Any] = {item.id: item for item in items}
        last_seen: dict[Any, RemoteStatus] = {}
        completed: list[Any] = []
        failed: list[Any] = []
        semaphore = asyncio.Semaphore(self.max_concurrent)
        tick = 0

        if pending:
            async for tick in Ticker(self.interval, self.max_attempts, token).ticks():
                if token.is_cancelled:
                    tick -= 1
                    break

                batch = list(pending.values())
                reports = await asyncio.gather(*(self._check(item, semaphore) for item in batch))

                for item, report in zip(batch, reports):
                    if report is None:
                        continue
                    previous = last_seen.get(item.id)
                    if not _advances(previous, report):
                        if previous is not None and report.status != previous.status:
                            log.warning(
                                "status_regression_ignored",
                                item_id=str(item.id),
                                current=previous.status.value,
                                reported=report.status.value,
                            )
                        continue

                    try:
                        await self.persist(item, report)
                    except ItemActionError as e:
                        log.warning("status_persist_rejected", item_id=str(item.id), reason=e.reason)
                        continue

                    last_seen[item.id] = report
                    if report.status == JobStatus.FAILED:
                        failed.append(pending.pop(item.id).id)
                    elif report.status == JobStatus.COMPLETED:
                        if self.require_result_url and not report.result_url:
                            log.info("completed_awaiting_result_url", item_id=str(item.id))
                            continue
                        completed.append(pending.pop(item.id).id)

                if not pending or tick >= self.max_attempts:
                    break

                yield PollSnapshot(
                    tick=tick,
                    max_attempts=self.max_attempts,
                    pending=tuple(pending),
                    completed=tuple(completed),
                    failed=tuple(failed),
                )

        if token.is_cancelled and pending:
            log.info("poll_cancelled", tick=tick, pending=len(pending))
            yield PollSnapshot(
                tick=tick,
                max_attempts=self.max_attempts,
                pending=tuple(pending),
                completed=tuple(completed),
                failed=tuple(failed),
                final=True,
                cancelled=True,
            )
            return

        timeouts = tuple(RemoteTimeoutError(item_id, tick) for item_id in pending)
        for timeout in timeouts:
            log.warning("poll_timed_out", item_id=str(timeout.item_id), attempts=timeout.attempts)

        yield PollSnapshot(
            tick=tick,
            max_attempts=self.max_attempts,
            completed=tuple(completed),
            failed=tuple(failed),
            timed_out=tuple(pending),
            timeouts=timeouts,
            final=True,
        )
