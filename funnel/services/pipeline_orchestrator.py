"""Pipeline Orchestrator: drive one tag's work items through every stage.

Stage Order:
    discover → score → generate → submit → verify_submission → boost →
    verify_boost → done

    Terminal states: done, stopped (operator cancellation), error (a
    stage-level failure such as missing configuration).

Key Responsibilities:
- Run exactly one Batch Runner call per synchronous stage and one Completion
  Poller run per verify stage, in order, for the run's tag
- Build each stage's shared context once, before any item is touched; a
  missing piece raises ConfigurationError and halts the run at that stage
- Append human-readable log lines and maintain per-stage tallies
- Observe the run's CancellationToken before every stage

Architecture Pattern: "Stateless Resume"
- Durable state lives only on WorkItem rows; a run keeps nothing that a later
  run needs. Every stage selects items with an eligibility predicate on the
  stored `stage`, so re-running after a stop, crash or timeout continues
  where the previous run left off without repeating side effects.
- Run state (BatchRun) is in memory and owned by a RunHandle. There is no
  module-level run state: a RunRegistry instance keys handles by tag and
  rejects a second concurrent run for the same tag.

Usage:
    orchestrator = build_orchestrator()
    registry = RunRegistry(orchestrator)
    handle = await registry.start_run("general")
    async for entry in handle.follow():
        print(entry.message)
    run = await handle.wait()
    print(run.stage, run.summary.confirmed)
"""

import asyncio
import enum
import time
import uuid
from collections import deque
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from funnel import config
from funnel.clients.gemini import GeminiClient
from funnel.clients.scrape_creators import ScrapeCreatorsClient
from funnel.clients.smm import SMMClient
from funnel.clients.ugc import UGCClient
from funnel.exceptions import (
    CancellationError,
    ConfigurationError,
    ExternalServiceError,
    RunAlreadyActiveError,
)
from funnel.models import BrandProfile, MonitoringTarget, WorkItem, utcnow
from funnel.schemas.content import RawContentItem, RemoteStatus
from funnel.services.batch_runner import ItemOutcome, OutcomeStatus, run_batch
from funnel.services.completion_poller import CompletionPoller, PollSnapshot
from funnel.services.item_store import ItemStore
from funnel.services.relevance import RelevanceScorer
from funnel.services.response_generator import ResponseGenerator
from funnel.services.stage_actions import (
    BoostAction,
    BoostService,
    DiscoverAction,
    DiscoveryService,
    GenerateAction,
    RelevanceService,
    ResponseService,
    ScoreAction,
    StageContext,
    SubmissionService,
    SubmitAction,
)
from funnel.utils.logging import get_logger
from funnel.utils.scheduling import CancellationToken

log = get_logger(__name__)

# Finished runs kept for GET /runs/{id} before the oldest is forgotten
DEFAULT_FINISHED_RUN_RETENTION = 50


class RunStage(enum.Enum):
    """Run-level stage. The last three are terminal."""

    PENDING = "pending"
    DISCOVER = "discover"
    SCORE = "score"
    GENERATE = "generate"
    SUBMIT = "submit"
    VERIFY_SUBMISSION = "verify_submission"
    BOOST = "boost"
    VERIFY_BOOST = "verify_boost"
    DONE = "done"
    STOPPED = "stopped"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStage.DONE, RunStage.STOPPED, RunStage.ERROR)


PIPELINE_STAGES = (
    RunStage.DISCOVER,
    RunStage.SCORE,
    RunStage.GENERATE,
    RunStage.SUBMIT,
    RunStage.VERIFY_SUBMISSION,
    RunStage.BOOST,
    RunStage.VERIFY_BOOST,
)


@dataclass(frozen=True)
class RunLogEntry:
    timestamp: datetime
    stage: str
    message: str


@dataclass
class StageTally:
    succeeded: int = 0
    failed: int = 0
    timed_out: int = 0
    skipped: int = 0


@dataclass
class RunSummary:
    """Per-stage tallies plus flat funnel totals.

    Totals:
        discovered: new items created by discovery (re-discovered items only
            refresh stats and are not counted)
        scored / generated / submitted / boosted: successful batch outcomes
        confirmed: submissions that completed remotely
        failed: per-item failures across every stage, including remote
            failures reported by the verify stages
        timed_out: items still pending when a verify stage ran out of attempts
    """

    stages: dict[str, StageTally] = field(default_factory=dict)
    discovered: int = 0
    scored: int = 0
    generated: int = 0
    submitted: int = 0
    confirmed: int = 0
    boosted: int = 0
    failed: int = 0
    timed_out: int = 0

    def tally(self, stage: RunStage) -> StageTally:
        return self.stages.setdefault(stage.value, StageTally())


@dataclass
class BatchRun:
    """Transient state of one pipeline run. Never persisted.

    Attributes:
        run_id: Unique run id
        tag: Monitoring target group the run is scoped to
        stage: Current stage, or the terminal state once finished
        attempt: Poll ticks run by the active verify stage
        log: Ordered, append-only run log
        cancel_requested: Set once an operator asked the run to stop
        error: Error message when stage == error
        error_stage: Stage that raised the error
    """

    tag: str
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    stage: RunStage = RunStage.PENDING
    attempt: int = 0
    log: list[RunLogEntry] = field(default_factory=list)
    cancel_requested: bool = False
    error: str | None = None
    error_stage: str | None = None
    summary: RunSummary = field(default_factory=RunSummary)
    started_at: datetime = field(default_factory=utcnow)
    finished_at: datetime | None = None
    _updated: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def is_finished(self) -> bool:
        return self.stage.is_terminal

    def add_log(self, message: str, stage: RunStage | None = None) -> RunLogEntry:
        entry = RunLogEntry(
            timestamp=utcnow(),
            stage=(stage or self.stage).value,
            message=message,
        )
        self.log.append(entry)
        self.notify()
        return entry

    def notify(self) -> None:
        """Wake everyone waiting in wait_for_update()."""
        self._updated.set()
        self._updated = asyncio.Event()

    async def wait_for_update(self) -> None:
        await self._updated.wait()


def _count(outcomes: Sequence[ItemOutcome], status: OutcomeStatus) -> int:
    return sum(1 for outcome in outcomes if outcome.status == status)


class PipelineOrchestrator:
    """Runs the full stage sequence for one BatchRun.

    Collaborators that are None are "not configured"; a stage that needs one
    raises ConfigurationError, but only when it actually has eligible items.

    Args:
        store: Item Store
        discovery: Discovery service (ScrapeCreatorsClient)
        scorer: Relevance scorer
        generator: Response generator
        submission: Comment submission service (UGCClient)
        booster: Boost service (SMMClient)
        poll_interval: Seconds between verify ticks (default from config)
        poll_max_attempts: Verify tick budget (default from config)
        boost_quantity: Likes per boost order (default from config)
        discovery_limit: Items fetched per target (default from config)
        max_concurrent: Batch Runner pool size (default from config)
    """

    def __init__(
        self,
        store: ItemStore,
        discovery: DiscoveryService | None,
        scorer: RelevanceService,
        generator: ResponseService,
        submission: SubmissionService | None,
        booster: BoostService | None,
        *,
        poll_interval: float | None = None,
        poll_max_attempts: int | None = None,
        boost_quantity: int | None = None,
        discovery_limit: int | None = None,
        max_concurrent: int | None = None,
    ):
        self.store = store
        self.discovery = discovery
        self.scorer = scorer
        self.generator = generator
        self.submission = submission
        self.booster = booster
        self.poll_interval = (
            poll_interval if poll_interval is not None else config.get_poll_interval()
        )
        self.poll_max_attempts = poll_max_attempts or config.get_poll_max_attempts()
        self.boost_quantity = boost_quantity or config.get_boost_quantity()
        self.discovery_limit = discovery_limit or config.get_discovery_limit()
        self.max_concurrent = max_concurrent or config.get_batch_max_concurrent()
        self._handlers: dict[RunStage, Callable[[BatchRun, CancellationToken], Awaitable[None]]] = {
            RunStage.DISCOVER: self._discover,
            RunStage.SCORE: self._score,
            RunStage.GENERATE: self._generate,
            RunStage.SUBMIT: self._submit,
            RunStage.VERIFY_SUBMISSION: self._verify_submission,
            RunStage.BOOST: self._boost,
            RunStage.VERIFY_BOOST: self._verify_boost,
        }

    async def execute(self, run: BatchRun, token: CancellationToken) -> BatchRun:
        """Run every stage in order and leave `run` in a terminal state.

        Never raises for stage failures: ConfigurationError and unexpected
        errors end the run in `error`, cancellation ends it in `stopped`.
        """
        run_log = log.bind(run_id=run.run_id, tag=run.tag)
        started = time.monotonic()
        run_log.info("run_started")
        run.add_log(f"Run started for tag '{run.tag}'", stage=RunStage.DISCOVER)

        try:
            for stage in PIPELINE_STAGES:
                token.raise_if_cancelled()
                run.stage = stage
                run.attempt = 0
                run.notify()
                run_log.info("stage_started", stage=stage.value)
                await self._handlers[stage](run, token)
        except CancellationError as e:
            run.add_log(f"Run stopped: {e}")
            run_log.info("run_stopped", stage=run.stage.value)
            run.stage = RunStage.STOPPED
        except ConfigurationError as e:
            run.error = str(e)
            run.error_stage = run.stage.value
            run.add_log(f"Configuration error: {e}")
            run_log.error("run_configuration_error", stage=run.stage.value, error=str(e))
            run.stage = RunStage.ERROR
        except Exception as e:
            run.error = f"{type(e).__name__}: {e}"
            run.error_stage = run.stage.value
            run.add_log(f"Stage failed: {run.error}")
            run_log.exception("run_failed", stage=run.stage.value)
            run.stage = RunStage.ERROR
        else:
            run.stage = RunStage.DONE

        run.finished_at = utcnow()
        summary = run.summary
        run.add_log(
            f"Run finished ({run.stage.value}): discovered={summary.discovered} "
            f"scored={summary.scored} generated={summary.generated} "
            f"submitted={summary.submitted} confirmed={summary.confirmed} "
            f"boosted={summary.boosted} failed={summary.failed} timed_out={summary.timed_out}"
        )
        run_log.info(
            "run_finished",
            state=run.stage.value,
            duration_seconds=round(time.monotonic() - started, 2),
            discovered=summary.discovered,
            confirmed=summary.confirmed,
            boosted=summary.boosted,
            failed=summary.failed,
            timed_out=summary.timed_out,
        )
        return run

    # ------------------------------------------------------------------
    # Shared context
    # ------------------------------------------------------------------

    async def _require_brand(self) -> BrandProfile:
        brand = await self.store.get_brand_profile()
        if brand is None:
            raise ConfigurationError("Brand profile not configured")
        return brand

    async def _prompt_context(self, tag: str) -> StageContext:
        brand = await self._require_brand()
        template = await self.store.get_prompt_template(tag)
        return StageContext(
            brand=brand,
            relevance_prompt=template.relevance_prompt if template else None,
            response_prompt=template.response_prompt if template else None,
        )

    async def _submission_context(self) -> StageContext:
        if self.submission is None:
            raise ConfigurationError("Submission service not configured (set UGC_API_KEY)")
        brand = await self._require_brand()
        if not brand.has_real_account:
            raise ConfigurationError(
                "Please configure a real submission account id in the brand profile"
            )
        return StageContext(brand=brand)

    async def _boost_context(self) -> StageContext:
        if self.booster is None:
            raise ConfigurationError(
                "Boost service not configured (set SMM_API_KEY and SMM_SERVICE_ID)"
            )
        brand = await self._require_brand()
        handle = brand.account_handle
        if not handle:
            if self.submission is None or not brand.has_real_account:
                raise ConfigurationError("Account handle unknown and cannot be looked up")
            try:
                handle = await self.submission.get_account_handle(brand.account_ref)
            except ExternalServiceError as e:
                raise ConfigurationError(f"Could not look up account handle: {e}") from e
            if not handle:
                raise ConfigurationError(
                    f"Could not find username for account {brand.account_ref}"
                )
        return StageContext(
            brand=brand,
            account_handle=handle,
            boost_quantity=self.boost_quantity,
        )

    # ------------------------------------------------------------------
    # Stage helpers
    # ------------------------------------------------------------------

    async def _run_item_stage(
        self,
        run: BatchRun,
        token: CancellationToken,
        stage: RunStage,
        build_context: Callable[[], Awaitable[StageContext]],
        build_action: Callable[[StageContext], Callable[[WorkItem], Awaitable[Any]]],
        persist: Callable[[WorkItem, Any], Awaitable[Any]],
    ) -> list[ItemOutcome]:
        items = await self.store.list_eligible(run.tag, stage.value)
        tally = run.summary.tally(stage)
        if not items:
            run.add_log("No eligible items")
            return []

        context = await build_context()
        run.add_log(f"Processing {len(items)} item(s)")
        outcomes = await run_batch(
            items,
            build_action(context),
            persist,
            stage=stage.value,
            max_concurrent=self.max_concurrent,
            cancel_token=token,
        )

        tally.succeeded += _count(outcomes, OutcomeStatus.OK)
        tally.failed += _count(outcomes, OutcomeStatus.FAILED)
        tally.skipped += _count(outcomes, OutcomeStatus.SKIPPED)
        run.summary.failed += _count(outcomes, OutcomeStatus.FAILED)

        for outcome in outcomes:
            if outcome.status == OutcomeStatus.FAILED:
                run.add_log(f"Item {outcome.subject_id} failed: {outcome.reason}")
        run.add_log(
            f"{stage.value} finished: {tally.succeeded} succeeded, {tally.failed} failed, "
            f"{tally.skipped} skipped"
        )
        return outcomes

    async def _run_verify_stage(
        self,
        run: BatchRun,
        token: CancellationToken,
        stage: RunStage,
        service: Any,
        missing_service: str,
        check_status: Callable[[WorkItem], Awaitable[RemoteStatus]],
        persist: Callable[[WorkItem, RemoteStatus], Awaitable[Any]],
        require_result_url: bool = False,
    ) -> PollSnapshot | None:
        items = await self.store.list_eligible(run.tag, stage.value)
        tally = run.summary.tally(stage)
        if not items:
            run.add_log("No items awaiting remote completion")
            return None
        if service is None:
            raise ConfigurationError(missing_service)

        run.add_log(
            f"Polling {len(items)} item(s) every {self.poll_interval:g}s "
            f"(max {self.poll_max_attempts} attempts)"
        )
        poller = CompletionPoller(
            check_status,
            persist,
            max_attempts=self.poll_max_attempts,
            interval=self.poll_interval,
            require_result_url=require_result_url,
        )

        final: PollSnapshot | None = None
        async for snapshot in poller.poll(items, token):
            run.attempt = snapshot.tick
            if snapshot.final:
                final = snapshot
            else:
                run.add_log(
                    f"Attempt {snapshot.tick}/{snapshot.max_attempts}: "
                    f"{len(snapshot.pending)} pending, {len(snapshot.completed)} completed, "
                    f"{len(snapshot.failed)} failed"
                )

        if final is None:  # pragma: no cover - poll always ends with a final snapshot
            return None

        tally.succeeded += len(final.completed)
        tally.failed += len(final.failed)
        tally.timed_out += len(final.timed_out)
        run.summary.failed += len(final.failed)
        run.summary.timed_out += len(final.timed_out)

        if final.cancelled:
            raise CancellationError(token.reason or "Stop requested")

        for timeout in final.timeouts:
            run.add_log(str(timeout))
        run.add_log(
            f"{stage.value} finished: {len(final.completed)} completed, "
            f"{len(final.failed)} failed, {len(final.timed_out)} timed out"
        )
        return final

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _discover(self, run: BatchRun, token: CancellationToken) -> None:
        targets = await self.store.get_targets(run.tag)
        if not targets:
            raise ConfigurationError(f"No monitoring targets configured for tag '{run.tag}'")
        if self.discovery is None:
            raise ConfigurationError(
                "Discovery service not configured (set SCRAPE_CREATORS_API_KEY)"
            )

        created = 0
        refreshed = 0

        async def persist(target: MonitoringTarget, raw_items: list[RawContentItem]) -> None:
            nonlocal created, refreshed
            for raw in raw_items:
                _, is_new = await self.store.upsert_discovered(target, raw)
                if is_new:
                    created += 1
                else:
                    refreshed += 1

        run.add_log(f"Checking {len(targets)} monitoring target(s)")
        outcomes = await run_batch(
            targets,
            DiscoverAction(self.discovery, self.discovery_limit),
            persist,
            stage=RunStage.DISCOVER.value,
            cancel_token=token,
        )

        tally = run.summary.tally(RunStage.DISCOVER)
        tally.succeeded += _count(outcomes, OutcomeStatus.OK)
        tally.failed += _count(outcomes, OutcomeStatus.FAILED)
        tally.skipped += _count(outcomes, OutcomeStatus.SKIPPED)
        run.summary.discovered += created

        for outcome in outcomes:
            if outcome.status == OutcomeStatus.FAILED:
                run.add_log(f"Target {outcome.subject_id} failed: {outcome.reason}")
        run.add_log(f"Discovered {created} new item(s), refreshed {refreshed}")

    async def _score(self, run: BatchRun, token: CancellationToken) -> None:
        outcomes = await self._run_item_stage(
            run,
            token,
            RunStage.SCORE,
            lambda: self._prompt_context(run.tag),
            lambda context: ScoreAction(self.scorer, context),
            lambda item, result: self.store.record_relevance(item.id, result),
        )
        run.summary.scored += _count(outcomes, OutcomeStatus.OK)
        relevant = sum(1 for o in outcomes if o.ok and o.output.is_relevant)
        if outcomes:
            run.add_log(f"{relevant} relevant item(s)")

    async def _generate(self, run: BatchRun, token: CancellationToken) -> None:
        outcomes = await self._run_item_stage(
            run,
            token,
            RunStage.GENERATE,
            lambda: self._prompt_context(run.tag),
            lambda context: GenerateAction(self.generator, context),
            lambda item, text: self.store.record_response(item.id, text),
        )
        run.summary.generated += _count(outcomes, OutcomeStatus.OK)

    async def _submit(self, run: BatchRun, token: CancellationToken) -> None:
        outcomes = await self._run_item_stage(
            run,
            token,
            RunStage.SUBMIT,
            self._submission_context,
            lambda context: SubmitAction(self.submission, context),
            lambda item, receipt: self.store.record_submission(item.id, receipt.external_ref),
        )
        run.summary.submitted += _count(outcomes, OutcomeStatus.OK)

    async def _verify_submission(self, run: BatchRun, token: CancellationToken) -> None:
        final = await self._run_verify_stage(
            run,
            token,
            RunStage.VERIFY_SUBMISSION,
            self.submission,
            "Submission service not configured (set UGC_API_KEY)",
            lambda item: self.submission.check_status(item.submission_ref),
            lambda item, status: self.store.apply_submission_status(item.id, status),
            require_result_url=True,
        )
        if final is not None:
            run.summary.confirmed += len(final.completed)

    async def _boost(self, run: BatchRun, token: CancellationToken) -> None:
        outcomes = await self._run_item_stage(
            run,
            token,
            RunStage.BOOST,
            self._boost_context,
            lambda context: BoostAction(self.booster, context),
            lambda item, receipt: self.store.record_boost(item.id, receipt.order_ref),
        )
        run.summary.boosted += _count(outcomes, OutcomeStatus.OK)

    async def _verify_boost(self, run: BatchRun, token: CancellationToken) -> None:
        # Best effort: boost timeouts and failures are tallied, never fatal
        await self._run_verify_stage(
            run,
            token,
            RunStage.VERIFY_BOOST,
            self.booster,
            "Boost service not configured (set SMM_API_KEY and SMM_SERVICE_ID)",
            lambda item: self.booster.check_order(item.boost_order_ref),
            lambda item, status: self.store.apply_boost_status(item.id, status),
        )


class RunHandle:
    """Caller-facing handle on one running (or finished) BatchRun."""

    def __init__(self, run: BatchRun, task: "asyncio.Task[BatchRun]", token: CancellationToken):
        self.run = run
        self.task = task
        self.token = token

    @property
    def run_id(self) -> str:
        return self.run.run_id

    @property
    def is_finished(self) -> bool:
        return self.task.done()

    def stop(self, reason: str = "Stop requested") -> None:
        """Request cancellation; in-flight collaborator calls finish first."""
        if not self.run.is_finished:
            self.run.cancel_requested = True
            self.token.cancel(reason)
            self.run.add_log(f"Stop requested: {reason}")

    async def wait(self) -> BatchRun:
        """Wait for the run to reach a terminal state."""
        return await asyncio.shield(self.task)

    async def follow(self) -> AsyncIterator[RunLogEntry]:
        """Yield log entries as they are appended, until the run finishes."""
        index = 0
        while True:
            while index < len(self.run.log):
                yield self.run.log[index]
                index += 1
            if self.is_finished:
                return
            await self.run.wait_for_update()


class RunRegistry:
    """Owns the run handles of one process, keyed by tag.

    Active runs are always reachable. Finished runs stay queryable until
    `max_finished_runs` newer runs have finished, then their handle (and its
    log) is dropped.

    Args:
        orchestrator: Orchestrator used for every run started here
        max_finished_runs: Number of finished runs to keep
    """

    def __init__(
        self,
        orchestrator: PipelineOrchestrator,
        max_finished_runs: int = DEFAULT_FINISHED_RUN_RETENTION,
    ):
        self.orchestrator = orchestrator
        self.max_finished_runs = max_finished_runs
        self._active: dict[str, RunHandle] = {}
        self._runs: dict[str, RunHandle] = {}
        self._finished: deque[str] = deque()
        self._lock = asyncio.Lock()

    async def start_run(self, tag: str) -> RunHandle:
        """Start a run for `tag` in the background and return its handle.

        Raises:
            RunAlreadyActiveError: If a run for the same tag is still active
            ConfigurationError: If the tag has no monitoring targets
        """
        async with self._lock:
            active = self._active.get(tag)
            if active is not None and not active.is_finished:
                raise RunAlreadyActiveError(tag, active.run_id)

            targets = await self.orchestrator.store.get_targets(tag)
            if not targets:
                raise ConfigurationError(f"No monitoring targets configured for tag '{tag}'")

            run = BatchRun(tag=tag)
            token = CancellationToken()
            task = asyncio.create_task(
                self.orchestrator.execute(run, token), name=f"run-{run.run_id}"
            )
            handle = RunHandle(run, task, token)
            self._active[tag] = handle
            self._runs[run.run_id] = handle
            task.add_done_callback(lambda _: self._release(tag, handle))

        log.info("run_registered", run_id=run.run_id, tag=tag)
        return handle

    def _release(self, tag: str, handle: RunHandle) -> None:
        if self._active.get(tag) is handle:
            del self._active[tag]

        self._finished.append(handle.run_id)
        while len(self._finished) > self.max_finished_runs:
            evicted = self._finished.popleft()
            self._runs.pop(evicted, None)
            log.debug("finished_run_evicted", run_id=evicted)

    def get(self, run_id: str) -> RunHandle | None:
        return self._runs.get(run_id)

    def active_for(self, tag: str) -> RunHandle | None:
        return self._active.get(tag)

    def stop_run(self, handle: RunHandle, reason: str = "Stop requested") -> None:
        handle.stop(reason)

    async def shutdown(self) -> None:
        """Stop every active run and wait for them to finish."""
        handles = list(self._active.values())
        for handle in handles:
            handle.stop("Shutting down")
        if handles:
            await asyncio.gather(*(handle.wait() for handle in handles))


def build_orchestrator(store: ItemStore | None = None) -> PipelineOrchestrator:
    """Build an orchestrator wired to the collaborators configured in the environment.

    Collaborators whose credentials are missing are left unconfigured (None);
    scoring and generation then use their local fallbacks.
    """
    gemini_key = config.get_gemini_api_key()
    gemini = GeminiClient(gemini_key, model=config.get_gemini_model()) if gemini_key else None

    scrape_key = config.get_scrape_creators_api_key()
    ugc_key = config.get_ugc_api_key()
    smm_key = config.get_smm_api_key()
    smm_service = config.get_smm_service_id()

    return PipelineOrchestrator(
        store or ItemStore(),
        discovery=ScrapeCreatorsClient(scrape_key) if scrape_key else None,
        scorer=RelevanceScorer(gemini),
        generator=ResponseGenerator(gemini),
        submission=UGCClient(ugc_key) if ugc_key else None,
        booster=SMMClient(smm_key, smm_service) if smm_key and smm_service else None,
    )


async def close_orchestrator(orchestrator: PipelineOrchestrator) -> None:
    """Close the HTTP clients an orchestrator holds."""
    clients = {
        id(c): c
        for c in (
            orchestrator.discovery,
            orchestrator.submission,
            orchestrator.booster,
            getattr(orchestrator.scorer, "gemini", None),
            getattr(orchestrator.generator, "gemini", None),
        )
        if c is not None and hasattr(c, "close")
    }
    for client in clients.values():
        await client.close()
