"""Business logic services for the pipeline."""

from funnel.exceptions import ConfigurationError
from funnel.services.batch_runner import ItemOutcome, OutcomeStatus, run_batch
from funnel.services.completion_poller import CompletionPoller, PollSnapshot
from funnel.services.item_store import ItemStore
from funnel.services.pipeline_orchestrator import (
    BatchRun,
    PipelineOrchestrator,
    RunHandle,
    RunRegistry,
    RunStage,
    RunSummary,
)

__all__ = [
    "BatchRun",
    "CompletionPoller",
    "ConfigurationError",
    "ItemOutcome",
    "ItemStore",
    "OutcomeStatus",
    "PipelineOrchestrator",
    "PollSnapshot",
    "RunHandle",
    "RunRegistry",
    "RunStage",
    "RunSummary",
    "run_batch",
]
