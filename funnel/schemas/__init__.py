"""Pydantic schemas for validation and serialization."""

from funnel.schemas.content import (
    BoostReceipt,
    RawContentItem,
    RelevanceResult,
    RemoteStatus,
    SubmissionReceipt,
)
from funnel.schemas.run import (
    RunCreate,
    RunLogEntryResponse,
    RunResponse,
    RunSummaryResponse,
    StageTallyResponse,
)

__all__ = [
    "BoostReceipt",
    "RawContentItem",
    "RelevanceResult",
    "RemoteStatus",
    "RunCreate",
    "RunLogEntryResponse",
    "RunResponse",
    "RunSummaryResponse",
    "StageTallyResponse",
    "SubmissionReceipt",
]
