"""Pydantic schemas for the runs API.

Schema Naming Convention:
    - RunCreate: POST /api/v1/runs request body
    - RunResponse: Run state returned by every runs endpoint
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class RunCreate(BaseModel):
    """Schema for starting a pipeline run for one workflow tag."""

    tag: str = Field(
        default="general",
        min_length=1,
        max_length=50,
        description="Monitoring target group to run the pipeline for",
        examples=["general", "competitor", "brand"],
    )


class RunLogEntryResponse(BaseModel):
    """One human-readable run log line."""

    model_config = ConfigDict(from_attributes=True)

    timestamp: datetime
    stage: str
    message: str


class StageTallyResponse(BaseModel):
    """Per-stage outcome counts."""

    model_config = ConfigDict(from_attributes=True)

    succeeded: int = 0
    failed: int = 0
    timed_out: int = 0
    skipped: int = 0


class RunSummaryResponse(BaseModel):
    """Run summary: per-stage tallies plus flat funnel totals."""

    model_config = ConfigDict(from_attributes=True)

    stages: dict[str, StageTallyResponse] = {}
    discovered: int = 0
    scored: int = 0
    generated: int = 0
    submitted: int = 0
    confirmed: int = 0
    boosted: int = 0
    failed: int = 0
    timed_out: int = 0


class RunResponse(BaseModel):
    """Schema for run state in API responses."""

    run_id: str
    tag: str
    stage: str
    attempt: int = Field(..., description="Poll ticks run by the active verify stage")
    cancel_requested: bool
    is_finished: bool
    error: str | None = None
    summary: RunSummaryResponse
    log: list[RunLogEntryResponse] = []
