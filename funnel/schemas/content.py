"""Pydantic schemas for collaborator results.

These are the values stage actions return on success and the values the
completion poller receives from remote status checks. They are plain data:
none of them touch the database.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

from funnel.models import JobStatus


class RawContentItem(BaseModel):
    """One video as returned by the discovery service.

    Parsed from an `aweme_list` entry. Missing counters default to zero and a
    missing author falls back to the queried handle (profile search) or
    "unknown" (hashtag search).
    """

    external_id: str = Field(..., min_length=1, max_length=64)
    description: str = ""
    author_handle: str = "unknown"
    cover_url: str | None = None
    play_url: str | None = None
    posted_at: datetime | None = None
    digg_count: int = Field(default=0, ge=0)
    comment_count: int = Field(default=0, ge=0)
    play_count: int = Field(default=0, ge=0)
    share_count: int = Field(default=0, ge=0)

    @field_validator("posted_at", mode="before")
    @classmethod
    def parse_unix_timestamp(cls, value: object) -> object:
        """Accept Unix timestamps (seconds) as well as datetimes."""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return datetime.fromtimestamp(value, tz=timezone.utc)
        return value

    @field_validator("description", mode="before")
    @classmethod
    def none_to_empty(cls, value: object) -> object:
        return "" if value is None else value


class RelevanceResult(BaseModel):
    """Outcome of scoring one item against the brand context."""

    model_config = ConfigDict(populate_by_name=True)

    is_relevant: bool = Field(..., alias="isRelevant")
    relevance_score: int = Field(..., ge=0, le=100, alias="relevanceScore")
    reasoning: str = ""
    source: str = Field(default="llm", pattern=r"^(llm|heuristic)$")

    @field_validator("relevance_score", mode="before")
    @classmethod
    def clamp_score(cls, value: object) -> object:
        """Clamp model-produced scores into 0-100 instead of rejecting them."""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return max(0, min(100, int(value)))
        return value


class SubmissionReceipt(BaseModel):
    """Returned by a successful SubmitAction."""

    external_ref: str = Field(..., min_length=1)


class BoostReceipt(BaseModel):
    """Returned by a successful BoostAction."""

    order_ref: str = Field(..., min_length=1)


class RemoteStatus(BaseModel):
    """Status of a remote asynchronous job as reported by its service.

    Attributes:
        status: Normalized job status
        result_url: Public URL of the completed artifact (comment URL)
        error: Error message reported by the remote service
    """

    status: JobStatus
    result_url: str | None = None
    error: str | None = None
