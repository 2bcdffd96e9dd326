"""Shared exceptions for the engagement pipeline.

This module contains exception classes used across the stage actions, batch
runner, completion poller and orchestrator, so that none of them has to import
another component just to catch its errors.

Propagation Policy:
    - ConfigurationError: aborts the current stage before any item is touched
    - ItemActionError: recorded per item, the batch continues
    - RemoteTimeoutError: recorded per item when the poll budget runs out
    - CancellationError: operator-initiated stop, a clean halt
"""

from typing import Any


class ConfigurationError(Exception):
    """Raised when shared context required by a stage is missing.

    Examples are an unconfigured brand profile, no monitored targets for the
    requested tag, or a missing API key for a mandatory collaborator. The
    orchestrator surfaces this message to the caller verbatim.
    """

    pass


class ItemActionError(Exception):
    """Raised (or returned) when a stage action fails for a single item.

    Attributes:
        item_id: Identifier of the item the action was running for.
        stage: Pipeline stage name (e.g. "score", "submit").
        reason: Human-readable failure reason.
    """

    def __init__(self, reason: str, item_id: Any = None, stage: str | None = None):
        self.item_id = item_id
        self.stage = stage
        self.reason = reason
        super().__init__(reason)


class DuplicateSubmissionError(ItemActionError):
    """Raised when an item that already carries a submission ref is submitted again.

    Re-submission is rejected rather than retried, so the remote platform never
    receives two comments for the same item.
    """

    def __init__(self, item_id: Any, existing_ref: str):
        self.existing_ref = existing_ref
        super().__init__(
            f"Item already submitted (ref={existing_ref})",
            item_id=item_id,
            stage="submit",
        )


class RemoteTimeoutError(Exception):
    """Raised when the polling budget is exhausted while an item is still pending.

    Attributes:
        item_id: Item that never resolved.
        attempts: Number of poll ticks that ran.
    """

    def __init__(self, item_id: Any, attempts: int):
        self.item_id = item_id
        self.attempts = attempts
        super().__init__(f"Item {item_id} still pending after {attempts} poll attempts")


class CancellationError(Exception):
    """Raised when an operator stops a run. Not a failure."""

    pass


class RunAlreadyActiveError(Exception):
    """Raised when a run is requested for a tag that already has an active run."""

    def __init__(self, tag: str, run_id: str):
        self.tag = tag
        self.run_id = run_id
        super().__init__(f"A run is already active for tag {tag!r} (run_id={run_id})")


class ExternalServiceError(Exception):
    """Raised by HTTP clients when a collaborator call fails.

    Stage actions convert this into an ItemActionError at the action boundary.

    Attributes:
        service: Collaborator name (e.g. "ugc", "smm").
        status_code: HTTP status code when the failure came from a response.
    """

    def __init__(self, service: str, message: str, status_code: int | None = None):
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service}: {message}")


class InvalidStateTransitionError(Exception):
    """Raised when a remote status update would move an item backwards.

    Submission and boost statuses are monotonic (pending → running →
    completed | failed). Terminal states accept no further transitions.

    Attributes:
        from_status: Status before the attempted transition.
        to_status: Status that was rejected.
    """

    def __init__(self, message: str, from_status: Any, to_status: Any):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(message)

    def __str__(self) -> str:
        base_message = super().__str__()
        from_value = getattr(self.from_status, "value", self.from_status)
        to_value = getattr(self.to_status, "value", self.to_status)
        return f"{base_message} (from={from_value}, to={to_value})"
