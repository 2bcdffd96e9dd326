"""Tests for shared exception classes.

Tests cover:
- ItemActionError attributes and message
- DuplicateSubmissionError as an ItemActionError for the submit stage
- RemoteTimeoutError, RunAlreadyActiveError and ExternalServiceError messages
- InvalidStateTransitionError string formatting
"""

import pytest

from funnel.exceptions import (
    CancellationError,
    ConfigurationError,
    DuplicateSubmissionError,
    ExternalServiceError,
    InvalidStateTransitionError,
    ItemActionError,
    RemoteTimeoutError,
    RunAlreadyActiveError,
)
from funnel.models import JobStatus


class TestItemActionError:
    """Tests for per-item failures."""

    def test_attributes_are_preserved(self) -> None:
        """[P1] reason, item_id and stage are kept on the instance."""
        error = ItemActionError("remote rejected", item_id="item-1", stage="score")

        assert error.reason == "remote rejected"
        assert error.item_id == "item-1"
        assert error.stage == "score"
        assert str(error) == "remote rejected"

    def test_duplicate_submission_is_item_action_error(self) -> None:
        """[P0] Duplicate submission is caught as a per-item failure.

        GIVEN: An item that already has ref r1
        WHEN: DuplicateSubmissionError is raised
        THEN: It can be caught as ItemActionError with stage=submit
        """
        with pytest.raises(ItemActionError) as exc_info:
            raise DuplicateSubmissionError("item-1", "r1")

        assert exc_info.value.stage == "submit"
        assert exc_info.value.existing_ref == "r1"
        assert "r1" in str(exc_info.value)


class TestOtherErrors:
    """Tests for run-level and service errors."""

    def test_configuration_error_message_is_verbatim(self) -> None:
        """[P1] ConfigurationError message is surfaced unchanged."""
        with pytest.raises(ConfigurationError, match="^Brand profile not configured$"):
            raise ConfigurationError("Brand profile not configured")

    def test_cancellation_error_is_exception(self) -> None:
        """[P2] CancellationError is a plain Exception subclass."""
        assert issubclass(CancellationError, Exception)
        assert not issubclass(CancellationError, ItemActionError)

    def test_remote_timeout_message(self) -> None:
        """[P2] RemoteTimeoutError names the item and attempt count."""
        error = RemoteTimeoutError("item-9", 3)

        assert error.attempts == 3
        assert "item-9" in str(error)
        assert "3 poll attempts" in str(error)

    def test_run_already_active_message(self) -> None:
        """[P2] RunAlreadyActiveError keeps tag and active run id."""
        error = RunAlreadyActiveError("general", "run-1")

        assert error.tag == "general"
        assert error.run_id == "run-1"
        assert "general" in str(error)

    def test_external_service_error_prefixes_service(self) -> None:
        """[P2] ExternalServiceError message starts with the service name."""
        error = ExternalServiceError("ugc", "HTTP 500", status_code=500)

        assert str(error) == "ugc: HTTP 500"
        assert error.status_code == 500

    def test_invalid_transition_str_includes_statuses(self) -> None:
        """[P1] InvalidStateTransitionError shows from/to enum values."""
        error = InvalidStateTransitionError(
            "Invalid transition",
            from_status=JobStatus.COMPLETED,
            to_status=JobStatus.PENDING,
        )

        assert str(error) == "Invalid transition (from=completed, to=pending)"
