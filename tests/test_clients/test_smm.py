"""Tests for the boost client."""

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from tenacity import wait_none

from funnel.clients.smm import SMMClient, normalize_smm_status
from funnel.exceptions import ExternalServiceError
from funnel.models import JobStatus
from tests.support.http import make_response


@pytest_asyncio.fixture
async def client():
    api_client = SMMClient("smm-key", "4242")
    api_client.retry_wait = wait_none()
    yield api_client
    await api_client.close()


class TestBoost:
    """Tests for SMMClient.boost."""

    @pytest.mark.asyncio
    async def test_places_order(self, client):
        """[P0] action=add posts a form and returns the order id."""
        mock_request = AsyncMock(return_value=make_response(200, json={"order": 555}))

        with patch.object(client.client, "request", mock_request):
            order = await client.boost("https://c/987", "glowbrand", 100)

        assert order == "555"
        args, kwargs = mock_request.call_args
        assert args == ("POST", "https://amazingsmm.com/api/v2")
        assert kwargs["data"] == {
            "key": "smm-key",
            "action": "add",
            "service": "4242",
            "link": "https://c/987",
            "quantity": "100",
            "username": "glowbrand",
        }

    @pytest.mark.asyncio
    async def test_error_field_raises(self, client):
        """[P1] Panel errors are returned as {error: ...}."""
        mock_request = AsyncMock(
            return_value=make_response(200, json={"error": "Not enough funds"})
        )

        with patch.object(client.client, "request", mock_request):
            with pytest.raises(ExternalServiceError, match="Not enough funds"):
                await client.boost("https://c/987", "glowbrand", 100)


class TestCheckOrder:
    """Tests for SMMClient.check_order."""

    @pytest.mark.asyncio
    async def test_in_progress(self, client):
        mock_request = AsyncMock(
            return_value=make_response(200, json={"status": "In progress", "remains": "40"})
        )

        with patch.object(client.client, "request", mock_request):
            status = await client.check_order("555")

        assert status.status is JobStatus.RUNNING
        assert mock_request.call_args.kwargs["data"]["order"] == "555"

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Completed", JobStatus.COMPLETED),
            ("Partial", JobStatus.COMPLETED),
            ("Canceled", JobStatus.FAILED),
            ("Refunded", JobStatus.FAILED),
            ("Pending", JobStatus.PENDING),
            ("Mystery", JobStatus.PENDING),
        ],
    )
    def test_normalize(self, raw, expected):
        """[P1] Panel statuses map onto JobStatus."""
        assert normalize_smm_status(raw) is expected
