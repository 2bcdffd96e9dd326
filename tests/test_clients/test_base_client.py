"""Tests for the shared collaborator HTTP client.

Tests cover:
- Retry on 429/5xx and connection errors
- No retry on other 4xx
- Attempt budget and ExternalServiceError conversion
- JSON body decoding errors
"""

from unittest.mock import AsyncMock, patch

import httpx
import pytest
import pytest_asyncio
from tenacity import wait_none

from funnel.clients.base import BaseAPIClient
from funnel.exceptions import ExternalServiceError
from tests.support.http import make_response

URL = "https://api.example.test/endpoint"


@pytest_asyncio.fixture
async def client():
    api_client = BaseAPIClient(max_rate=1000)
    api_client.service_name = "test"
    api_client.retry_wait = wait_none()
    yield api_client
    await api_client.close()


class TestRequestRetries:
    """Tests for BaseAPIClient._request."""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self, client):
        """[P1] A 2xx response is returned without retries."""
        mock_request = AsyncMock(return_value=make_response(200, json={"ok": True}))

        with patch.object(client.client, "request", mock_request):
            response = await client._request("GET", URL)

        assert response.status_code == 200
        assert mock_request.await_count == 1

    @pytest.mark.asyncio
    async def test_retries_server_errors_then_succeeds(self, client):
        """[P0] 503 then 200 succeeds on the second attempt."""
        mock_request = AsyncMock(
            side_effect=[make_response(503, json={}), make_response(200, json={"ok": True})]
        )

        with patch.object(client.client, "request", mock_request):
            response = await client._request("GET", URL)

        assert response.json() == {"ok": True}
        assert mock_request.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_attempt_budget(self, client):
        """[P0] Persistent 429 raises ExternalServiceError after max_attempts.

        GIVEN: A service that always rate-limits
        WHEN: A request is made with max_attempts=3
        THEN: Exactly 3 attempts are made and the status code is reported
        """
        mock_request = AsyncMock(return_value=make_response(429, json={}))

        with patch.object(client.client, "request", mock_request):
            with pytest.raises(ExternalServiceError) as exc_info:
                await client._request("GET", URL)

        assert mock_request.await_count == 3
        assert exc_info.value.status_code == 429
        assert exc_info.value.service == "test"

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self, client):
        """[P1] 400 fails immediately."""
        mock_request = AsyncMock(return_value=make_response(400, content=b"bad request"))

        with patch.object(client.client, "request", mock_request):
            with pytest.raises(ExternalServiceError, match="HTTP 400"):
                await client._request("GET", URL)

        assert mock_request.await_count == 1

    @pytest.mark.asyncio
    async def test_connect_errors_are_retried(self, client):
        """[P1] Connection errors are retried and then converted."""
        mock_request = AsyncMock(side_effect=httpx.ConnectError("refused"))

        with patch.object(client.client, "request", mock_request):
            with pytest.raises(ExternalServiceError, match="ConnectError"):
                await client._request("GET", URL)

        assert mock_request.await_count == 3
        assert client.max_attempts == 3


class TestJsonDecoding:
    """Tests for BaseAPIClient._json."""

    @pytest.mark.asyncio
    async def test_empty_body_is_service_error(self, client):
        with pytest.raises(ExternalServiceError, match="Empty response body"):
            client._json(make_response(200, content=b"  "))

    @pytest.mark.asyncio
    async def test_invalid_json_is_service_error(self, client):
        with pytest.raises(ExternalServiceError, match="Invalid JSON"):
            client._json(make_response(200, content=b"<html>"))

    @pytest.mark.asyncio
    async def test_valid_json(self, client):
        assert client._json(make_response(200, json=[1, 2])) == [1, 2]
