"""Tests for the comment submission client."""

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from tenacity import wait_none

from funnel.clients.ugc import UGCClient, normalize_ugc_status
from funnel.exceptions import ExternalServiceError
from funnel.models import JobStatus
from tests.support.http import make_response


@pytest_asyncio.fixture
async def client():
    api_client = UGCClient("ugc-key")
    api_client.retry_wait = wait_none()
    yield api_client
    await api_client.close()


class TestNormalizeStatus:
    """Tests for UGC status normalization."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("pending", JobStatus.PENDING),
            ("Processing", JobStatus.RUNNING),
            ("completed", JobStatus.COMPLETED),
            ("FAILED", JobStatus.FAILED),
            ("something-new", JobStatus.PENDING),
            (None, JobStatus.PENDING),
        ],
    )
    def test_normalize(self, raw, expected):
        """[P1] Remote statuses map onto JobStatus; unknown means pending."""
        assert normalize_ugc_status(raw) is expected


class TestSubmit:
    """Tests for UGCClient.submit."""

    @pytest.mark.asyncio
    async def test_returns_comment_id(self, client):
        """[P0] A accepted comment job returns its id as the external ref."""
        mock_request = AsyncMock(
            return_value=make_response(200, json={"code": 200, "data": {"commentId": 987}})
        )

        with patch.object(client.client, "request", mock_request):
            ref = await client.submit("acct_1", "https://www.tiktok.com/@a/video/1", "Nice!")

        assert ref == "987"
        args, kwargs = mock_request.call_args
        assert args == ("POST", "https://api.ugc.inc/comment/create")
        assert kwargs["json"] == {
            "accountId": "acct_1",
            "postUrl": "https://www.tiktok.com/@a/video/1",
            "commentText": "Nice!",
        }
        assert kwargs["headers"]["Authorization"] == "Bearer ugc-key"

    @pytest.mark.asyncio
    async def test_rejected_envelope_raises(self, client):
        """[P1] A non-200 envelope code surfaces the remote message."""
        mock_request = AsyncMock(
            return_value=make_response(200, json={"code": 400, "message": "Account not ready"})
        )

        with patch.object(client.client, "request", mock_request):
            with pytest.raises(ExternalServiceError, match="Account not ready"):
                await client.submit("acct_1", "https://x", "Nice!")

    @pytest.mark.asyncio
    async def test_missing_comment_id_raises(self, client):
        """[P2] An accepted response without commentId is a service error."""
        mock_request = AsyncMock(return_value=make_response(200, json={"code": 200, "data": {}}))

        with patch.object(client.client, "request", mock_request):
            with pytest.raises(ExternalServiceError, match="commentId"):
                await client.submit("acct_1", "https://x", "Nice!")


class TestCheckStatus:
    """Tests for UGCClient.check_status."""

    @pytest.mark.asyncio
    async def test_completed_comment(self, client):
        """[P1] Completed comments carry their public URL."""
        payload = {
            "code": 200,
            "data": [{"id": "987", "status": "completed", "commentUrl": "https://c/987"}],
        }
        mock_request = AsyncMock(return_value=make_response(200, json=payload))

        with patch.object(client.client, "request", mock_request):
            status = await client.check_status("987")

        assert status.status is JobStatus.COMPLETED
        assert status.result_url == "https://c/987"
        assert mock_request.call_args.kwargs["json"] == {"commentIds": ["987"]}

    @pytest.mark.asyncio
    async def test_failed_comment_reports_error(self, client):
        payload = {"code": 200, "data": [{"status": "failed", "error": "Post deleted"}]}
        mock_request = AsyncMock(return_value=make_response(200, json=payload))

        with patch.object(client.client, "request", mock_request):
            status = await client.check_status("987")

        assert status.status is JobStatus.FAILED
        assert status.error == "Post deleted"

    @pytest.mark.asyncio
    async def test_unknown_comment_raises(self, client):
        mock_request = AsyncMock(return_value=make_response(200, json={"code": 200, "data": []}))

        with patch.object(client.client, "request", mock_request):
            with pytest.raises(ExternalServiceError, match="not found"):
                await client.check_status("missing")

    @pytest.mark.asyncio
    async def test_non_object_entry_raises_service_error(self, client):
        """[P0] A status entry that is not an object is a service error, not a crash."""
        payload = {"code": 200, "data": ["garbage"]}
        mock_request = AsyncMock(return_value=make_response(200, json=payload))

        with patch.object(client.client, "request", mock_request):
            with pytest.raises(ExternalServiceError, match="Malformed status entry"):
                await client.check_status("987")

    @pytest.mark.asyncio
    async def test_non_string_comment_url_raises_service_error(self, client):
        payload = {"code": 200, "data": [{"status": "completed", "commentUrl": {"href": "x"}}]}
        mock_request = AsyncMock(return_value=make_response(200, json=payload))

        with patch.object(client.client, "request", mock_request):
            with pytest.raises(ExternalServiceError, match="Malformed status entry"):
                await client.check_status("987")

    @pytest.mark.asyncio
    async def test_non_string_status_is_pending(self, client):
        payload = {"code": 200, "data": [{"status": 7}]}
        mock_request = AsyncMock(return_value=make_response(200, json=payload))

        with patch.object(client.client, "request", mock_request):
            status = await client.check_status("987")

        assert status.status is JobStatus.PENDING


class TestGetAccountHandle:
    """Tests for UGCClient.get_account_handle."""

    @pytest.mark.asyncio
    async def test_finds_matching_account(self, client):
        """[P2] Returns the username of the matching account."""
        payload = {
            "code": 200,
            "data": [{"id": "other", "username": "x"}, {"id": "acct_1", "username": "glow"}],
        }
        mock_request = AsyncMock(return_value=make_response(200, json=payload))

        with patch.object(client.client, "request", mock_request):
            assert await client.get_account_handle("acct_1") == "glow"

    @pytest.mark.asyncio
    async def test_unknown_account_returns_none(self, client):
        mock_request = AsyncMock(return_value=make_response(200, json={"code": 200, "data": []}))

        with patch.object(client.client, "request", mock_request):
            assert await client.get_account_handle("acct_1") is None
