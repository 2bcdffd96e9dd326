"""Comment submission client for the UGC API.

Endpoints (all POST, JSON, Bearer auth, envelope `{code, data, message}`):
- /comment/create: {accountId, postUrl, commentText} → data.commentId
- /comment: {commentIds: [...]} → data[] with status, commentUrl, error
- /accounts: {status: "setup"} → data[] with id, username

A comment is accepted immediately and posted on the platform later, so the
submission stage only stores the returned id; the completion poller follows
it through check_status().
"""

from typing import Any

from pydantic import ValidationError

from funnel.clients.base import BaseAPIClient
from funnel.exceptions import ExternalServiceError
from funnel.models import JobStatus
from funnel.schemas.content import RemoteStatus
from funnel.utils.logging import get_logger

log = get_logger(__name__)

# Remote comment statuses, normalized; unknown values are treated as pending
UGC_STATUS_MAP = {
    "pending": JobStatus.PENDING,
    "queued": JobStatus.PENDING,
    "scheduled": JobStatus.PENDING,
    "running": JobStatus.RUNNING,
    "processing": JobStatus.RUNNING,
    "in_progress": JobStatus.RUNNING,
    "completed": JobStatus.COMPLETED,
    "complete": JobStatus.COMPLETED,
    "success": JobStatus.COMPLETED,
    "posted": JobStatus.COMPLETED,
    "failed": JobStatus.FAILED,
    "error": JobStatus.FAILED,
    "cancelled": JobStatus.FAILED,
}


def normalize_ugc_status(raw: Any) -> JobStatus:
    if not isinstance(raw, str) or not raw:
        return JobStatus.PENDING
    return UGC_STATUS_MAP.get(raw.strip().lower(), JobStatus.PENDING)


class UGCClient(BaseAPIClient):
    """Posts comments through a managed account and reports their progress.

    Usage:
        client = UGCClient(api_key)
        ref = await client.submit(account_id, post_url, "Love this!")
        status = await client.check_status(ref)
    """

    service_name = "ugc"

    def __init__(self, api_key: str, base_url: str = "https://api.ugc.inc"):
        super().__init__(timeout=30.0)
        self.api_key = api_key
        self.base_url = base_url

    def _get_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, payload: dict[str, Any]) -> Any:
        """POST and unwrap the `{code, data, message}` envelope."""
        response = await self._request(
            "POST",
            f"{self.base_url}{path}",
            json=payload,
            headers=self._get_headers(),
        )
        data = self._json(response)
        if not isinstance(data, dict) or data.get("code") != 200:
            message = data.get("message") if isinstance(data, dict) else None
            raise ExternalServiceError(
                self.service_name, message or f"Request to {path} was rejected"
            )
        return data.get("data")

    async def submit(self, account_ref: str, post_url: str, text: str) -> str:
        """Create a comment job.

        Returns:
            Remote comment id (the submission's external ref)

        Raises:
            ExternalServiceError: If the job was not accepted
        """
        data = await self._post(
            "/comment/create",
            {"accountId": account_ref, "postUrl": post_url, "commentText": text},
        )
        comment_id = data.get("commentId") if isinstance(data, dict) else None
        if not comment_id:
            raise ExternalServiceError(self.service_name, "Response missing commentId")

        log.info("comment_submitted", comment_id=comment_id, post_url=post_url)
        return str(comment_id)

    async def check_status(self, external_ref: str) -> RemoteStatus:
        """Report the current status of a comment job. Side-effect free.

        Raises:
            ExternalServiceError: On HTTP failure, if the comment is unknown or
                if the entry is malformed
        """
        data = await self._post("/comment", {"commentIds": [external_ref]})
        if not isinstance(data, list) or not data:
            raise ExternalServiceError(self.service_name, f"Comment {external_ref} not found")

        comment = data[0]
        if not isinstance(comment, dict):
            raise ExternalServiceError(
                self.service_name, f"Malformed status entry for comment {external_ref}"
            )
        try:
            return RemoteStatus(
                status=normalize_ugc_status(comment.get("status")),
                result_url=comment.get("commentUrl") or None,
                error=comment.get("error") or None,
            )
        except ValidationError as e:
            raise ExternalServiceError(
                self.service_name, f"Malformed status entry for comment {external_ref}"
            ) from e

    async def get_account_handle(self, account_ref: str) -> str | None:
        """Look up the public username of a managed account.

        Returns:
            Username, or None if the account is unknown or has no username
        """
        data = await self._post("/accounts", {"status": "setup"})
        for account in data or []:
            if isinstance(account, dict) and account.get("id") == account_ref:
                return account.get("username") or None
        return None
