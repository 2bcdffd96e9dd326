"""Boost client for the AmazingSMM panel API (comment likes).

Single endpoint, form-encoded POST:
- action=add: key, service, link, quantity, username → {order} or {error}
- action=status: key, order → {status, charge, remains} or {error}
"""

from typing import Any

from funnel.clients.base import BaseAPIClient
from funnel.exceptions import ExternalServiceError
from funnel.models import JobStatus
from funnel.schemas.content import RemoteStatus
from funnel.utils.logging import get_logger

log = get_logger(__name__)

# Panel order statuses; "Partial" means the order ended with a partial refund
SMM_STATUS_MAP = {
    "pending": JobStatus.PENDING,
    "in progress": JobStatus.RUNNING,
    "processing": JobStatus.RUNNING,
    "completed": JobStatus.COMPLETED,
    "partial": JobStatus.COMPLETED,
    "canceled": JobStatus.FAILED,
    "cancelled": JobStatus.FAILED,
    "refunded": JobStatus.FAILED,
    "fail": JobStatus.FAILED,
}


def normalize_smm_status(raw: str | None) -> JobStatus:
    if not raw:
        return JobStatus.PENDING
    return SMM_STATUS_MAP.get(raw.strip().lower(), JobStatus.PENDING)


class SMMClient(BaseAPIClient):
    """Orders likes for a posted comment and reports order progress.

    Usage:
        client = SMMClient(api_key, service_id)
        order_ref = await client.boost(comment_url, "brand_account", 100)
        status = await client.check_order(order_ref)
    """

    service_name = "smm"

    def __init__(
        self,
        api_key: str,
        service_id: str,
        base_url: str = "https://amazingsmm.com/api/v2",
    ):
        super().__init__(timeout=30.0)
        self.api_key = api_key
        self.service_id = service_id
        self.base_url = base_url

    async def _post(self, form: dict[str, str]) -> dict[str, Any]:
        response = await self._request(
            "POST",
            self.base_url,
            data={"key": self.api_key, **form},
        )
        data = self._json(response)
        if not isinstance(data, dict):
            raise ExternalServiceError(self.service_name, "Unexpected response shape")
        if data.get("error"):
            raise ExternalServiceError(self.service_name, str(data["error"]))
        return data

    async def boost(self, result_url: str, author_handle: str, quantity: int) -> str:
        """Place a likes order on a posted comment.

        Args:
            result_url: Public comment URL
            author_handle: Username of the account that posted the comment
            quantity: Number of likes to order

        Returns:
            Order id (as string)

        Raises:
            ExternalServiceError: If the panel rejected the order
        """
        data = await self._post(
            {
                "action": "add",
                "service": self.service_id,
                "link": result_url,
                "quantity": str(quantity),
                "username": author_handle,
            }
        )
        order = data.get("order")
        if not order:
            raise ExternalServiceError(self.service_name, "Unknown error from SMM API")

        log.info("boost_ordered", order_id=order, quantity=quantity)
        return str(order)

    async def check_order(self, order_ref: str) -> RemoteStatus:
        """Report the current status of a likes order. Side-effect free."""
        data = await self._post({"action": "status", "order": order_ref})
        if not data.get("status"):
            raise ExternalServiceError(self.service_name, "Unknown error from SMM API")
        return RemoteStatus(status=normalize_smm_status(str(data["status"])))
