"""Shared HTTP plumbing for collaborator API clients.

Every collaborator client wraps one `httpx.AsyncClient` and sends requests
through `_request`, which provides:
- Request rate limiting via AsyncLimiter
- Retry with exponential backoff for transient errors (429, 5xx, timeouts,
  connection errors) via tenacity, bounded by an explicit attempt budget
- Conversion of the final failure into ExternalServiceError

Usage:
    class UGCClient(BaseAPIClient):
        service_name = "ugc"

        async def check_status(self, ref: str) -> RemoteStatus:
            response = await self._request("POST", f"{self.base_url}/comment", json=...)
"""

from typing import Any

import httpx
from aiolimiter import AsyncLimiter
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from funnel.exceptions import ExternalServiceError
from funnel.utils.logging import get_logger

log = get_logger(__name__)

RETRIABLE_STATUS_CODES = (429, 500, 502, 503, 504)


class BaseAPIClient:
    """Rate-limited, retry-enabled HTTP client base.

    Attributes:
        service_name: Short collaborator name used in logs and errors
        max_attempts: Total attempts per request (1 initial + retries)
        retry_wait: tenacity wait strategy (tests replace it with wait_none())
    """

    service_name = "external"

    def __init__(
        self,
        timeout: float = 30.0,
        max_rate: float = 5,
        time_period: float = 1,
        max_attempts: int = 3,
    ):
        self.client = httpx.AsyncClient(timeout=timeout)
        self.rate_limiter = AsyncLimiter(max_rate=max_rate, time_period=time_period)
        self.max_attempts = max_attempts
        self.retry_wait: Any = wait_exponential(multiplier=1, min=1, max=8)

    def _is_retriable_error(self, exception: BaseException) -> bool:
        """Determine if an error should trigger retry logic.

        Returns:
            True for 429/5xx responses, timeouts and connection errors
        """
        if isinstance(exception, httpx.HTTPStatusError):
            return exception.response.status_code in RETRIABLE_STATUS_CODES
        return isinstance(exception, (httpx.TimeoutException, httpx.ConnectError))

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send one request with rate limiting and bounded retries.

        Args:
            method: HTTP method
            url: Absolute URL
            **kwargs: Passed through to httpx (json, data, params, headers)

        Returns:
            Successful (2xx) response

        Raises:
            ExternalServiceError: On non-retriable errors, or once the attempt
                budget is exhausted
        """
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception(self._is_retriable_error),
                stop=stop_after_attempt(self.max_attempts),
                wait=self.retry_wait,
                before_sleep=lambda retry_state: log.warning(
                    "http_request_retry",
                    service=self.service_name,
                    attempt=retry_state.attempt_number,
                    error=str(retry_state.outcome.exception()) if retry_state.outcome else None,
                ),
                reraise=True,
            ):
                with attempt:
                    async with self.rate_limiter:
                        response = await self.client.request(method, url, **kwargs)
                    response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ExternalServiceError(
                self.service_name,
                f"HTTP {e.response.status_code}: {e.response.text[:200]}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise ExternalServiceError(self.service_name, f"{type(e).__name__}: {e}") from e

        return response

    def _json(self, response: httpx.Response) -> Any:
        """Decode a JSON body, treating empty or malformed bodies as service errors."""
        if not response.content or not response.content.strip():
            raise ExternalServiceError(self.service_name, "Empty response body")
        try:
            return response.json()
        except ValueError as e:
            raise ExternalServiceError(
                self.service_name, f"Invalid JSON response: {response.text[:200]}"
            ) from e

    async def close(self) -> None:
        """Close HTTP client connection pool."""
        await self.client.aclose()
