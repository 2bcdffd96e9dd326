"""Gemini text generation client.

Wraps the google-generativeai SDK for the two text tasks of the pipeline
(relevance scoring and response writing). Only plain text prompts are sent
and only the response's text parts are read.

Transient SDK errors (429, 500, 503, deadline exceeded) are retried with the
same tenacity policy the HTTP clients use; the final failure is raised as
ExternalServiceError so callers can fall back.
"""

from typing import Any

import google.generativeai as genai
from aiolimiter import AsyncLimiter
from google.api_core import exceptions as google_exceptions
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from funnel.config import DEFAULT_GEMINI_MODEL
from funnel.exceptions import ExternalServiceError
from funnel.utils.logging import get_logger

log = get_logger(__name__)

RETRIABLE_ERRORS = (
    google_exceptions.ResourceExhausted,
    google_exceptions.InternalServerError,
    google_exceptions.ServiceUnavailable,
    google_exceptions.DeadlineExceeded,
)


class GeminiClient:
    """Minimal Gemini client used for relevance scoring and response writing.

    Usage:
        client = GeminiClient(api_key)
        text = await client.generate_text("Write a comment about ...")
    """

    service_name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_GEMINI_MODEL,
        max_rate: float = 10,
        max_attempts: int = 3,
    ):
        genai.configure(api_key=api_key)
        self.model_name = model
        self.model = genai.GenerativeModel(model)
        self.rate_limiter = AsyncLimiter(max_rate=max_rate, time_period=1)
        self.max_attempts = max_attempts
        self.retry_wait: Any = wait_exponential(multiplier=1, min=1, max=8)

    async def generate_text(self, prompt: str) -> str:
        """Generate text for a single prompt.

        Returns:
            Joined text parts of the response, stripped

        Raises:
            ExternalServiceError: On API failure or when no text is returned
        """
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(RETRIABLE_ERRORS),
                stop=stop_after_attempt(self.max_attempts),
                wait=self.retry_wait,
                before_sleep=lambda retry_state: log.warning(
                    "gemini_request_retry",
                    model=self.model_name,
                    attempt=retry_state.attempt_number,
                ),
                reraise=True,
            ):
                with attempt:
                    async with self.rate_limiter:
                        response = await self.model.generate_content_async(prompt)
        except google_exceptions.GoogleAPIError as e:
            raise ExternalServiceError(self.service_name, f"{type(e).__name__}: {e}") from e

        try:
            parts = response.parts
        except ValueError as e:
            raise ExternalServiceError(self.service_name, "Response has no candidates") from e

        text = "".join(getattr(part, "text", "") or "" for part in parts)
        if not text.strip():
            raise ExternalServiceError(self.service_name, "Empty completion")
        return text.strip()

    async def close(self) -> None:
        """Nothing to release; the SDK manages its own transport."""
