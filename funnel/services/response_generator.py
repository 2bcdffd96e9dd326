"""Promotional response generation.

Writes a short comment for a relevant video in the brand's persona. A failed
or unconfigured model never stalls the batch: the generator returns
FALLBACK_RESPONSE instead of raising.
"""

from funnel.clients.gemini import GeminiClient
from funnel.exceptions import ExternalServiceError
from funnel.services.prompts import DEFAULT_RESPONSE_PROMPT, render_prompt
from funnel.utils.logging import get_logger

log = get_logger(__name__)

FALLBACK_RESPONSE = "This is so relatable! 💯"


class ResponseGenerator:
    """Gemini-backed response writer with a generic fallback."""

    def __init__(self, gemini: GeminiClient | None):
        self.gemini = gemini

    async def generate(
        self,
        description: str,
        brand_context: str,
        persona: str,
        prompt: str | None = None,
    ) -> str:
        if self.gemini is None:
            log.info("response_fallback_used", reason="llm_not_configured")
            return FALLBACK_RESPONSE

        rendered = render_prompt(
            prompt,
            DEFAULT_RESPONSE_PROMPT,
            brand_context=brand_context,
            description=description,
            persona=persona,
        )
        try:
            text = await self.gemini.generate_text(rendered)
        except ExternalServiceError as e:
            log.warning("response_generation_failed", error=str(e), fallback=True)
            return FALLBACK_RESPONSE

        # Models sometimes quote the whole comment
        return text.strip().strip('"').strip() or FALLBACK_RESPONSE
