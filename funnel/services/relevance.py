"""Relevance scoring for discovered content.

Scores a video description against the brand context with Gemini. The scorer
never fails a batch on collaborator trouble: when no API key is configured,
or the model call or its JSON parsing fails, it degrades to a deterministic
keyword-overlap heuristic and marks the result's source as "heuristic".

Heuristic:
    keywords = words of 4+ characters in the brand context (field labels
    excluded, duplicates collapsed)
    matches = keywords contained in the lowercased description
    is_relevant = matches > 0, score = min(matches * 25, 100)
"""

import json
import re

from pydantic import ValidationError

from funnel.clients.gemini import GeminiClient
from funnel.exceptions import ExternalServiceError
from funnel.schemas.content import RelevanceResult
from funnel.services.prompts import DEFAULT_RELEVANCE_PROMPT, render_prompt
from funnel.utils.logging import get_logger

log = get_logger(__name__)

KEYWORD_PATTERN = re.compile(r"\b\w{4,}\b")

# Labels from BrandProfile.brand_context(), not brand vocabulary
CONTEXT_LABELS = frozenset({"product", "description", "target", "audience", "persona"})


def heuristic_relevance(description: str, brand_context: str) -> RelevanceResult:
    """Score by keyword overlap between description and brand context."""
    desc_lower = (description or "").lower()
    keywords = [
        kw
        for kw in dict.fromkeys(KEYWORD_PATTERN.findall(brand_context.lower()))
        if kw not in CONTEXT_LABELS
    ]
    match_count = sum(1 for kw in keywords if kw in desc_lower)
    is_relevant = match_count > 0

    if is_relevant:
        reasoning = f"Keyword heuristic: found {match_count} keyword match(es)."
    else:
        reasoning = "Keyword heuristic: no keyword matches found."

    return RelevanceResult(
        is_relevant=is_relevant,
        relevance_score=min(match_count * 25, 100),
        reasoning=reasoning,
        source="heuristic",
    )


def strip_code_fences(text: str) -> str:
    """Remove markdown ``` fences the model tends to wrap JSON in."""
    return text.replace("```json", "").replace("```", "").strip()


def parse_relevance_response(text: str) -> RelevanceResult:
    """Parse the model's JSON answer.

    Raises:
        ValueError: If the text is not a JSON object with the expected fields
    """
    data = json.loads(strip_code_fences(text))
    if not isinstance(data, dict):
        raise ValueError("Relevance response is not a JSON object")
    return RelevanceResult.model_validate({**data, "source": "llm"})


class RelevanceScorer:
    """Gemini-backed relevance scorer with heuristic fallback.

    Usage:
        scorer = RelevanceScorer(GeminiClient(api_key))  # or RelevanceScorer(None)
        result = await scorer.score(description, brand_context, custom_prompt)
    """

    def __init__(self, gemini: GeminiClient | None):
        self.gemini = gemini

    async def score(
        self,
        description: str,
        brand_context: str,
        prompt: str | None = None,
    ) -> RelevanceResult:
        if self.gemini is None:
            log.info("relevance_heuristic_used", reason="llm_not_configured")
            return heuristic_relevance(description, brand_context)

        rendered = render_prompt(
            prompt,
            DEFAULT_RELEVANCE_PROMPT,
            brand_context=brand_context,
            description=description,
        )
        try:
            text = await self.gemini.generate_text(rendered)
            return parse_relevance_response(text)
        except (ExternalServiceError, ValidationError, ValueError) as e:
            log.warning("relevance_llm_failed", error=str(e), fallback="heuristic")
            return heuristic_relevance(description, brand_context)
