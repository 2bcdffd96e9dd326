"""Default prompt templates and placeholder rendering.

Templates are plain text with `{{PLACEHOLDER}}` variables:
    {{BRAND_CONTEXT}}: BrandProfile.brand_context()
    {{VIDEO_DESCRIPTION}}: WorkItem.description
    {{PERSONA}}: BrandProfile.persona

Per-tag overrides live in the prompt_templates table; an empty or missing
override falls back to the defaults below.
"""

DEFAULT_RELEVANCE_PROMPT = """\
You are a marketing expert. Analyze this TikTok video based on the following brand context:

BRAND CONTEXT:
{{BRAND_CONTEXT}}

VIDEO INFORMATION:
Description: "{{VIDEO_DESCRIPTION}}"

Determine if this video is relevant for the brand to engage with (e.g., commenting, collaborating).

Return a JSON object with:
- isRelevant: boolean
- relevanceScore: number (0-100)
- reasoning: string (brief explanation)
"""

DEFAULT_RESPONSE_PROMPT = """\
You are a social media engagement expert. Write a TikTok comment that:

1. Feels GENUINE and ORGANIC (not spammy)
2. Relates naturally to the video content
3. Subtly promotes the product WITHOUT being pushy
4. Matches the brand persona: {{PERSONA}}
5. Is short (1-2 sentences max)
6. Uses casual language, emojis where appropriate

VIDEO DESCRIPTION:
"{{VIDEO_DESCRIPTION}}"

BRAND TO PROMOTE:
{{BRAND_CONTEXT}}

Write ONLY the comment text, nothing else. Make it conversational and authentic.
"""


def render_prompt(
    template: str | None,
    default: str,
    *,
    brand_context: str,
    description: str,
    persona: str = "",
) -> str:
    """Fill template placeholders, falling back to `default` for blank templates.

    Example:
        >>> render_prompt("{{VIDEO_DESCRIPTION}}!", "", brand_context="", description="hi")
        'hi!'
    """
    text = template if template and template.strip() else default
    return (
        text.replace("{{BRAND_CONTEXT}}", brand_context)
        .replace("{{VIDEO_DESCRIPTION}}", description)
        .replace("{{PERSONA}}", persona)
    )
