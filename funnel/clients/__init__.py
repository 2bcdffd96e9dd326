"""HTTP clients for the pipeline's external collaborators."""

from funnel.clients.gemini import GeminiClient
from funnel.clients.scrape_creators import ScrapeCreatorsClient
from funnel.clients.smm import SMMClient
from funnel.clients.ugc import UGCClient

__all__ = [
    "GeminiClient",
    "SMMClient",
    "ScrapeCreatorsClient",
    "UGCClient",
]
