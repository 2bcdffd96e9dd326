"""Engagement funnel pipeline.

This package discovers social content for monitored hashtags and accounts,
scores it for brand relevance, writes and submits promotional responses and
boosts the ones that get posted. Pipeline progress lives on WorkItem rows in
PostgreSQL; runs are driven by the orchestrator in funnel.services.
"""

from funnel.models import Base, WorkItem

__all__ = [
    "Base",
    "WorkItem",
]
