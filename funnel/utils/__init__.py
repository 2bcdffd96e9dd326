"""Cross-cutting utilities for the pipeline.

Modules:
    logging: structlog configuration and logger factory.
    scheduling: CancellationToken and Ticker used by runs and the poller.
"""

from funnel.utils.scheduling import CancellationToken, Ticker

__all__ = [
    "CancellationToken",
    "Ticker",
]
