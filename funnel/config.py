"""Configuration management for the engagement pipeline.

This module provides centralized configuration loading from environment
variables. A local `.env` file is loaded once at import time if present.

Environment Variables:
    DATABASE_URL: PostgreSQL connection URL (required for production)
    GEMINI_API_KEY: Gemini API key for scoring and response generation (optional)
    SCRAPE_CREATORS_API_KEY: Discovery API key (required for discovery)
    UGC_API_KEY: Comment submission API key (required for submission)
    SMM_API_KEY / SMM_SERVICE_ID: Boost service credentials (required for boost)
    POLL_INTERVAL_SECONDS: Completion poller cadence (default: 30)
    POLL_MAX_ATTEMPTS: Completion poller tick budget (default: 120)

Usage:
    from funnel.config import get_poll_interval, get_database_url

    interval = get_poll_interval()  # 30.0 unless overridden
    db_url = get_database_url()  # Raises if DATABASE_URL not set
"""

import os
from functools import lru_cache

import structlog
from dotenv import load_dotenv

load_dotenv()

log = structlog.get_logger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 30
DEFAULT_POLL_MAX_ATTEMPTS = 120
DEFAULT_BOOST_QUANTITY = 100
DEFAULT_DISCOVERY_LIMIT = 10
DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"


@lru_cache
def get_database_url() -> str:
    """Get database URL from environment.

    Converts postgresql:// to postgresql+asyncpg:// for async SQLAlchemy.

    Returns:
        Database URL with asyncpg driver.

    Raises:
        ValueError: If DATABASE_URL not set.
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        raise ValueError("DATABASE_URL environment variable is required")

    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

    return url


def get_gemini_api_key() -> str | None:
    """Get Gemini API key from environment.

    Returns:
        API key string, or None when unset or obviously invalid (< 10 chars).
        Callers fall back to local heuristics when None.
    """
    key = os.getenv("GEMINI_API_KEY")
    if not key or len(key) < 10:
        return None
    return key


def get_gemini_model() -> str:
    """Get Gemini model name (default: gemini-2.0-flash)."""
    return os.getenv("GEMINI_MODEL", DEFAULT_GEMINI_MODEL)


def get_scrape_creators_api_key() -> str | None:
    """Get discovery service API key, or None if not configured."""
    return os.getenv("SCRAPE_CREATORS_API_KEY")


def get_ugc_api_key() -> str | None:
    """Get comment submission service API key, or None if not configured."""
    return os.getenv("UGC_API_KEY")


def get_smm_api_key() -> str | None:
    """Get boost service API key, or None if not configured."""
    return os.getenv("SMM_API_KEY")


def get_smm_service_id() -> str | None:
    """Get boost service product id (comment likes), or None if not configured."""
    return os.getenv("SMM_SERVICE_ID")


def _get_int(name: str, default: int, minimum: int, maximum: int) -> int:
    """Read an integer env var, clamped to [minimum, maximum].

    Invalid values log a warning and fall back to the default.
    """
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        log.warning("invalid_int_setting", name=name, value=raw, using_default=default)
        return default
    return max(minimum, min(maximum, value))


def get_poll_interval() -> float:
    """Get completion poller interval in seconds.

    Environment Variable:
        POLL_INTERVAL_SECONDS: Seconds between poll ticks (default: 30)

    Returns:
        Interval in seconds (clamped to 0-600). Zero is allowed for tests.
    """
    return float(_get_int("POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS, 0, 600))


def get_poll_max_attempts() -> int:
    """Get completion poller tick budget.

    Environment Variable:
        POLL_MAX_ATTEMPTS: Maximum poll ticks per verify stage (default: 120)

    Returns:
        Attempt budget (clamped to 1-1000). Together with the interval this is
        the hard upper bound on how long a verify stage can run.
    """
    return _get_int("POLL_MAX_ATTEMPTS", DEFAULT_POLL_MAX_ATTEMPTS, 1, 1000)


def get_boost_quantity() -> int:
    """Get number of likes ordered per boost (default: 100, range 1-10000)."""
    return _get_int("BOOST_QUANTITY", DEFAULT_BOOST_QUANTITY, 1, 10000)


def get_discovery_limit() -> int:
    """Get max items fetched per monitored target (default: 10, range 1-100)."""
    return _get_int("DISCOVERY_LIMIT", DEFAULT_DISCOVERY_LIMIT, 1, 100)


def get_batch_max_concurrent() -> int:
    """Get batch runner worker-pool bound (default: 1, i.e. sequential)."""
    return _get_int("BATCH_MAX_CONCURRENT", 1, 1, 10)


def get_log_level() -> str:
    """Get log level name (default: INFO)."""
    return os.getenv("LOG_LEVEL", "INFO").upper()


def get_log_json() -> bool:
    """Whether to render logs as JSON (default: true)."""
    return os.getenv("LOG_JSON", "true").lower() != "false"
