"""Cooperative scheduling primitives for long-running pipeline runs.

CancellationToken:
    One per run. Set by the operator (HTTP stop endpoint, CLI SIGINT) and
    observed by the orchestrator before each stage, by the batch runner
    between items and by the completion poller at the top of every tick.
    Setting it never interrupts an in-flight collaborator call.

Ticker:
    Paces the completion poller: yields tick numbers 1..max_ticks and sleeps
    `interval` seconds between them. The sleep wakes early when the token is
    cancelled, so a stop request never waits out a full poll interval.

Usage:
    token = CancellationToken()
    async for tick in Ticker(interval=30, max_ticks=120, token=token).ticks():
        if token.is_cancelled:
            break
        ...
"""

import asyncio
from collections.abc import AsyncIterator

from funnel.exceptions import CancellationError


class CancellationToken:
    """Cooperative cancellation flag backed by an asyncio.Event."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Stop requested") -> None:
        """Request cancellation. Idempotent; the first reason is kept."""
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        """Block until cancellation is requested."""
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        """Raise CancellationError if cancellation was requested."""
        if self.is_cancelled:
            raise CancellationError(self.reason or "Stop requested")

    async def sleep(self, seconds: float) -> bool:
        """Sleep up to `seconds`, waking early on cancellation.

        Returns:
            True if the sleep ended because of cancellation
        """
        if self.is_cancelled:
            return True
        if seconds <= 0:
            await asyncio.sleep(0)
            return self.is_cancelled
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True


class Ticker:
    """Fixed-interval tick source with an explicit tick budget.

    Args:
        interval: Seconds between ticks (0 yields control without waiting)
        max_ticks: Total ticks to produce
        token: Optional cancellation token that cuts sleeps short
    """

    def __init__(
        self,
        interval: float,
        max_ticks: int,
        token: CancellationToken | None = None,
    ):
        if max_ticks < 1:
            raise ValueError("max_ticks must be at least 1")
        if interval < 0:
            raise ValueError("interval must not be negative")
        self.interval = interval
        self.max_ticks = max_ticks
        self.token = token or CancellationToken()

    async def ticks(self) -> AsyncIterator[int]:
        """Yield 1..max_ticks; the first tick fires immediately.

        Stops early (without yielding) if the token is cancelled during a sleep.
        """
        for tick in range(1, self.max_ticks + 1):
            if tick > 1 and await self.token.sleep(self.interval):
                return
            yield tick
