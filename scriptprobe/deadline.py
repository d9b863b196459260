"""
Scan deadline with nested phase budgets.

A single Deadline is created per scan. Each phase runs under
`Deadline.limit`, which caps the phase budget by the time left on the
overall deadline and cancels the phase's coroutine when it expires.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Coroutine
from typing import Any, TypeVar

import structlog

from scriptprobe.outcome import FailureKind, Outcome

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class Deadline:
    """Monotonic overall deadline shared by every phase of one scan."""

    def __init__(self, seconds: float) -> None:
        self.seconds = seconds
        self._expires_at = time.monotonic() + seconds

    def remaining(self) -> float:
        """Seconds left before the overall deadline, never negative."""
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0

    def budget(self, seconds: float) -> float:
        """Phase budget capped by the remaining overall time."""
        return min(seconds, self.remaining())

    async def limit(
        self,
        work: Coroutine[Any, Any, Outcome[T]],
        budget: float,
        label: str,
    ) -> Outcome[T]:
        """
        Run `work` under the phase budget.

        Expiry cancels `work`, so in-flight requests stop instead of
        finishing in the background.

        Args:
            work: Coroutine producing an Outcome
            budget: Phase budget in seconds
            label: Phase name for logging

        Returns:
            The coroutine's Outcome, or a timeout failure
        """
        limit = self.budget(budget)
        if limit <= 0.0:
            work.close()
            logger.warning("phase_skipped", phase=label, reason="scan deadline exhausted")
            return Outcome.fail(FailureKind.TIMEOUT, "scan deadline exhausted")

        try:
            async with asyncio.timeout(limit):
                return await work
        except TimeoutError:
            logger.warning("phase_timeout", phase=label, budget=round(limit, 2))
            return Outcome.fail(FailureKind.TIMEOUT, f"{label} exceeded {limit:.1f}s")
