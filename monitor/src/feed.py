"""
In-process channel that fans evaluation results out to subscribers.

Each subscriber owns a bounded asyncio.Queue. Publishing never blocks:
when a subscriber's queue is full its oldest result is dropped, so a slow
consumer always finds the newest result next.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-009)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging

from monitor.src.models import EvaluationResult

logger = logging.getLogger(__name__)


class AlertFeed:
    """Publish/subscribe hub for :class:`EvaluationResult` objects.

    Must only be used from the event loop thread.
    """

    def __init__(self) -> None:
        self._subscribers: list[asyncio.Queue[EvaluationResult]] = []
        self._latest: EvaluationResult | None = None

    @property
    def latest(self) -> EvaluationResult | None:
        """Most recently published result, or None before the first pass."""
        return self._latest

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, maxsize: int = 1) -> asyncio.Queue[EvaluationResult]:
        """Register a new subscriber queue holding at most *maxsize* results.

        Raises:
            ValueError: If *maxsize* is smaller than 1.
        """
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        queue: asyncio.Queue[EvaluationResult] = asyncio.Queue(maxsize=maxsize)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[EvaluationResult]) -> None:
        """Remove *queue*; unknown queues are ignored."""
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def publish(self, result: EvaluationResult) -> None:
        """Deliver *result* to every subscriber without blocking."""
        self._latest = result
        for queue in self._subscribers:
            if queue.full():
                queue.get_nowait()
                logger.debug("Subscriber queue full, dropped oldest result")
            queue.put_nowait(result)
