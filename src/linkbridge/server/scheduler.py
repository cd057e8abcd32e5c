"""Scheduler for the periodic delivery queue drain.

This module provides:
- DeliveryScheduler: drains the delivery queue every few seconds
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

if TYPE_CHECKING:
    from linkbridge.delivery.queue import DeliveryQueue
    from linkbridge.delivery.types import DrainResult

logger = logging.getLogger(__name__)

DRAIN_JOB_ID = "delivery_drain"


class DeliveryScheduler:
    """Runs DeliveryQueue.drain on a fixed interval.

    Must be started from within a running event loop.
    """

    def __init__(self, queue: DeliveryQueue, interval: float = 5.0) -> None:
        """Initialize the scheduler.

        Args:
            queue: Queue to drain.
            interval: Seconds between drains.
        """
        self._queue = queue
        self._interval = interval
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    async def _drain_job(self) -> None:
        """Job function for the scheduled drain."""
        try:
            await self._queue.drain()
        except Exception:
            logger.exception("Error during scheduled queue drain")

    def start(self) -> None:
        """Start the scheduler."""
        if self._scheduler is not None:
            return  # Already running

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self._drain_job,
            trigger=IntervalTrigger(seconds=self._interval),
            id=DRAIN_JOB_ID,
            name="Delivery queue drain",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("Delivery scheduler started (every %.1fs)", self._interval)

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Delivery scheduler stopped")

    async def run_now(self) -> DrainResult:
        """Drain the queue immediately (manual trigger)."""
        return await self._queue.drain()
