"""Tests for the delivery queue scheduler."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from linkbridge.delivery.types import DrainResult
from linkbridge.server.scheduler import DRAIN_JOB_ID, DeliveryScheduler


@pytest.fixture
def queue() -> MagicMock:
    queue = MagicMock()
    queue.drain = AsyncMock(return_value=DrainResult(sent=1))
    return queue


class TestDeliveryScheduler:
    """Tests for DeliveryScheduler class."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, queue: MagicMock) -> None:
        """Should register the drain job and remove it on stop."""
        scheduler = DeliveryScheduler(queue, interval=60)

        scheduler.start()
        assert scheduler.running
        assert scheduler._scheduler is not None
        assert scheduler._scheduler.get_job(DRAIN_JOB_ID) is not None

        scheduler.stop()
        assert not scheduler.running

    @pytest.mark.asyncio
    async def test_start_twice(self, queue: MagicMock) -> None:
        """Should keep the first scheduler when started again."""
        scheduler = DeliveryScheduler(queue, interval=60)
        scheduler.start()
        first = scheduler._scheduler

        scheduler.start()

        assert scheduler._scheduler is first
        scheduler.stop()

    def test_stop_when_not_started(self, queue: MagicMock) -> None:
        """Should do nothing."""
        DeliveryScheduler(queue).stop()

    @pytest.mark.asyncio
    async def test_drains_periodically(self, queue: MagicMock) -> None:
        """Should call drain on every tick."""
        scheduler = DeliveryScheduler(queue, interval=0.05)
        scheduler.start()
        try:
            await asyncio.sleep(0.3)
        finally:
            scheduler.stop()

        assert queue.drain.await_count >= 1

    @pytest.mark.asyncio
    async def test_run_now(self, queue: MagicMock) -> None:
        """Should drain immediately and return the result."""
        result = await DeliveryScheduler(queue).run_now()

        assert result.sent == 1
        queue.drain.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_drain_job_logs_errors(self, queue: MagicMock) -> None:
        """Should not let a drain error escape the job."""
        queue.drain = AsyncMock(side_effect=RuntimeError("boom"))

        await DeliveryScheduler(queue)._drain_job()

        queue.drain.assert_awaited_once()
