"""Outbound document delivery queue.

This module provides:
- DeliveryQueue: in-memory FIFO of DeliveryTask, drained on a fixed tick

Each drain resolves every task's session once against a registry snapshot.
Tasks whose session is absent or not connected are left in place without
counting an attempt. Connected tasks are grouped into one lane per
session: lanes run concurrently, tasks inside a lane run one after the
other, and each task sends its document then (after a short pause that
keeps provider-side ordering) its caption.

Delivery is at-least-once: a failed caption leaves the whole task queued,
so the document is sent again on the next tick.

Retry policy:
    max_attempts=None   retry until success (default)
    max_attempts=N      after N failed sends the task moves to the
                        dead-letter list
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from linkbridge.core.errors import DeliveryFailure
from linkbridge.delivery.types import DeliveryTask, DrainResult, normalize_recipient

if TYPE_CHECKING:
    from linkbridge.sessions.registry import Session, SessionRegistry

logger = logging.getLogger(__name__)

DEFAULT_CAPTION_DELAY = 0.25  # seconds
DEFAULT_RECIPIENT_SUFFIX = "@s.whatsapp.net"


class DeliveryQueue:
    """FIFO of pending deliveries checked against the session registry.

    Attributes:
        caption_delay: Seconds between a document and its caption.
        recipient_suffix: Domain appended to bare recipient numbers.
        max_attempts: Failed sends before dead-lettering (None = unlimited).
    """

    def __init__(
        self,
        registry: SessionRegistry,
        caption_delay: float = DEFAULT_CAPTION_DELAY,
        recipient_suffix: str = DEFAULT_RECIPIENT_SUFFIX,
        max_attempts: int | None = None,
    ) -> None:
        self._registry = registry
        self.caption_delay = caption_delay
        self.recipient_suffix = recipient_suffix
        self.max_attempts = max_attempts
        self._tasks: list[DeliveryTask] = []
        self._dead_letters: list[DeliveryTask] = []
        self._drain_lock = asyncio.Lock()

    def enqueue(self, task: DeliveryTask) -> DeliveryTask:
        """Append a task to the tail of the queue."""
        self._tasks.append(task)
        logger.info(
            "Task %s queued for session '%s' (queue size: %d)",
            task.task_id,
            task.session_id,
            len(self._tasks),
        )
        return task

    def remove(self, task_id: str) -> DeliveryTask | None:
        """Drop a pending task.

        Returns:
            The removed task, or None if no pending task has this id.
        """
        for task in self._tasks:
            if task.task_id == task_id:
                self._discard(task)
                logger.info("Task %s removed from queue", task_id)
                return task
        return None

    def pending(self) -> list[DeliveryTask]:
        """Pending tasks in queue order."""
        return list(self._tasks)

    def dead_letters(self) -> list[DeliveryTask]:
        """Tasks that exhausted their attempts."""
        return list(self._dead_letters)

    def __len__(self) -> int:
        return len(self._tasks)

    async def drain(self) -> DrainResult:
        """Try to deliver every pending task once.

        A drain that starts while another is still running returns an empty
        result immediately.
        """
        if self._drain_lock.locked():
            logger.debug("Previous drain still running, skipping tick")
            return DrainResult()
        async with self._drain_lock:
            return await self._drain()

    async def _drain(self) -> DrainResult:
        result = DrainResult()
        if not self._tasks:
            return result

        logger.debug("Processing delivery queue (size: %d)", len(self._tasks))
        sessions = self._registry.snapshot()
        lanes: dict[str, list[DeliveryTask]] = {}
        for task in list(self._tasks):
            session = sessions.get(task.session_id)
            if session is None or not session.is_connected:
                result.waiting += 1
                logger.debug(
                    "Session '%s' not connected, task %s will be retried",
                    task.session_id,
                    task.task_id,
                )
                continue
            lanes.setdefault(task.session_id, []).append(task)

        await asyncio.gather(*(
            self._run_lane(sessions[session_id], tasks, result)
            for session_id, tasks in lanes.items()
        ))

        if result.sent or result.failed or result.dead_lettered:
            logger.info(
                "Drain finished: %d sent, %d failed, %d waiting, %d dead-lettered",
                result.sent,
                result.failed,
                result.waiting,
                result.dead_lettered,
            )
        return result

    async def _run_lane(
        self,
        session: Session,
        tasks: list[DeliveryTask],
        result: DrainResult,
    ) -> None:
        for task in tasks:
            if not session.is_connected:
                result.waiting += 1
                continue
            try:
                await self._deliver(session, task)
            except DeliveryFailure as e:
                self._record_failure(task, e, result)
                continue
            self._discard(task)
            result.sent += 1
            logger.info(
                "Document sent for session '%s' to '%s' (task %s)",
                task.session_id,
                task.recipient,
                task.task_id,
            )

    async def _deliver(self, session: Session, task: DeliveryTask) -> None:
        """Send a task's document and caption.

        Raises:
            DeliveryFailure: If any send fails.
        """
        transport = session.transport
        if transport is None:
            raise DeliveryFailure(task.task_id, "session has no transport")

        address = normalize_recipient(task.recipient, self.recipient_suffix)
        try:
            await transport.send_document(address, task.document, task.file_name, task.mimetype)
            if task.has_caption:
                logger.debug("Sending caption for task %s", task.task_id)
                await asyncio.sleep(self.caption_delay)
                await transport.send_text(address, task.caption or "")
        except Exception as e:
            raise DeliveryFailure(task.task_id, str(e) or type(e).__name__) from e

    def _record_failure(
        self,
        task: DeliveryTask,
        error: DeliveryFailure,
        result: DrainResult,
    ) -> None:
        task.attempts += 1
        task.last_error = str(error)
        logger.error(
            "Error sending document for session '%s' to '%s' (attempt %d): %s",
            task.session_id,
            task.recipient,
            task.attempts,
            error,
        )
        if self.max_attempts is not None and task.attempts >= self.max_attempts:
            self._discard(task)
            self._dead_letters.append(task)
            result.dead_lettered += 1
            logger.warning(
                "Task %s dead-lettered after %d attempts", task.task_id, task.attempts
            )
        else:
            result.failed += 1

    def _discard(self, task: DeliveryTask) -> None:
        with contextlib.suppress(ValueError):
            self._tasks.remove(task)
