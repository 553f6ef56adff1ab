"""
Bounded-concurrency FIFO queue for asynchronous tasks.

Every Gemini call (page extraction and diagram captioning) goes through one
shared RequestQueue, so no more than max_concurrent requests are ever in
flight, however many pages and diagrams are being processed.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Set

from config import MAX_CONCURRENT_REQUESTS

logger = logging.getLogger(__name__)


@dataclass
class QueuedTask:
    """A task waiting for a slot, with the future that carries its outcome."""
    task: Callable[[], Awaitable[Any]]
    future: asyncio.Future


class RequestQueue:
    """Runs at most max_concurrent tasks at once, admitting waiters in FIFO order."""

    def __init__(self, max_concurrent: int = MAX_CONCURRENT_REQUESTS):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self._pending: Deque[QueuedTask] = deque()
        self._active = 0
        self._running: Set[asyncio.Task] = set()

    @property
    def active_count(self) -> int:
        return self._active

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def add(self, task: Callable[[], Awaitable[Any]]) -> asyncio.Future:
        """
        Enqueue a zero-argument coroutine function.

        Must be called from a running event loop. The returned future
        resolves (or fails) with the task's own outcome.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._pending.append(QueuedTask(task, future))
        self._drain()
        return future

    def _drain(self) -> None:
        """Start waiting tasks until the queue is empty or every slot is taken."""
        while self._active < self.max_concurrent and self._pending:
            queued = self._pending.popleft()
            if queued.future.cancelled():
                continue
            self._active += 1
            runner = asyncio.ensure_future(self._run(queued))
            self._running.add(runner)
            runner.add_done_callback(self._running.discard)

    async def _run(self, queued: QueuedTask) -> None:
        try:
            result = await queued.task()
        except asyncio.CancelledError:
            if not queued.future.done():
                queued.future.cancel()
            raise
        except Exception as e:
            if not queued.future.done():
                queued.future.set_exception(e)
        else:
            if not queued.future.done():
                queued.future.set_result(result)
        finally:
            self._active -= 1
            self._drain()
