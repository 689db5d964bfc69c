"""
A one-slot "latest wins" work queue.

While a run is active, new submissions overwrite a single pending slot
instead of queueing up. When the active run finishes, the pending item (if
any) starts immediately, so the worker always converges on the most recent
submission and never runs concurrently with itself.
"""
import asyncio
import enum
import logging
from typing import Any, Awaitable, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class QueueState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    RUNNING_WITH_PENDING = "running-with-pending"


class CoalescingQueue:
    """Serialize calls to an async *worker*, collapsing bursts of submissions."""

    def __init__(self, worker: Callable[[Any], Awaitable[Any]], name: str = "queue"):
        self._worker = worker
        self.name = name
        self.state = QueueState.IDLE
        self._pending: Optional[Tuple[Any, List[asyncio.Future]]] = None
        self._drain_task: Optional[asyncio.Task] = None
        self.runs = 0
        self.superseded = 0

    @property
    def busy(self) -> bool:
        return self.state is not QueueState.IDLE

    async def submit(self, item) -> Any:
        """
        Run *item* now, or park it as the pending item if a run is active.

        Resolves with the outcome of the run that covered this submission: its
        own run, or the later run of whichever submission replaced it.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        if self.state is QueueState.IDLE:
            self.state = QueueState.RUNNING
            self._drain_task = loop.create_task(self._drain(item, [future]))
        else:
            waiters = [future]
            if self._pending is not None:
                # Replace, never append: the older pending item is dropped
                self.superseded += 1
                waiters = self._pending[1] + waiters
                logger.debug(f"{self.name}: pending submission superseded")
            self._pending = (item, waiters)
            self.state = QueueState.RUNNING_WITH_PENDING

        return await future

    async def wait_idle(self) -> None:
        """Wait until no run is active or pending."""
        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.shield(self._drain_task)

    async def _drain(self, item, waiters: List[asyncio.Future]) -> None:
        while True:
            self.runs += 1
            try:
                result = await self._worker(item)
            except Exception as exc:
                for waiter in waiters:
                    if not waiter.done():
                        waiter.set_exception(exc)
            else:
                for waiter in waiters:
                    if not waiter.done():
                        waiter.set_result(result)

            if self._pending is None:
                self.state = QueueState.IDLE
                return
            item, waiters = self._pending
            self._pending = None
            self.state = QueueState.RUNNING
