import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List
from model.api import JobEvent
from model.job import Job
from util.types import EventType

logger = logging.getLogger(__name__)


class ProgressNotifier:
    """
    Fan-out of job mutations to any number of observers.

    Each subscriber owns an unbounded queue, so every published event is
    delivered to every live subscriber in publish order. Nothing is kept for
    observers that subscribe later; they reconcile through JobManager.list().
    """

    def __init__(self) -> None:
        self._subscribers: List[asyncio.Queue[JobEvent]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> "asyncio.Queue[JobEvent]":
        queue: asyncio.Queue[JobEvent] = asyncio.Queue()
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: "asyncio.Queue[JobEvent]") -> None:
        try:
            self._subscribers.remove(queue)
        except ValueError:
            pass

    def publish(self, type_: EventType, job: Job) -> JobEvent:
        # Snapshot so later mutations of `job` don't leak into queued events
        event = JobEvent(type=type_, job=job.model_copy(deep=True))
        for queue in list(self._subscribers):
            queue.put_nowait(event)
        logger.debug(
            "notify.%s job=%s processed=%d/%d subscribers=%d",
            type_,
            job.id,
            job.processed_items,
            job.total_items,
            len(self._subscribers),
        )
        return event

    @asynccontextmanager
    async def listen(self) -> AsyncIterator["asyncio.Queue[JobEvent]"]:
        queue = self.subscribe()
        try:
            yield queue
        finally:
            self.unsubscribe(queue)
