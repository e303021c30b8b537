import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
from uuid import uuid4
from pydantic import ValidationError
from config.settings import settings
from core.job_runner import Clock, JobRunner, RunnerHandle
from core.lookup_client import LookupClient
from core.notifier import ProgressNotifier
from core.registration_sink import RegistrationSink
from model.api import JobItemInput
from model.job import Job, JobItem
from repository.base import JobStore
from util.constants import CANCELLED_BY_USER
from util.enums import ErrorMessage
from util.errors import InvalidInput, JobBusy
from util.functions import short_id, utcnow

logger = logging.getLogger(__name__)

ItemInput = Union[JobItemInput, Mapping[str, Any]]


class JobManager:
    """
    Lifecycle API for background consultation jobs.

    Flow:
    - Every read-modify-write of a job document (by lifecycle calls here and
      by its runner) happens under that job's asyncio.Lock.
    - `_runners` maps job_id -> RunnerHandle; starting a runner is a
      test-and-set on it under the job lock, so resume and the stale sweep
      can never put two runners on one job.
    - pause/cancel flip the stored status and set the runner's stop signal;
      the runner notices at its next item boundary.
    """

    def __init__(
        self,
        store: JobStore,
        lookup: LookupClient,
        sink: RegistrationSink,
        notifier: Optional[ProgressNotifier] = None,
        *,
        item_delay: float = settings.ITEM_DELAY_SECONDS,
        stale_threshold: float = settings.STALE_THRESHOLD_SECONDS,
        recovery_interval: float = settings.RECOVERY_INTERVAL_SECONDS,
        max_batch_items: int = settings.MAX_BATCH_ITEMS,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self.notifier = notifier or ProgressNotifier()
        self._item_delay = float(item_delay)
        self._stale_threshold = float(stale_threshold)
        self._recovery_interval = float(recovery_interval)
        self._max_batch_items = int(max_batch_items)
        self._clock = clock
        self._runners: Dict[str, RunnerHandle] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._sweeper: Optional["asyncio.Task[None]"] = None
        self._runner = JobRunner(
            store,
            lookup,
            sink,
            self.notifier,
            item_delay=self._item_delay,
            clock=clock,
            release=self._release,
        )

    # ---------------- Runner registry ----------------

    def _lock_for(self, job_id: str) -> asyncio.Lock:
        lock = self._locks.get(job_id)
        if lock is None:
            lock = self._locks[job_id] = asyncio.Lock()
        return lock

    def _release(self, handle: RunnerHandle) -> None:
        if self._runners.get(handle.job_id) is handle:
            del self._runners[handle.job_id]

    def _active(self, job_id: str) -> Optional[RunnerHandle]:
        handle = self._runners.get(job_id)
        return handle if handle is not None and handle.active else None

    def _ensure_runner(self, job_id: str) -> bool:
        """Caller holds the job lock. Returns True when a new runner was started."""
        handle = self._active(job_id)
        if handle is not None:
            # A halting runner re-checks status under the same lock, so
            # clearing its stop signal keeps it going instead of racing it.
            handle.stop.clear()
            return False
        handle = RunnerHandle(job_id=job_id, lock=self._lock_for(job_id))
        self._runners[job_id] = handle
        handle.task = asyncio.create_task(
            self._runner.run(handle), name=f"job-runner-{short_id(job_id)}"
        )
        return True

    def is_active(self, job_id: str) -> bool:
        return self._active(job_id) is not None

    @property
    def active_job_ids(self) -> List[str]:
        return [job_id for job_id in self._runners if self.is_active(job_id)]

    async def join(self, job_id: str) -> None:
        """Wait for the job's current runner (if any) to exit."""
        handle = self._active(job_id)
        if handle is not None and handle.task is not None:
            await asyncio.wait({handle.task})

    # ---------------- Lifecycle ----------------

    def _validate(self, items: Sequence[ItemInput]) -> List[JobItem]:
        if not items:
            raise InvalidInput.of(ErrorMessage.EMPTY_BATCH)
        if len(items) > self._max_batch_items:
            raise InvalidInput.of(ErrorMessage.BATCH_TOO_LARGE)

        out: List[JobItem] = []
        for raw in items:
            try:
                parsed = raw if isinstance(raw, JobItemInput) else JobItemInput.model_validate(raw)
            except ValidationError as e:
                raise InvalidInput(f"Malformed batch item: {e.errors()[0].get('msg', '')}") from e
            key = parsed.key.strip()
            if not key:
                raise InvalidInput.of(ErrorMessage.BLANK_KEY)
            out.append(JobItem(key=key, label=parsed.label.strip()))
        return out

    async def create_job(self, items: Sequence[ItemInput]) -> str:
        job_items = self._validate(items)
        now = self._clock()
        job = Job(
            id=uuid4().hex,
            status="running",
            total_items=len(job_items),
            processed_items=0,
            started_at=now,
            last_updated_at=now,
            items=job_items,
        )
        job.refresh_estimate(self._item_delay)

        async with self._lock_for(job.id):
            await self._store.put(job)
            self._ensure_runner(job.id)
        logger.info("job.created job=%s items=%d", short_id(job.id), job.total_items)
        return job.id

    async def pause(self, job_id: str) -> Optional[Job]:
        async with self._lock_for(job_id):
            job = await self._store.get(job_id)
            if job is None or job.status != "running":
                return job
            job.status = "paused"
            job.touch(self._clock())
            await self._store.put(job)
            handle = self._active(job_id)
            if handle is not None:
                handle.stop.set()
            self.notifier.publish("paused", job)
        logger.info("job.paused job=%s processed=%d/%d", short_id(job_id), job.processed_items, job.total_items)
        return job

    async def resume(self, job_id: str) -> Optional[Job]:
        async with self._lock_for(job_id):
            job = await self._store.get(job_id)
            if job is None or job.status != "paused":
                return job
            job.status = "running"
            job.touch(self._clock())
            await self._store.put(job)
            self.notifier.publish("resumed", job)
            started = self._ensure_runner(job_id)
        logger.info(
            "job.resumed job=%s pending=%d new_runner=%s",
            short_id(job_id),
            len(job.pending_indexes()),
            started,
        )
        return job

    async def cancel(self, job_id: str) -> Optional[Job]:
        async with self._lock_for(job_id):
            job = await self._store.get(job_id)
            if job is None or job.status in ("completed", "error"):
                return job
            job.status = "error"
            job.failure_reason = CANCELLED_BY_USER
            job.touch(self._clock())
            await self._store.put(job)
            handle = self._active(job_id)
            if handle is not None:
                handle.stop.set()
            self.notifier.publish("cancelled", job)
        logger.info("job.cancelled job=%s processed=%d/%d", short_id(job_id), job.processed_items, job.total_items)
        return job

    async def remove(self, job_id: str) -> bool:
        """
        Delete a job document. Raises JobBusy while the job is running with a
        live runner; a paused/cancelled job whose runner is still finishing
        its in-flight item is removed once that runner exits.
        """
        lock = self._lock_for(job_id)
        async with lock:
            job = await self._store.get(job_id)
            if job is None:
                return False
            handle = self._active(job_id)
            if handle is not None and job.status == "running":
                raise JobBusy(job_id)
            draining = handle.task if handle is not None else None

        if draining is not None:
            logger.info("job.remove.drain job=%s", short_id(job_id))
            await asyncio.wait({draining})

        async with lock:
            job = await self._store.get(job_id)
            if job is None:
                return False
            if job.status == "running" and self.is_active(job_id):
                raise JobBusy(job_id)
            await self._store.delete(job_id)
            self.notifier.publish("removed", job)
        self._locks.pop(job_id, None)
        self._runner.discard(job_id)
        logger.info("job.removed job=%s", short_id(job_id))
        return True

    async def get(self, job_id: str) -> Optional[Job]:
        return await self._store.get(job_id)

    async def list(self) -> List[Job]:
        return await self._store.all()

    # ---------------- Stale job recovery ----------------

    def _is_stale(self, job: Job) -> bool:
        idle = (self._clock() - job.last_updated_at).total_seconds()
        return job.status == "running" and idle > self._stale_threshold

    async def recover_stale_jobs(self) -> List[str]:
        """
        Restart runners for `running` jobs that have not been updated within
        the staleness threshold and have no live runner. A stale job with no
        pending items left is marked completed instead.
        """
        restarted: List[str] = []
        for candidate in await self._store.all():
            if not self._is_stale(candidate):
                continue
            async with self._lock_for(candidate.id):
                job = await self._store.get(candidate.id)
                if job is None or not self._is_stale(job) or self.is_active(job.id):
                    continue

                job.touch(self._clock())
                if job.next_pending() is None:
                    job.status = "completed"
                    job.processed_items = job.total_items
                    job.refresh_estimate(self._item_delay)
                    await self._store.put(job)
                    self.notifier.publish("completed", job)
                    logger.info("recovery.completed job=%s", short_id(job.id))
                    continue

                await self._store.put(job)
                self.notifier.publish("resumed", job)
                self._ensure_runner(job.id)
                restarted.append(job.id)
                logger.info(
                    "recovery.restarted job=%s pending=%d",
                    short_id(job.id),
                    len(job.pending_indexes()),
                )
        return restarted

    def start_recovery_loop(self) -> None:
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.create_task(self._sweep_forever(), name="job-recovery")

    async def _sweep_forever(self) -> None:
        while True:
            try:
                await self.recover_stale_jobs()
            except Exception:
                logger.exception("recovery.sweep.error")
            await asyncio.sleep(self._recovery_interval)

    async def shutdown(self) -> None:
        """Stop the sweep and every runner. Running jobs stay `running` for the next process."""
        tasks: List["asyncio.Task[None]"] = []
        if self._sweeper is not None:
            self._sweeper.cancel()
            tasks.append(self._sweeper)
            self._sweeper = None
        for handle in list(self._runners.values()):
            handle.stop.set()
            if handle.task is not None:
                handle.task.cancel()
                tasks.append(handle.task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("manager.shutdown runners=%d", len(tasks))
