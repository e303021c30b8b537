import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple
from core.lookup_client import LookupClient
from core.notifier import ProgressNotifier
from core.registration_sink import RegistrationSink
from model.job import ItemStatus, Job, JobItem
from model.lookup import LookupResult
from repository.base import JobStore
from util.errors import LookupFailed, RegistrationFailed
from util.functions import short_id, utcnow

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass(eq=False)
class RunnerHandle:
    """
    Registry entry for one live runner. `lock` is the job's document lock,
    shared with the lifecycle calls; `stop` is the cooperative cancel signal.
    """

    job_id: str
    lock: asyncio.Lock
    stop: asyncio.Event = field(default_factory=asyncio.Event)
    task: Optional["asyncio.Task[None]"] = None

    @property
    def active(self) -> bool:
        return self.task is not None and not self.task.done()


@dataclass
class ItemOutcome:
    status: ItemStatus
    result: Optional[LookupResult] = None
    error_message: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.status in ("success", "no_result")

    @property
    def registrable(self) -> bool:
        if self.status == "success":
            return True
        return self.status == "no_result" and self.result is not None and self.result.is_no_offer


def classify(result: LookupResult) -> ItemStatus:
    return "success" if result.has_offers else "no_result"


class JobRunner:
    """
    Drives one job through its pending items, strictly in order:

      boundary check -> lookup -> persist outcome + progress event
      -> one registration attempt -> boundary check ...

    The boundary check happens under the job lock and is where the runner
    either halts (stop signal, status not running, job gone), completes the
    job (no pending items left) or picks the next pending item. Halting
    releases the registry entry inside the same critical section, so a
    concurrent resume either sees this runner still going or sees it gone.

    The inter-item delay is a per-job deadline checked at the boundary, so a
    pause/resume pair (or a fresh runner after a resume) still waits out
    whatever is left of it before the next lookup.
    """

    def __init__(
        self,
        store: JobStore,
        lookup: LookupClient,
        sink: RegistrationSink,
        notifier: ProgressNotifier,
        *,
        item_delay: float,
        clock: Clock = utcnow,
        release: Callable[[RunnerHandle], None] = lambda handle: None,
    ) -> None:
        self._store = store
        self._lookup = lookup
        self._sink = sink
        self._notifier = notifier
        self._item_delay = max(0.0, float(item_delay))
        self._clock = clock
        self._release = release
        self._not_before: Dict[str, float] = {}  # job_id -> loop.time() of next allowed lookup

    async def run(self, handle: RunnerHandle) -> None:
        job_id = handle.job_id
        logger.info("runner.start job=%s", short_id(job_id))
        try:
            while True:
                picked = await self._next_item(handle)
                if picked is None:
                    return
                index, item = picked

                outcome = await self._resolve(item)
                recorded = await self._record(handle, index, outcome)
                if not recorded:
                    return

                if outcome.registrable and not item.registered:
                    await self._register(handle, index, item, outcome)

                self._arm_delay(job_id)
                await asyncio.sleep(0)
        except asyncio.CancelledError:
            logger.info("runner.cancelled job=%s", short_id(job_id))
            raise
        except Exception:
            # Store failures end this runner; the job stays `running` and the
            # stale sweep restarts it later.
            logger.exception("runner.crashed job=%s", short_id(job_id))
        finally:
            self._release(handle)

    # ---------------- Steps ----------------

    async def _next_item(self, handle: RunnerHandle) -> Optional[Tuple[int, JobItem]]:
        while True:
            async with handle.lock:
                job = await self._store.get(handle.job_id)
                if job is None:
                    logger.warning("runner.job.missing job=%s", short_id(handle.job_id))
                    self._forget(handle)
                    return None
                if handle.stop.is_set() or job.status != "running":
                    logger.info(
                        "runner.halt job=%s status=%s processed=%d/%d",
                        short_id(job.id),
                        job.status,
                        job.processed_items,
                        job.total_items,
                    )
                    if job.status == "paused":
                        self._release(handle)
                    else:
                        self._forget(handle)
                    return None

                index = job.next_pending()
                if index is None:
                    await self._complete(job)
                    self._forget(handle)
                    return None

                wait = self._delay_remaining(job.id)
                if wait <= 0:
                    return index, job.items[index]

            # Wakes early when pause/cancel sets the stop signal; the boundary
            # check above then decides whether to halt or keep waiting.
            try:
                await asyncio.wait_for(handle.stop.wait(), timeout=wait)
            except asyncio.TimeoutError:
                pass

    async def _resolve(self, item: JobItem) -> ItemOutcome:
        try:
            result = await self._lookup.lookup(item.key)
        except LookupFailed as e:
            return ItemOutcome(status="error", error_message=e.message)
        except Exception as e:
            logger.exception("runner.lookup.unexpected key=%s", item.key[-4:])
            return ItemOutcome(status="error", error_message=str(e) or type(e).__name__)
        return ItemOutcome(status=classify(result), result=result)

    async def _record(self, handle: RunnerHandle, index: int, outcome: ItemOutcome) -> bool:
        async with handle.lock:
            job = await self._store.get(handle.job_id)
            if job is None:
                logger.warning("runner.job.removed job=%s", short_id(handle.job_id))
                self._forget(handle)
                return False
            if job.status == "completed":
                return False

            item = job.items[index]
            if not item.is_pending:
                logger.warning(
                    "runner.item.already_resolved job=%s index=%d", short_id(job.id), index
                )
                return True

            item.item_status = outcome.status
            if outcome.resolved and outcome.result is not None:
                item.result = outcome.result.model_dump(mode="json")
            else:
                item.error_message = outcome.error_message or "lookup failed"

            job.processed_items = min(max(job.processed_items, index + 1), job.total_items)
            job.touch(self._clock())
            job.refresh_estimate(self._item_delay)
            await self._store.put(job)
            self._notifier.publish("progress", job)

        logger.info(
            "runner.item.done job=%s index=%d status=%s processed=%d/%d",
            short_id(job.id),
            index,
            outcome.status,
            job.processed_items,
            job.total_items,
        )
        return True

    async def _register(
        self, handle: RunnerHandle, index: int, item: JobItem, outcome: ItemOutcome
    ) -> None:
        try:
            if await self._store.is_registered(item.key):
                logger.info("runner.register.skip_known key=%s", item.key[-4:])
            else:
                amount = outcome.result.amount if outcome.result is not None else 0.0
                has_amount = amount > 0
                await self._sink.register(
                    item.key, item.label, has_amount, amount if has_amount else None
                )
                await self._store.mark_registered(item.key)
        except RegistrationFailed as e:
            logger.warning("runner.register.failed key=%s err=%s", item.key[-4:], e)
            return
        except Exception:
            logger.exception("runner.register.failed key=%s", item.key[-4:])
            return

        async with handle.lock:
            job = await self._store.get(handle.job_id)
            if job is None or job.items[index].registered:
                return
            job.items[index].registered = True
            job.touch(self._clock())
            await self._store.put(job)
            self._notifier.publish("progress", job)

    async def _complete(self, job: Job) -> None:
        job.status = "completed"
        job.processed_items = job.total_items
        job.touch(self._clock())
        job.refresh_estimate(self._item_delay)
        await self._store.put(job)
        self._notifier.publish("completed", job)
        logger.info("runner.completed job=%s items=%d", short_id(job.id), job.total_items)

    # ---------------- Inter-item delay ----------------

    def _arm_delay(self, job_id: str) -> None:
        if self._item_delay > 0:
            self._not_before[job_id] = asyncio.get_running_loop().time() + self._item_delay

    def _delay_remaining(self, job_id: str) -> float:
        not_before = self._not_before.get(job_id)
        if not_before is None:
            return 0.0
        return not_before - asyncio.get_running_loop().time()

    def _forget(self, handle: RunnerHandle) -> None:
        """Job is finished, cancelled or gone: drop its delay deadline and registry entry."""
        self._not_before.pop(handle.job_id, None)
        self._release(handle)

    def discard(self, job_id: str) -> None:
        self._not_before.pop(job_id, None)
