import asyncio
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Callable, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio

from core.lookup_client import LookupClient
from core.registration_sink import RegistrationSink
from model.job import Job, JobItem, JobStatus
from model.lookup import LookupResult, Offer
from repository.memory_repository import InMemoryJobRepository
from service.job_manager import JobManager
from util.constants import NO_OFFER_MESSAGE
from util.errors import LookupFailed, RegistrationFailed

T0 = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def offer_result(key: str, amount: float = 1500.0) -> LookupResult:
    return LookupResult(key=key, offers=[Offer(request_id=f"req-{key}", amount=amount)])


def empty_result(key: str) -> LookupResult:
    return LookupResult(key=key, error=True, message=NO_OFFER_MESSAGE)


class FakeLookup(LookupClient):
    """
    Scripted lookups. `outcomes[key]` may be a LookupResult or an exception
    to raise; unknown keys get one offer. Every call is recorded in order.
    """

    def __init__(self, outcomes: Optional[Dict[str, object]] = None, delay: float = 0.0) -> None:
        self.outcomes = outcomes or {}
        self.delay = delay
        self.calls: List[str] = []
        self.called_at: List[float] = []  # loop.time() of each call

    async def lookup(self, key: str) -> LookupResult:
        self.calls.append(key)
        self.called_at.append(asyncio.get_running_loop().time())
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.outcomes.get(key)
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, LookupResult):
            return outcome
        return offer_result(key)


class FakeSink(RegistrationSink):
    def __init__(self, failing: Optional[set] = None) -> None:
        self.failing = failing or set()
        self.calls: List[Tuple[str, str, bool, Optional[float]]] = []

    async def register(self, key, label, has_amount, amount=None) -> None:
        self.calls.append((key, label, has_amount, amount))
        if key in self.failing:
            raise RegistrationFailed("downstream unavailable")


class FakeClock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


def batch(n: int) -> List[dict]:
    return [{"key": f"{i:011d}", "label": f"Worker {i}"} for i in range(1, n + 1)]


def stored_job(
    job_id: str,
    keys: List[str],
    *,
    status: JobStatus = "running",
    resolved: int = 0,
    at: datetime = T0,
) -> Job:
    items = [JobItem(key=k, label=k) for k in keys]
    for item in items[:resolved]:
        item.item_status = "success"
    return Job(
        id=job_id,
        status=status,
        total_items=len(items),
        processed_items=resolved,
        started_at=at,
        last_updated_at=at,
        items=items,
    )


async def wait_for_status(
    manager: JobManager, job_id: str, *statuses: str, timeout: float = 3.0
) -> Job:
    async def _poll() -> Job:
        while True:
            job = await manager.get(job_id)
            if job is not None and job.status in statuses:
                return job
            await asyncio.sleep(0.005)

    return await asyncio.wait_for(_poll(), timeout)


@pytest.fixture
def store() -> InMemoryJobRepository:
    return InMemoryJobRepository()


@pytest.fixture
def lookup() -> FakeLookup:
    return FakeLookup()


@pytest.fixture
def sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def make_manager(store, lookup, sink, clock) -> AsyncGenerator[Callable[..., JobManager], None]:
    created: List[JobManager] = []

    def _make(**overrides) -> JobManager:
        kwargs = dict(
            store=store,
            lookup=lookup,
            sink=sink,
            item_delay=0.0,
            stale_threshold=120.0,
            recovery_interval=30.0,
            clock=clock,
        )
        kwargs.update(overrides)
        manager = JobManager(**kwargs)
        created.append(manager)
        return manager

    yield _make
    for manager in created:
        await manager.shutdown()


@pytest_asyncio.fixture
async def manager(make_manager) -> JobManager:
    return make_manager()
