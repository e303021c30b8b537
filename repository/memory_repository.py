from typing import Dict, List, Optional, Set
from model.job import Job
from repository.base import JobStore


class InMemoryJobRepository(JobStore):
    """
    Process-local store with the same semantics as the Redis one.
    Documents are copied in and out so callers never share instances.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}  # dicts keep insertion order
        self._registered: Set[str] = set()

    async def get(self, job_id: str) -> Optional[Job]:
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job is not None else None

    async def put(self, job: Job) -> None:
        self._jobs[job.id] = job.model_copy(deep=True)

    async def delete(self, job_id: str) -> int:
        return 1 if self._jobs.pop(job_id, None) is not None else 0

    async def all(self) -> List[Job]:
        return [j.model_copy(deep=True) for j in self._jobs.values()]

    async def is_registered(self, key: str) -> bool:
        return key in self._registered

    async def mark_registered(self, key: str) -> bool:
        if key in self._registered:
            return False
        self._registered.add(key)
        return True
