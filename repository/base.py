from abc import ABC, abstractmethod
from typing import List, Optional
from model.job import Job


class JobStore(ABC):
    """
    Durable map of job_id -> Job document plus a one-time
    "already registered" marker per item key.

    Writes are whole-document; callers serialize read-modify-write cycles
    on the same job themselves (see JobManager's per-job locks).
    """

    @abstractmethod
    async def get(self, job_id: str) -> Optional[Job]: ...

    @abstractmethod
    async def put(self, job: Job) -> None: ...

    @abstractmethod
    async def delete(self, job_id: str) -> int: ...

    @abstractmethod
    async def all(self) -> List[Job]:
        """All stored jobs in insertion order."""

    @abstractmethod
    async def is_registered(self, key: str) -> bool: ...

    @abstractmethod
    async def mark_registered(self, key: str) -> bool:
        """Set the marker; True only for the call that set it first."""
