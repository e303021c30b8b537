import logging
from typing import Final, List, Optional
from redis.asyncio import Redis
from config.cache import get_redis
from model.job import Job
from repository.base import JobStore
from repository.namespaces import JOB_INDEX, JOB_SEQ, JOBS, REGISTERED

KEY_PREFIX: Final[str] = JOBS

logger = logging.getLogger(__name__)


class JobRepository(JobStore):
    """
    Redis-backed job documents.

    Flow:
    - Each job is one JSON string at `cltconsult:jobs:<id>` (no TTL; jobs
      live until removed).
    - Creation order is tracked in a sorted set so `all()` lists jobs in
      insertion order.
    - The registered marker is a plain key written with SET NX.
    """

    def __init__(self, client: Optional[Redis] = None) -> None:
        self._redis = client

    async def _client(self) -> Redis:
        if self._redis is not None:
            return self._redis
        return await get_redis()

    @staticmethod
    def _key(job_id: str) -> str:
        return f"{KEY_PREFIX}:{job_id}"

    @staticmethod
    def _registered_key(key: str) -> str:
        return f"{REGISTERED}:{key}"

    # ---------------- Core CRUD ----------------

    async def put(self, job: Job) -> None:
        r = await self._client()
        payload = job.model_dump_json().encode("utf-8")
        score = await r.zscore(JOB_INDEX, job.id)
        if score is None:
            # First write: take the next creation sequence number
            score = await r.incr(JOB_SEQ)
        async with r.pipeline(transaction=True) as pipe:
            pipe.set(self._key(job.id), payload)
            # NX keeps the original creation score on every later write
            pipe.zadd(JOB_INDEX, {job.id: score}, nx=True)
            await pipe.execute()

    async def get(self, job_id: str) -> Optional[Job]:
        if not job_id:
            return None
        r = await self._client()
        raw = await r.get(self._key(job_id))
        if raw is None:
            return None
        try:
            return Job.model_validate_json(raw)
        except ValueError:
            logger.warning("store.job.malformed job=%s", job_id)
            return None

    async def delete(self, job_id: str) -> int:
        if not job_id:
            return 0
        r = await self._client()
        async with r.pipeline(transaction=True) as pipe:
            pipe.delete(self._key(job_id))
            pipe.zrem(JOB_INDEX, job_id)
            deleted, _ = await pipe.execute()
        return int(deleted)

    async def all(self) -> List[Job]:
        r = await self._client()
        ids = await r.zrange(JOB_INDEX, 0, -1)
        if not ids:
            return []
        job_ids = [
            i.decode("utf-8") if isinstance(i, (bytes, bytearray)) else str(i)
            for i in ids
        ]
        raws = await r.mget([self._key(j) for j in job_ids])
        out: List[Job] = []
        for job_id, raw in zip(job_ids, raws):
            if raw is None:
                # Index entry outlived its document; drop it
                await r.zrem(JOB_INDEX, job_id)
                continue
            try:
                out.append(Job.model_validate_json(raw))
            except ValueError:
                logger.warning("store.job.malformed job=%s", job_id)
                continue
        return out

    # ---------------- Registration markers ----------------

    async def is_registered(self, key: str) -> bool:
        r = await self._client()
        return bool(await r.exists(self._registered_key(key)))

    async def mark_registered(self, key: str) -> bool:
        r = await self._client()
        return bool(await r.set(self._registered_key(key), b"1", nx=True))
