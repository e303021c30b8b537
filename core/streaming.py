import json
import logging
from typing import AsyncIterator, Dict, Final
from model.api import JobEvent, StreamLine
from service.job_manager import JobManager

LINE_SEP: Final[str] = "\n"
logger = logging.getLogger(__name__)


def ndjson_line(obj: Dict[str, object]) -> bytes:
    return (json.dumps(obj, separators=(",", ":")) + LINE_SEP).encode("utf-8")


def _event_line(event: JobEvent) -> bytes:
    line = StreamLine(type="event", payload=event.model_dump(mode="json"))
    return ndjson_line(line.model_dump())


async def make_job_event_stream(manager: JobManager) -> AsyncIterator[bytes]:
    """
    Observer feed for dashboards:
      - subscribe first, so nothing published during the replay is lost
      - replay one `snapshot` line per stored job (reconciliation)
      - then forward every live job event as an `event` line
    An event may repeat state already in a snapshot; consumers key on job id.
    """
    async with manager.notifier.listen() as queue:
        jobs = await manager.list()
        logger.info("stream.start jobs=%d", len(jobs))
        for job in jobs:
            line = StreamLine(type="snapshot", payload=job.model_dump(mode="json"))
            yield ndjson_line(line.model_dump())

        try:
            while True:
                event = await queue.get()
                yield _event_line(event)
        finally:
            logger.info("stream.closed")
