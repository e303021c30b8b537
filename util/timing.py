import time
from contextlib import contextmanager
from typing import Iterator, Any
import logging


@contextmanager
def timed(logger: logging.Logger, name: str, **kv: Any) -> Iterator[None]:
    """
    Usage:
      with timed(logger, "lookup.call", key="***123"):
          ...
    Emits one INFO on success ("<name>.done ms=<int> key=val ...")
    or one WARNING when the block raises ("<name>.failed ...").
    """
    t0 = time.perf_counter()
    outcome = "done"
    try:
        yield
    except BaseException:
        outcome = "failed"
        raise
    finally:
        dt_ms = int((time.perf_counter() - t0) * 1000)
        suffix = "".join(f" {k}={v}" for k, v in kv.items())
        level = logging.INFO if outcome == "done" else logging.WARNING
        logger.log(level, "%s.%s ms=%d%s", name, outcome, dt_ms, suffix)
