from typing import Final

ROOT: Final[str] = "cltconsult"

JOBS: Final[str] = f"{ROOT}:jobs"
JOB_INDEX: Final[str] = f"{JOBS}:index"  # sorted set, score = creation sequence
REGISTERED: Final[str] = f"{ROOT}:registered"  # one-time marker per CPF
JOB_SEQ: Final[str] = f"{JOBS}:seq"  # INCR counter feeding JOB_INDEX scores
