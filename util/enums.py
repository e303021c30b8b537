from enum import Enum
from typing import NamedTuple
from fastapi import status


class Color(str, Enum):
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    BOLD = "\033[1m"

    def __str__(self):
        return self.value


class Environment(str, Enum):
    DEV = "dev"
    PROD = "prod"


class ErrorInfo(NamedTuple):
    message: str
    http_status: int


class ErrorMessage(Enum):
    EMPTY_BATCH = ErrorInfo(
        "Batch must contain at least one item", status.HTTP_422_UNPROCESSABLE_ENTITY
    )
    BLANK_KEY = ErrorInfo(
        "Every item needs a non-blank key", status.HTTP_422_UNPROCESSABLE_ENTITY
    )
    BATCH_TOO_LARGE = ErrorInfo(
        "Batch exceeds the maximum number of items",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    JOB_NOT_FOUND = ErrorInfo("Job not found", status.HTTP_404_NOT_FOUND)
    JOB_BUSY = ErrorInfo(
        "Job is still running; pause or cancel it before removing",
        status.HTTP_409_CONFLICT,
    )
    UPSTREAM_ERROR = ErrorInfo("Upstream request failed", status.HTTP_502_BAD_GATEWAY)
