from fastapi import HTTPException, status
from util.enums import ErrorMessage


class AppError(HTTPException):
    # Flow: raise AppError to short-circuit with a typed status & message.
    def __init__(
        self, message: str, http_status: int = status.HTTP_400_BAD_REQUEST
    ) -> None:
        super().__init__(status_code=http_status, detail=message)

    @classmethod
    def of(cls, error: ErrorMessage) -> "AppError":
        return cls(error.value.message, error.value.http_status)


class InvalidInput(AppError):
    """Batch rejected before any job document is written."""

    def __init__(
        self, message: str, http_status: int = status.HTTP_422_UNPROCESSABLE_ENTITY
    ) -> None:
        super().__init__(message, http_status)


class JobNotFound(AppError):
    def __init__(self, job_id: str) -> None:
        info = ErrorMessage.JOB_NOT_FOUND.value
        super().__init__(f"{info.message}: {job_id}", info.http_status)
        self.job_id = job_id


class JobBusy(AppError):
    def __init__(self, job_id: str) -> None:
        info = ErrorMessage.JOB_BUSY.value
        super().__init__(info.message, info.http_status)
        self.job_id = job_id


class LookupFailed(Exception):
    """The external lookup could not produce a result for one key."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class RegistrationFailed(Exception):
    pass
