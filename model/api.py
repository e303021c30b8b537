from pydantic import BaseModel, Field
from model.job import Job
from util.types import EventType, StreamLineType


class JobItemInput(BaseModel):
    key: str
    label: str = ""


class CreateJobRequest(BaseModel):
    items: list[JobItemInput]


class CreateJobResponse(BaseModel):
    jobId: str


class RecoverResponse(BaseModel):
    restarted: list[str]


class LookupRequest(BaseModel):
    key: str = Field(min_length=1)


class JobEvent(BaseModel):
    type: EventType
    job: Job


class StreamLine(BaseModel):
    type: StreamLineType
    payload: dict
