from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import StreamingResponse
from controller.controller_dependencies import get_job_manager, rate_limit
from core.streaming import make_job_event_stream
from model.api import CreateJobRequest, CreateJobResponse, RecoverResponse
from model.job import Job
from service.job_manager import JobManager
from util.constants import InternalURIs
from util.errors import JobNotFound

job_router = APIRouter(tags=["jobs"], dependencies=[Depends(rate_limit)])


def _found(job: Job | None, job_id: str) -> Job:
    if job is None:
        raise JobNotFound(job_id)
    return job


@job_router.post(
    InternalURIs.JOBS,
    response_model=CreateJobResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_job(
    payload: CreateJobRequest,
    manager: JobManager = Depends(get_job_manager),
) -> CreateJobResponse:
    job_id = await manager.create_job(payload.items)
    return CreateJobResponse(jobId=job_id)


@job_router.get(InternalURIs.JOBS, response_model=list[Job])
async def list_jobs(manager: JobManager = Depends(get_job_manager)) -> list[Job]:
    return await manager.list()


# Declared before /jobs/{job_id} so "events" is not read as an id
@job_router.get(InternalURIs.JOB_EVENTS)
async def stream_job_events(manager: JobManager = Depends(get_job_manager)):
    return StreamingResponse(
        make_job_event_stream(manager), media_type="application/x-ndjson"
    )


@job_router.post(InternalURIs.JOBS_RECOVER, response_model=RecoverResponse)
async def recover_jobs(manager: JobManager = Depends(get_job_manager)) -> RecoverResponse:
    return RecoverResponse(restarted=await manager.recover_stale_jobs())


@job_router.get(InternalURIs.JOB, response_model=Job)
async def get_job(job_id: str, manager: JobManager = Depends(get_job_manager)) -> Job:
    return _found(await manager.get(job_id), job_id)


@job_router.post(InternalURIs.JOB_PAUSE, response_model=Job)
async def pause_job(job_id: str, manager: JobManager = Depends(get_job_manager)) -> Job:
    return _found(await manager.pause(job_id), job_id)


@job_router.post(InternalURIs.JOB_RESUME, response_model=Job)
async def resume_job(job_id: str, manager: JobManager = Depends(get_job_manager)) -> Job:
    return _found(await manager.resume(job_id), job_id)


@job_router.post(InternalURIs.JOB_CANCEL, response_model=Job)
async def cancel_job(job_id: str, manager: JobManager = Depends(get_job_manager)) -> Job:
    return _found(await manager.cancel(job_id), job_id)


@job_router.delete(InternalURIs.JOB, status_code=status.HTTP_204_NO_CONTENT)
async def remove_job(job_id: str, manager: JobManager = Depends(get_job_manager)) -> Response:
    if not await manager.remove(job_id):
        raise JobNotFound(job_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
