from fastapi import Request
from fastapi_limiter.depends import RateLimiter
from config.settings import settings
from service.job_manager import JobManager
from service.lookup_service import LookupService

# Shared so every router counts against the same window (and tests can override it)
rate_limit = RateLimiter(times=settings.RATE_LIMIT_TIMES, seconds=settings.RATE_LIMIT_SECONDS)


def get_job_manager(request: Request) -> JobManager:
    # One manager per process: it owns the runner registry
    return request.app.state.job_manager


def get_lookup_service(request: Request) -> LookupService:
    return request.app.state.lookup_service
