from fastapi_limiter import FastAPILimiter
import routes
from contextlib import asynccontextmanager
from util.enums import Environment, Color
from fastapi import FastAPI, Request
from starlette.middleware.cors import CORSMiddleware
from config.settings import settings
from config.cache import close_redis, get_redis
from core.lookup_client import HttpLookupClient
from core.notifier import ProgressNotifier
from core.registration_sink import HttpRegistrationSink
from fastapi.responses import JSONResponse
from repository.job_repository import JobRepository
from service.job_manager import JobManager
from service.lookup_service import LookupService
from util.logger import init_logger


async def _real_ip(request: Request) -> str:
    if settings.TRUST_PROXY:
        fwd = request.headers.get("x-forwarded-for")
        if fwd:
            return fwd.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def build_job_manager() -> JobManager:
    return JobManager(
        store=JobRepository(),
        lookup=HttpLookupClient(),
        sink=HttpRegistrationSink(),
        notifier=ProgressNotifier(),
    )


@asynccontextmanager
async def lifespan(fastApi: FastAPI):
    logger = init_logger()
    try:
        print(f"{Color.GREEN}Initializing...{Color.RESET}")
        redis = await get_redis()
        await FastAPILimiter.init(redis, identifier=_real_ip)
    except Exception as e:
        print("Failed to connect to Redis:", e)
        raise

    manager = build_job_manager()
    fastApi.state.job_manager = manager
    fastApi.state.lookup_service = LookupService(HttpLookupClient(), HttpRegistrationSink())
    # Picks up jobs orphaned by a previous process once they go stale
    manager.start_recovery_loop()
    print(f"{Color.BLUE}Server Started{Color.RESET}")

    try:
        yield
    finally:
        await manager.shutdown()
        try:
            await close_redis()
        except Exception as e:
            logger.error("redis.close.error err=%s", e)

        print(f"{Color.RED}Server Shutdown{Color.RESET}")


app: FastAPI = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.ALLOWED_ORIGIN],
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Authorization", "Content-Type", "Accept"],
)


@app.get("/healthz")
async def healthz():
    return {"ok": True}


@app.exception_handler(429)
async def ratelimit_handler(request: Request, exc):
    return JSONResponse(
        status_code=429,
        content={
            "ok": False,
            "error": "rate_limited",
            "message": "Too many requests. Try again later.",
        },
        headers={"Retry-After": str(settings.RATE_LIMIT_SECONDS)},
    )


routes.register_routes(app)

if __name__ == "__main__":
    import uvicorn

    reload = settings.APP_ENV == Environment.DEV
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=reload)
