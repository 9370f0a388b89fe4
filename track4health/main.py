# track4health/main.py
import logging
from contextlib import asynccontextmanager

import httpx
import redis.asyncio as redis
from apscheduler.schedulers.asyncio import AsyncIOScheduler as Scheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .api import auth, awareness, dashboard, screenings, sync, system, users
from .api.utilities.limiter import limiter
from .config.config import settings
from .db.storage_client import StorageClient
from .logging.logging_config import setup_logging
from .modules.remote_api import RemoteApiClient
from .services.auth_service import AuthService
from .services.record_store import RecordStore
from .tasks.cron import connectivity_probe_task, heartbeat_task
from .tools.connectivity import ConnectivityMonitor
from .tools.location_channel import LocationChannel

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Builds the shared object graph on startup and tears it down on shutdown.
    A failure is logged and leaves the state empty; `/health` keeps answering.
    """
    logger.info("Starting Track4Health...")

    try:
        redis_pool = redis.ConnectionPool.from_url(settings.APPLICATION_REDIS_URL, decode_responses=True)
        app.state.redis_pool = redis_pool
        storage_client = StorageClient(pool=redis_pool)

        record_store = RecordStore(storage_client)
        await record_store.load()

        http_client = httpx.AsyncClient(timeout=settings.REMOTE_API_TIMEOUT_SECONDS)
        app.state.http_client = http_client
        connectivity = ConnectivityMonitor()
        remote_api = RemoteApiClient(http_client, settings.REMOTE_API_BASE_URL, connectivity)

        auth_service = AuthService(storage=storage_client, remote_api=remote_api)
        location_channel = LocationChannel()
        location_channel.subscribe(auth_service.on_location)

        app.state.storage_client = storage_client
        app.state.record_store = record_store
        app.state.connectivity = connectivity
        app.state.remote_api = remote_api
        app.state.location_channel = location_channel
        logger.info("Storage and remote API clients created.")

        scheduler = Scheduler()
        scheduler.add_job(heartbeat_task, "interval", seconds=settings.HEARTBEAT_INTERVAL_SECONDS, args=[auth_service], id="heartbeat")
        scheduler.add_job(
            connectivity_probe_task,
            "interval",
            seconds=settings.CONNECTIVITY_PROBE_INTERVAL_SECONDS,
            args=[remote_api, connectivity],
            id="connectivity_probe",
        )
        scheduler.start()
        app.state.scheduler = scheduler
        logger.info("Scheduled jobs started.")

    except Exception as e:
        logger.error(f"Startup failed: {e}", exc_info=True)
        for name in ("storage_client", "record_store", "connectivity", "remote_api", "location_channel", "scheduler"):
            setattr(app.state, name, None)

    yield

    logger.info("Shutting down Track4Health...")
    if getattr(app.state, "scheduler", None):
        app.state.scheduler.shutdown()
        logger.info("Scheduler stopped.")
    if getattr(app.state, "http_client", None):
        await app.state.http_client.aclose()
    if getattr(app.state, "redis_pool", None):
        await app.state.redis_pool.disconnect()
        logger.info("Redis connection pool closed.")


app = FastAPI(
    title="Track4Health API",
    description="Field data collection for awareness sessions and child nutrition screening",
    version="1.0.0",
    lifespan=lifespan,
)
app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(auth.router, prefix="/api/v1")
app.include_router(awareness.router, prefix="/api/v1")
app.include_router(screenings.router, prefix="/api/v1")
app.include_router(users.router, prefix="/api/v1")
app.include_router(sync.router, prefix="/api/v1")
app.include_router(dashboard.router, prefix="/api/v1")
app.include_router(system.router, prefix="/api/v1")


@app.get("/health", tags=["System"])
def health_check():
    """Liveness probe."""
    return {"status": "ok", "message": "Track4Health API is running."}
