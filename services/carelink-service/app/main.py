"""
CareLink Service — FastAPI entrypoint
"""
import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from app import models  # noqa: F401  (registers tables on Base.metadata)
from app.api import appointments, categories, donation_items, donations, health, inventory, schedules
from app.core.config import get_settings
from app.core.errors import ServiceError, service_error_handler
from app.db.database import Base, engine
from app.middleware.auth import JWTAuthMiddleware
from app.middleware.rate_limiter import SlidingWindowRateLimiter

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("%s %s started", settings.SERVICE_NAME, settings.SERVICE_VERSION)
    yield
    await app.state.redis.aclose()
    await engine.dispose()


app = FastAPI(
    title="CareLink Service",
    description="Donation requirements, inventory, pledges and visiting appointments for a care home.",
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
)

# Backs the rate limiter; connects lazily on first command
app.state.redis = aioredis.from_url(
    settings.redis_url,
    decode_responses=True,
    socket_connect_timeout=settings.HEALTH_CHECK_TIMEOUT,
)

# Middleware order matters: last added = outermost
app.add_middleware(JWTAuthMiddleware)
if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(SlidingWindowRateLimiter)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=True,
                   allow_methods=["*"], allow_headers=["*"])

app.add_exception_handler(ServiceError, service_error_handler)

if settings.METRICS_ENABLED:
    Instrumentator().instrument(app).expose(app, endpoint="/metrics")

app.include_router(schedules.router)
app.include_router(appointments.router)
app.include_router(categories.router)
app.include_router(donation_items.router)
app.include_router(donations.router)
app.include_router(inventory.router)
app.include_router(health.router)


@app.get("/")
async def root():
    return {"service": settings.SERVICE_NAME, "version": settings.SERVICE_VERSION}
