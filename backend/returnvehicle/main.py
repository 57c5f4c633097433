"""
ReturnVehicle API - Main Application Entry Point

A seat marketplace for empty return legs of hired vehicles:
- Drivers publish rides with a fixed seat capacity
- Riders book seats; concurrent bookings can never oversell a ride
- Cancellations and rejections give seats back exactly once
- Redis-cached catalog search, structured logs and Prometheus metrics
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from returnvehicle.api.errors import register_exception_handlers
from returnvehicle.api.middleware import RequestLoggingMiddleware
from returnvehicle.api.router import api_router
from returnvehicle.core.config import get_settings
from returnvehicle.core.logging import get_logger, setup_logging
from returnvehicle.core.metrics import metrics_endpoint
from returnvehicle.db.session import AsyncSessionLocal
from returnvehicle.services.reconciler import reconcile_pass, run_periodic_reconcile
from returnvehicle.services.cache_service import close_redis, get_cache_stats, get_redis

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    if settings.RECONCILE_ON_STARTUP:
        compensated = await reconcile_pass(AsyncSessionLocal)
        logger.info("startup_reconcile_done", compensated=compensated)

    reconcile_task = None
    if settings.RECONCILE_INTERVAL_SECONDS > 0:
        reconcile_task = asyncio.create_task(
            run_periodic_reconcile(AsyncSessionLocal, settings.RECONCILE_INTERVAL_SECONDS),
            name="seat-release-reconciler",
        )

    yield

    if reconcile_task is not None:
        reconcile_task.cancel()
        try:
            await reconcile_task
        except asyncio.CancelledError:
            pass
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Return-trip seat marketplace with oversell-proof bookings",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)
app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_endpoint()
