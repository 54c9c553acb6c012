"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures logging, exception handlers, and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import PostgresSettingsRepository, run_migrations
from src.api.dependencies import build_verification_service
from src.api.errors import register_exception_handlers
from src.api.v1 import router as v1_router
from src.config.settings import get_settings
from src.domain.platform_settings import PlatformSettingsService
from src.domain.scheduler import ConversionScheduler

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {"name": "ebooks", "description": "Catalog, purchases, payment callbacks and downloads"},
    {"name": "students", "description": "Student registration with document verification"},
    {"name": "location", "description": "Regional product availability"},
    {"name": "admin", "description": "Administrator operations (HTTP BASIC AUTH)"},
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates database connection pool on startup
    - Runs migrations and seeds default platform settings
    - Starts the daily conversion scheduler when enabled
    - Stops the scheduler and closes the pool on shutdown
    """
    settings = get_settings()

    logger.info("Starting application...")
    logger.info("Connecting to database...")

    # Create connection pool with explicit sizing
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
    )

    logger.info("Running database migrations...")
    run_migrations(pool)

    settings_service = PlatformSettingsService(PostgresSettingsRepository(pool))
    settings_service.bootstrap()

    scheduler = ConversionScheduler(
        build_verification_service(pool, settings_service, settings),
        run_hour=settings.conversion_hour,
    )
    if settings.scheduler_enabled:
        scheduler.start()
    else:
        logger.info("Conversion scheduler disabled; sweeps run on demand only")

    # Store process-wide objects in app state for dependency injection
    app.state.pool = pool
    app.state.settings_service = settings_service
    app.state.scheduler = scheduler

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    scheduler.stop()
    pool.close()
    logger.info("Database connection pool closed")


app = FastAPI(
    title="leafledger",
    description="Digital marketplace API - ebook catalog, student discounts and "
    "verified downloads",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

register_exception_handlers(app)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
async def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint with database validation.

    Returns 200 OK if application and database are healthy.
    Raises exception if database connection fails.
    """
    # Validate database connectivity
    pool = request.app.state.pool
    with pool.connection() as conn:
        conn.execute("SELECT 1")

    return {"status": "healthy"}
