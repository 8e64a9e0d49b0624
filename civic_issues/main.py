"""
Civic Issues API - Main FastAPI Application
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from civic_issues.config import settings
from civic_issues.database import close_db
from civic_issues.errors import register_exception_handlers
from civic_issues.schemas import HealthResponse
from civic_issues.tasks import setup_scheduler, shutdown_scheduler
from civic_issues.middleware import (
    SecurityHeadersMiddleware,
    RequestSizeLimitMiddleware,
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SessionContextMiddleware,
    create_bucket_store,
    get_request_size_limit,
    get_rate_limits,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Token buckets shared by every request (Redis when configured)
bucket_store = create_bucket_store(settings.REDIS_URL)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for startup and shutdown events.

    Handles:
    - Background scheduler startup and shutdown
    - Rate limit store and database connection cleanup on shutdown

    Tables are managed by Alembic migrations.
    """
    logger.info("Starting up Civic Issues API...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"CORS Origins: {settings.cors_origins_list}")

    setup_scheduler()
    logger.info("Startup complete")

    yield

    logger.info("Shutting down Civic Issues API...")
    shutdown_scheduler()
    await bucket_store.close()
    await close_db()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Civic Issues API",
    description="API for reporting, routing and tracking municipal civic issues",
    version="1.0.0",
    lifespan=lifespan,
)

register_exception_handlers(app)


def configure_middleware(app: FastAPI) -> None:
    """
    Install the middleware stack.

    Starlette runs the last-added middleware first, so requests pass
    through CORS, session context, size limit, rate limit, security
    headers and logging in that order.
    """
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)

    # Keyed by the user id that the session context puts on request.state
    rate_limits = get_rate_limits()
    app.add_middleware(
        RateLimitMiddleware,
        auth_requests_per_minute=rate_limits["auth_limit"],
        general_requests_per_minute=rate_limits["general_limit"],
        store=bucket_store,
    )

    app.add_middleware(RequestSizeLimitMiddleware, max_size=get_request_size_limit())
    app.add_middleware(SessionContextMiddleware)

    cors_origins = settings.cors_origins_list
    if settings.is_production and "*" in cors_origins:
        logger.warning(
            "CORS allows all origins (*) in production; browsers will not send "
            "the session cookie. Set CORS_ORIGINS to the frontend origins."
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=600,
    )


configure_middleware(app)


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Liveness probe for load balancers; does not touch the database."""
    return HealthResponse(status="healthy", service="civic-issues-api", version="1.0.0")


@app.get("/")
async def root():
    return {
        "name": "Civic Issues API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "public_dashboard": "/api/public-dashboard",
    }


# Include API routers
from civic_issues.api.router import api_router

app.include_router(api_router)
