"""FastAPI application setup and configuration."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.shared.config import get_settings
from src.shared.constants import CORS_PREFLIGHT_MAX_AGE_SECONDS
from src.shared.database import startup, shutdown
from src.shared.feature_flags import is_redis_persistence_enabled
from src.api.middleware.error_handler import setup_exception_handlers
from src.api.middleware.logging import RequestLoggingMiddleware, setup_logging

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Verifies Redis on startup when Redis persistence is enabled and closes
    the connection pool on shutdown.
    """
    setup_logging()
    if is_redis_persistence_enabled():
        await startup()
    else:
        logger.info("Redis persistence disabled, sessions are kept in memory")
    yield
    await shutdown()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    application = FastAPI(
        title="Career Assessment API",
        description="""
        Guided career assessment conversation:
        - Fixed sequence of sections and question types
        - One generated question per turn, of exactly the required type
        - Session progress, reset and consistency diagnostics
        """,
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # In production, set CORS_ORIGINS env variable with actual frontend domains
    cors_origins = settings.cors_origins_list

    if settings.is_production and not cors_origins:
        logger.warning(
            "No CORS_ORIGINS configured in production. "
            "API will not be accessible from browsers. "
            "Set CORS_ORIGINS env variable to allow frontend access."
        )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=[
            "Content-Type",
            "Accept",
            "Origin",
            "X-Requested-With",
            "X-Request-ID",
            "session-id",
        ],
        max_age=CORS_PREFLIGHT_MAX_AGE_SECONDS,
    )

    setup_exception_handlers(application)

    application.add_middleware(RequestLoggingMiddleware)

    from src.api.routers import assessment_router, health_router

    application.include_router(
        health_router,
        prefix="/health",
        tags=["Health"],
    )
    application.include_router(
        assessment_router,
        prefix="/assessment",
        tags=["Assessment"],
    )

    return application


# Create app instance
app = create_app()
