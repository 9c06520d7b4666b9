"""
Main FastAPI application entry point for PartnerLogic.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from partnerlogic.auth.client import get_auth_admin_client
from partnerlogic.communications import get_email_gateway
from partnerlogic.db import check_database_health, init_db
from partnerlogic.exceptions import register_exception_handlers
from partnerlogic.logging import setup_logging
from partnerlogic.routers import get_api_info, register_routers
from partnerlogic.settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifecycle events."""
    setup_logging()
    logger = structlog.get_logger(__name__)

    logger.info(
        "service.startup.begin",
        service=settings.app_name,
        version=settings.app_version,
        environment=settings.environment.value,
    )

    try:
        await init_db()
        logger.info("database.init.success")
    except Exception as e:
        logger.error("database.init.failed", error=str(e))
        # Continue in development, fail in production
        if settings.is_production:
            raise

    logger.info("service.startup.complete")

    yield

    logger.info("service.shutdown.begin")
    await get_email_gateway().close()
    await get_auth_admin_client().close()
    logger.info("service.shutdown.complete")


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="PartnerLogic",
        description="Partner relationship management: deals, MDF, tiers, invoices and support",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
    )

    logger = structlog.get_logger(__name__)

    app.add_middleware(GZipMiddleware, minimum_size=1000)

    if settings.cors.enabled:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors.origins,
            allow_credentials=settings.cors.credentials,
            allow_methods=settings.cors.methods,
            allow_headers=settings.cors.headers,
            max_age=settings.cors.max_age,
        )

    register_exception_handlers(app)
    logger.info("exception_handlers.registered")

    register_routers(app)

    # Health check endpoint (public - no auth required)
    @app.get("/health")
    async def health_check() -> dict[str, Any]:
        """Health check endpoint for monitoring."""
        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment.value,
        }

    # Liveness check endpoint (public - no auth required)
    @app.get("/health/live")
    async def liveness_check() -> dict[str, Any]:
        """Liveness check endpoint for Kubernetes."""
        return {
            "status": "alive",
            "version": settings.app_version,
            "environment": settings.environment.value,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    # Readiness check endpoint (public - no auth required)
    @app.get("/health/ready")
    async def readiness_check() -> dict[str, Any]:
        """Readiness check endpoint for Kubernetes."""
        database_ok = await check_database_health()
        return {
            "status": "ready" if database_ok else "not ready",
            "healthy": database_ok,
            "services": {"database": "healthy" if database_ok else "unhealthy"},
            "timestamp": datetime.now(UTC).isoformat(),
        }

    @app.get("/api")
    async def api_info() -> dict[str, Any]:
        """API info endpoint (root)."""
        return get_api_info()

    return app


# Create application instance
app = create_application()


# For development server
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "partnerlogic.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.observability.log_level.value.lower(),
    )
