"""FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from chat_backend import __version__
from chat_backend.api.v1.router import router as v1_router
from chat_backend.core.config import get_settings
from chat_backend.core.database import close_database, get_db_session, init_database
from chat_backend.core.exceptions import setup_exception_handlers
from chat_backend.core.health import HealthCheckService, HealthStatus
from chat_backend.core.logging import setup_logging, setup_request_logging

logger = logging.getLogger("chat_backend")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:  # noqa: ARG001
    """Application lifespan handler for startup and shutdown."""
    settings = get_settings()
    init_database(settings)
    logger.info(
        "Application started",
        extra={
            "env": settings.app_env,
            "embedding_model": settings.openai_embedding_model,
            "embed_on_ingest": settings.embed_on_ingest,
        },
    )
    yield
    logger.info("Application shutting down")
    await close_database()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    setup_logging(settings)

    app = FastAPI(
        title="Chat Backend API",
        description="Chat message storage with embedding ingestion and backfill",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Request logging must be added before CORS
    setup_request_logging(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_exception_handlers(app)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        """Simple health check endpoint for basic liveness probes."""
        return {
            "status": "ok",
            "message": "Backend is running",
            "timestamp": datetime.now(UTC).isoformat(),
        }

    @app.get("/health/live", tags=["health"])
    async def liveness_check() -> dict[str, str]:
        """Liveness probe: 200 while the process is serving requests."""
        return {"status": "healthy"}

    @app.get("/health/ready", tags=["health"])
    async def readiness_check(
        db_session: AsyncSession = Depends(get_db_session),
    ) -> Response:
        """Readiness probe.

        Returns 200 unless a critical dependency (the database) is down,
        in which case 503.
        """
        health_service = HealthCheckService(db_session=db_session, settings=settings)
        result = await health_service.check_readiness()

        status_code = 200 if result.status != HealthStatus.UNHEALTHY else 503
        return JSONResponse(content=result.to_dict(), status_code=status_code)

    @app.get("/health/detailed", tags=["health"])
    async def detailed_health_check(
        db_session: AsyncSession = Depends(get_db_session),
    ) -> dict[str, Any]:
        """Detailed health check with all component statuses."""
        health_service = HealthCheckService(db_session=db_session, settings=settings)
        result = await health_service.check_all()
        return result.to_dict()

    app.include_router(v1_router)

    return app


app = create_app()


def run() -> None:
    """Run the application with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "chat_backend.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.app_log_level.lower(),
    )


if __name__ == "__main__":
    run()
