"""Health checks for the database and the backfill job queue."""

import logging
import time
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from redis import Redis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from chat_backend import __version__
from chat_backend.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


@dataclass
class ComponentHealth:
    """Health status for a single component."""

    name: str
    status: HealthStatus
    message: str | None = None
    latency_ms: float | None = None


@dataclass
class HealthCheckResult:
    """Overall health check result."""

    status: HealthStatus
    components: list[ComponentHealth]
    version: str = __version__

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON response."""
        return {
            "status": self.status.value,
            "version": self.version,
            "components": {
                c.name: {
                    "status": c.status.value,
                    "message": c.message,
                    "latency_ms": c.latency_ms,
                }
                for c in self.components
            },
        }


class HealthCheckService:
    """Checks the dependencies the message API needs.

    The database is critical: messages cannot be stored without it. Redis
    only backs the background backfill queue, so losing it degrades the
    service instead of taking it down.
    """

    CRITICAL_COMPONENTS = frozenset({"database"})

    def __init__(
        self,
        db_session: AsyncSession | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.db_session = db_session
        self.settings = settings or get_settings()

    async def check_database(self) -> ComponentHealth:
        """Run ``SELECT 1`` against the message store."""
        if self.db_session is None:
            return ComponentHealth(
                name="database",
                status=HealthStatus.UNHEALTHY,
                message="No database session available",
            )

        start = time.perf_counter()
        try:
            result = await self.db_session.execute(text("SELECT 1"))
            result.scalar()
        except Exception as e:
            logger.warning(f"Database health check failed: {e}")
            return ComponentHealth(
                name="database",
                status=HealthStatus.UNHEALTHY,
                message=str(e),
            )

        return ComponentHealth(
            name="database",
            status=HealthStatus.HEALTHY,
            message="Connected",
            latency_ms=round((time.perf_counter() - start) * 1000, 2),
        )

    async def check_queue(self) -> ComponentHealth:
        """Ping the Redis instance behind the backfill queue."""
        start = time.perf_counter()
        try:
            redis_client: Redis = Redis.from_url(  # type: ignore[type-arg]
                str(self.settings.redis_url),
                socket_timeout=5,
            )
            redis_client.ping()
            redis_client.close()
        except Exception as e:
            logger.warning(f"Queue health check failed: {e}")
            return ComponentHealth(
                name="queue",
                status=HealthStatus.UNHEALTHY,
                message=str(e),
            )

        return ComponentHealth(
            name="queue",
            status=HealthStatus.HEALTHY,
            message="Connected",
            latency_ms=round((time.perf_counter() - start) * 1000, 2),
        )

    def check_embedding_config(self) -> ComponentHealth:
        """Report which embedding model is configured (no provider call)."""
        if not self.settings.openai_api_key:
            return ComponentHealth(
                name="embeddings",
                status=HealthStatus.DEGRADED,
                message="No provider API key; new messages will stay pending",
            )
        return ComponentHealth(
            name="embeddings",
            status=HealthStatus.HEALTHY,
            message=self.settings.openai_embedding_model,
        )

    async def check_all(self) -> HealthCheckResult:
        """Check all dependencies and return overall health."""
        components = [
            await self.check_database(),
            await self.check_queue(),
            self.check_embedding_config(),
        ]

        if all(c.status == HealthStatus.HEALTHY for c in components):
            overall_status = HealthStatus.HEALTHY
        elif any(
            c.status == HealthStatus.UNHEALTHY and c.name in self.CRITICAL_COMPONENTS
            for c in components
        ):
            overall_status = HealthStatus.UNHEALTHY
        else:
            overall_status = HealthStatus.DEGRADED

        return HealthCheckResult(status=overall_status, components=components)

    async def check_readiness(self) -> HealthCheckResult:
        """Readiness is the full dependency check."""
        return await self.check_all()
