import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal

import redis.asyncio as redis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.modules.gems.store import BalanceStore
from src.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class HealthCheckResult:
    """Result of a health check."""

    service: str
    status: Literal["healthy", "unhealthy", "degraded"]
    connected: bool
    details: dict
    error: str | None = None


@dataclass
class OverallHealthStatus:
    """Overall health status with individual service results."""

    status: Literal["healthy", "degraded", "unhealthy"]
    services: dict[str, HealthCheckResult]
    timestamp: str


class HealthService:
    """Service for performing health checks on various system components."""

    def __init__(
        self,
        db: AsyncSession | None,
        redis: redis.Redis | None,
        store: BalanceStore,
    ):
        self.db = db
        self.redis = redis
        self.store = store

    async def check_database_health(self) -> HealthCheckResult:
        """Database connection health check."""
        try:
            result = await self.db.execute(text("SELECT 1 as test"))
            test_value = result.scalar()

            return HealthCheckResult(
                service="database",
                status="healthy",
                connected=True,
                details={"test_query_result": test_value},
            )
        except Exception as e:
            logger.error(f"Database health check error: {e}")
            return HealthCheckResult(
                service="database",
                status="unhealthy",
                connected=False,
                details={},
                error=str(e),
            )

    async def check_redis_health(self) -> HealthCheckResult:
        """Redis connection health check; the cost cache degrades without it."""
        try:
            await self.redis.ping()
            return HealthCheckResult(
                service="redis", status="healthy", connected=True, details={}
            )
        except Exception as e:
            logger.error(f"Redis health check error: {e}")
            return HealthCheckResult(
                service="redis",
                status="degraded",
                connected=False,
                details={},
                error=str(e),
            )

    async def check_gem_store_health(self) -> HealthCheckResult:
        try:
            costs = await self.store.read_feature_costs()
            return HealthCheckResult(
                service="gem_store",
                status="healthy",
                connected=True,
                details={
                    "backend": self.store.__class__.__name__,
                    "feature_costs": len(costs),
                },
            )
        except Exception as e:
            logger.error(f"Gem store health check error: {e}")
            return HealthCheckResult(
                service="gem_store",
                status="unhealthy",
                connected=False,
                details={"backend": self.store.__class__.__name__},
                error=str(e),
            )

    async def run_all_checks(self) -> OverallHealthStatus:
        """Run all health checks in parallel and return overall status."""
        tasks = [self.check_gem_store_health()]
        if self.db is not None:
            tasks.append(self.check_database_health())
        if self.redis is not None:
            tasks.append(self.check_redis_health())

        results = await asyncio.gather(*tasks)

        services = {}
        overall_status: Literal["healthy", "degraded", "unhealthy"] = "healthy"
        for result in results:
            if result.status == "unhealthy":
                overall_status = "unhealthy"
            elif result.status == "degraded" and overall_status == "healthy":
                overall_status = "degraded"
            services[result.service] = result

        return OverallHealthStatus(
            status=overall_status,
            services=services,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
