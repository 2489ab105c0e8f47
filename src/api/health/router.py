"""Health check endpoints for debugging and monitoring."""

from fastapi import APIRouter, Request

from src.modules.health.service import HealthService, OverallHealthStatus
from src.redis.client import get_redis_client
from src.utils.logger import get_logger

logger = get_logger(__name__)

# Create separate routers for root and health endpoints
root_router = APIRouter()
router = APIRouter(prefix="/health", tags=["health"])


@root_router.get("/")
async def root():
    return {"service": "studio-gem-api", "docs": "/docs"}


@router.get("/")
async def health_check(request: Request) -> OverallHealthStatus:
    """Check the gem store, database and Redis."""
    state = request.app.state
    redis_client = await get_redis_client()
    if state.store_backend == "sql":
        async with state.session_factory() as db:
            return await HealthService(db, redis_client, state.balance_store).run_all_checks()
    return await HealthService(None, redis_client, state.balance_store).run_all_checks()


@router.get("/liveness")
async def liveness_check():
    """Simple liveness check - indicates if service is running."""
    return {"status": "alive", "service": "studio-gem-api"}
