from fastapi import APIRouter, Depends, HTTPException

from compliance_queue.api.deps import get_queue_store, get_redis_client
from compliance_queue.core.config import settings
from compliance_queue.core.redis_client import RedisClient
from compliance_queue.services.queue_store import QueueStore

router = APIRouter()


@router.get("/")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": "compliance-queue",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT
    }


@router.get("/detailed")
async def detailed_health_check(
    redis: RedisClient = Depends(get_redis_client),
    store: QueueStore = Depends(get_queue_store)
):
    """Health check including Redis and queue depths."""
    health_status = {
        "status": "healthy",
        "service": "compliance-queue",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
        "checks": {}
    }

    if await redis.ping():
        health_status["checks"]["redis"] = {"status": "healthy", "message": "Redis connection OK"}
    else:
        health_status["checks"]["redis"] = {"status": "unhealthy", "error": "Redis not reachable"}
        health_status["status"] = "unhealthy"

    stats = await store.get_stats()
    health_status["checks"]["queue"] = {"status": "healthy", "stats": stats.model_dump()}

    if health_status["status"] == "unhealthy":
        raise HTTPException(status_code=503, detail=health_status)

    return health_status
