from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from compliance_queue.api.v1.router import api_router
from compliance_queue.core.config import settings
from compliance_queue.core.logging import get_logger, setup_logging
from compliance_queue.core.redis_client import RedisClient
from compliance_queue.services.queue_store import create_queue_store
from compliance_queue.workers.handlers import create_default_processor


# Setup logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire the queue at startup; a down Redis degrades it to no-ops."""
    redis = RedisClient()
    await redis.connect_or_degrade()

    store = create_queue_store(redis)
    app.state.redis = redis
    app.state.queue_store = store
    app.state.queue_processor = create_default_processor(store)
    logger.info("Compliance queue startup completed", redis_connected=redis.is_connected)

    yield

    try:
        await redis.disconnect()
        logger.info("Compliance queue shutdown completed")
    except Exception as e:
        logger.error(f"Compliance queue shutdown failed: {e}")


app = FastAPI(
    title=settings.APP_NAME,
    description="""
    **Compliance Job Queue** - persistent, Redis-backed deferred work

    - Enqueue exports, emails, webhooks and automation triggers
    - Retry with exponential backoff and a dead letter queue
    - Operator endpoints for stats, dead-letter inspection and manual retry
    - Cron entry point: `POST /v1/queue/process`
    """,
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.include_router(api_router, prefix="/v1")


@app.get("/")
async def root():
    """Root endpoint with service information."""
    return {
        "service": settings.APP_NAME,
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
        "status": "running",
        "docs_url": "/docs",
        "health_check": "/v1/health",
    }


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.detail,
            "status_code": exc.status_code
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
            "details": str(exc) if settings.DEBUG else "An unexpected error occurred"
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "compliance_queue.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
