import asyncio
from typing import Any, Dict, Optional

from celery import Celery

from compliance_queue.core.config import settings
from compliance_queue.core.logging import get_logger
from compliance_queue.core.redis_client import RedisClient
from compliance_queue.services.queue_store import create_queue_store

from .handlers import create_default_processor

logger = get_logger(__name__)

# Celery only supplies the periodic tick; jobs themselves live in the
# Redis-backed queue store, not in Celery's broker.
celery_app = Celery(
    "compliance_queue",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,

    task_routes={
        'compliance_queue.workers.celery_app.*': {'queue': 'queue_tasks'},
    },

    worker_concurrency=4,
    worker_prefetch_multiplier=1,
    task_acks_late=True,

    beat_schedule={
        "process-job-queue": {
            "task": "compliance_queue.workers.celery_app.process_queue_jobs",
            "schedule": settings.QUEUE_POLL_INTERVAL_SECONDS,
        },
    },
)


async def _process_batch(batch_size: Optional[int]) -> Dict[str, Any]:
    redis = RedisClient()
    await redis.connect_or_degrade()
    try:
        processor = create_default_processor(create_queue_store(redis))
        result = await processor.process_jobs(batch_size)
        return result.model_dump()
    finally:
        await redis.disconnect()


@celery_app.task(bind=True)
def process_queue_jobs(self, batch_size: Optional[int] = None) -> Dict[str, Any]:
    """Scheduled tick: process one batch of due jobs."""
    result = asyncio.run(_process_batch(batch_size))
    if result["processed"]:
        logger.info("Queue tick completed",
                    processed=result["processed"],
                    succeeded=result["succeeded"],
                    failed=result["failed"])
    return result
