from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from compliance_queue.api.deps import get_queue_processor, get_queue_store
from compliance_queue.schemas.job import (
    EnqueueRequest,
    EnqueueResult,
    Job,
    ProcessResult,
    QueueStats,
)
from compliance_queue.services.queue_store import QueueStore
from compliance_queue.workers.queue_processor import QueueProcessor

router = APIRouter()


@router.post("/jobs", response_model=EnqueueResult, status_code=status.HTTP_202_ACCEPTED)
async def enqueue_job(
    request: EnqueueRequest,
    store: QueueStore = Depends(get_queue_store)
):
    """
    Schedule deferred work.

    - **type**: job type tag
    - **payload**: handler-specific JSON
    - **scheduled_at**: earliest run time (default: now)

    Returns 503 when the job could not be durably queued.
    """
    result = await store.enqueue(
        request.type,
        request.payload,
        scheduled_at=request.scheduled_at,
        max_attempts=request.max_attempts,
        ttl_seconds=request.ttl_seconds,
        organization_id=request.organization_id,
    )
    if not result.success:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Job was not queued")
    return result


@router.get("/jobs/{job_id}", response_model=Job)
async def get_job(job_id: str, store: QueueStore = Depends(get_queue_store)):
    job = await store.get_job(job_id)
    if not job:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return job


@router.get("/stats", response_model=QueueStats)
async def get_stats(store: QueueStore = Depends(get_queue_store)):
    return await store.get_stats()


@router.get("/dead", response_model=List[Job])
async def list_dead_jobs(
    limit: int = Query(20, ge=1, le=500),
    store: QueueStore = Depends(get_queue_store)
):
    """Dead-lettered jobs, most recent first."""
    return await store.list_dead_jobs(limit)


@router.post("/dead/{job_id}/retry")
async def retry_dead_job(job_id: str, store: QueueStore = Depends(get_queue_store)):
    """Re-queue a dead job with its attempt counter reset."""
    if not await store.retry_dead_job(job_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Job is not in the dead letter queue")
    return {"success": True, "job_id": job_id}


@router.post("/process", response_model=ProcessResult)
async def process_jobs(
    batch_size: Optional[int] = Query(None, ge=1, le=500),
    processor: QueueProcessor = Depends(get_queue_processor)
):
    """Cron entry point: process one batch of due jobs."""
    return await processor.process_jobs(batch_size)


@router.post("/maintenance/recover-stale")
async def recover_stale_jobs(store: QueueStore = Depends(get_queue_store)):
    return {"count": await store.recover_stale_jobs()}


@router.post("/maintenance/cleanup-dead")
async def cleanup_dead_jobs(store: QueueStore = Depends(get_queue_store)):
    return {"count": await store.cleanup_expired_dead_jobs()}
