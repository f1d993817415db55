"""
Redis-backed persistent job queue.

Data structures (prefix defaults to ``queue``):
    {prefix}:pending      ZSET  score = scheduled_at (epoch ms)
    {prefix}:processing   ZSET  score = started_at   (epoch ms)
    {prefix}:dead         ZSET  score = failed_at    (epoch ms)
    {prefix}:job:{id}     STRING full job record as JSON
    {prefix}:metrics:*    counters (completed, retried, dead)

Every public method swallows backing-store errors, logs them and returns a
safe default, so an unavailable Redis degrades the queue to a no-op instead
of failing the caller.
"""
import time
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Union
from uuid import uuid4

from pydantic import BaseModel

from compliance_queue.core.logging import get_logger
from compliance_queue.core.queue_config import QueueConfig, QueueKeys
from compliance_queue.core.redis_client import RedisClient
from compliance_queue.schemas.job import (
    EnqueueResult,
    FailOutcome,
    Job,
    JobState,
    JobType,
    QueueStats,
)

logger = get_logger(__name__)

STALE_JOB_ERROR = "Processing timeout - job was stale"

# KEYS: pending, processing. ARGV: job id, now (ms).
CLAIM_SCRIPT = """
if redis.call('ZREM', KEYS[1], ARGV[1]) == 0 then
    return 0
end
redis.call('ZADD', KEYS[2], ARGV[2], ARGV[1])
return 1
"""

# KEYS: processing. ARGV: job id, stale threshold (ms), now (ms).
# Re-scores the entry so no other sweep can take the same lease.
RECLAIM_STALE_SCRIPT = """
local score = redis.call('ZSCORE', KEYS[1], ARGV[1])
if not score or tonumber(score) > tonumber(ARGV[2]) then
    return 0
end
redis.call('ZADD', KEYS[1], ARGV[3], ARGV[1])
return 1
"""

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def generate_job_id() -> str:
    return f"job_{uuid4().hex}"


def to_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - _EPOCH) // timedelta(milliseconds=1)


def from_ms(ms: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=ms)


class QueueStore:
    """Sole owner of durable job state."""

    def __init__(
        self,
        redis: RedisClient,
        config: Optional[QueueConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.redis = redis
        self.config = config or QueueConfig.from_settings()
        self.keys = QueueKeys(self.config.key_prefix)
        self.clock = clock

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def _client(self, operation: str):
        client = self.redis.client
        if client is None:
            logger.warning("Redis not available - queue operation skipped", operation=operation)
        return client

    async def _load_job(self, client, job_id: str) -> Optional[Job]:
        raw = await client.get(self.keys.job(job_id))
        if not raw:
            return None
        return Job.model_validate_json(raw)

    # ------------------------------------------------------------------
    # Enqueue
    # ------------------------------------------------------------------

    async def enqueue(
        self,
        job_type: Union[JobType, str],
        payload: Any = None,
        *,
        scheduled_at: Optional[datetime] = None,
        max_attempts: Optional[int] = None,
        ttl_seconds: Optional[int] = None,
        organization_id: Optional[str] = None,
    ) -> EnqueueResult:
        """
        Persist a new pending job.

        An unknown ``job_type``, or a ``max_attempts``/``ttl_seconds`` below 1,
        raises ValueError. Everything else fails open: ``success=False`` means
        the job was not durably queued.
        """
        job_type = JobType(job_type)
        if max_attempts is None:
            max_attempts = self.config.max_attempts
        if ttl_seconds is None:
            ttl_seconds = self.config.job_ttl_seconds
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be at least 1")

        job_id = generate_job_id()
        now = from_ms(self._now_ms())
        if scheduled_at is None:
            scheduled_at = now
        elif scheduled_at.tzinfo is None:
            scheduled_at = scheduled_at.replace(tzinfo=timezone.utc)

        client = self._client("enqueue")
        if client is None:
            return EnqueueResult(success=False, job_id=job_id, scheduled_at=scheduled_at)

        if isinstance(payload, BaseModel):
            payload = payload.model_dump(mode="json")

        job = Job(
            id=job_id,
            type=job_type,
            state=JobState.PENDING,
            payload=payload,
            created_at=now,
            scheduled_at=scheduled_at,
            attempts=0,
            max_attempts=max_attempts,
            organization_id=organization_id,
            ttl_seconds=ttl_seconds,
        )

        try:
            async with client.pipeline(transaction=True) as pipe:
                pipe.set(self.keys.job(job_id), job.model_dump_json())
                pipe.zadd(self.keys.pending, {job_id: to_ms(scheduled_at)})
                await pipe.execute()
        except Exception as e:
            logger.error(f"Failed to enqueue job: {e}", job_id=job_id, job_type=job_type.value)
            return EnqueueResult(success=False, job_id=job_id, scheduled_at=scheduled_at)

        logger.info(
            "Job enqueued",
            job_id=job_id,
            job_type=job_type.value,
            scheduled_at=scheduled_at.isoformat(),
            organization_id=organization_id,
        )
        return EnqueueResult(success=True, job_id=job_id, scheduled_at=scheduled_at)

    # ------------------------------------------------------------------
    # Claim
    # ------------------------------------------------------------------

    async def fetch_pending_jobs(self, batch_size: Optional[int] = None) -> List[Job]:
        """
        Claim up to ``batch_size`` due jobs, earliest first, moving each into
        the processing set.

        A job is claimed by whoever removes it from the pending set. The
        removal and the processing entry happen in one script, so a claimed
        job is always visible to stale recovery; a zero result means another
        worker got there first.
        """
        limit = self.config.batch_size if batch_size is None else batch_size
        if limit <= 0:
            return []

        client = self._client("fetch_pending_jobs")
        if client is None:
            return []

        now_ms = self._now_ms()
        jobs: List[Job] = []
        job_id = None
        try:
            job_ids = await client.zrangebyscore(self.keys.pending, "-inf", now_ms, start=0, num=limit)

            for job_id in job_ids:
                claimed = await client.eval(
                    CLAIM_SCRIPT, 2, self.keys.pending, self.keys.processing, job_id, now_ms
                )
                if not claimed:
                    continue

                job = await self._load_job(client, job_id)
                if job is None:
                    await client.zrem(self.keys.processing, job_id)
                    logger.warning("Claimed job has no record - skipping", job_id=job_id)
                    continue

                job.state = JobState.PROCESSING
                job.started_at = from_ms(now_ms)
                job.attempts += 1
                await client.set(self.keys.job(job_id), job.model_dump_json())

                jobs.append(job)
        except Exception as e:
            # A job claimed but not yet recorded stays in processing and is
            # picked up again by stale recovery.
            logger.error(f"Failed to fetch pending jobs: {e}", claimed=len(jobs), job_id=job_id)

        return jobs

    # ------------------------------------------------------------------
    # Complete / Fail
    # ------------------------------------------------------------------

    async def complete_job(self, job_id: str, result: Any = None) -> None:
        """Mark a job completed; the record then expires after its TTL."""
        client = self._client("complete_job")
        if client is None:
            return

        try:
            job = await self._load_job(client, job_id)
            if job is None:
                logger.debug("Completed job has no record", job_id=job_id)
                return

            job.state = JobState.COMPLETED
            job.completed_at = from_ms(self._now_ms())
            job.result = result

            async with client.pipeline(transaction=True) as pipe:
                pipe.zrem(self.keys.processing, job_id)
                pipe.set(self.keys.job(job_id), job.model_dump_json(), ex=job.ttl_seconds)
                pipe.incr(self.keys.metric("completed"))
                await pipe.execute()

            logger.info("Job completed", job_id=job_id, job_type=job.type.value)
        except Exception as e:
            logger.error(f"Failed to complete job: {e}", job_id=job_id)

    async def fail_job(self, job_id: str, error_message: str) -> FailOutcome:
        """
        Record a failed attempt.

        Retries with exponential backoff while ``attempts < max_attempts``,
        otherwise moves the job to the dead set.
        """
        client = self._client("fail_job")
        if client is None:
            return FailOutcome.DEAD

        try:
            job = await self._load_job(client, job_id)
            if job is None:
                await client.zrem(self.keys.processing, job_id)
                logger.warning("Failed job has no record", job_id=job_id)
                return FailOutcome.DEAD

            now_ms = self._now_ms()
            job.last_error = error_message
            job.failed_at = from_ms(now_ms)

            if job.attempts < job.max_attempts:
                backoff_ms = self.config.backoff_ms(job.attempts)
                next_run_ms = now_ms + backoff_ms
                job.state = JobState.PENDING
                job.scheduled_at = from_ms(next_run_ms)

                async with client.pipeline(transaction=True) as pipe:
                    pipe.zrem(self.keys.processing, job_id)
                    pipe.set(self.keys.job(job_id), job.model_dump_json())
                    pipe.zadd(self.keys.pending, {job_id: next_run_ms})
                    pipe.incr(self.keys.metric("retried"))
                    await pipe.execute()

                logger.warning(
                    "Job failed, retrying",
                    job_id=job_id,
                    attempts=job.attempts,
                    max_attempts=job.max_attempts,
                    backoff_ms=backoff_ms,
                    error=error_message,
                )
                return FailOutcome.RETRYING

            job.state = JobState.DEAD
            async with client.pipeline(transaction=True) as pipe:
                pipe.zrem(self.keys.processing, job_id)
                pipe.set(self.keys.job(job_id), job.model_dump_json(), ex=job.ttl_seconds)
                pipe.zadd(self.keys.dead, {job_id: now_ms})
                pipe.incr(self.keys.metric("dead"))
                await pipe.execute()

            logger.error(
                "Job moved to dead letter queue",
                job_id=job_id,
                attempts=job.attempts,
                error=error_message,
            )
            return FailOutcome.DEAD
        except Exception as e:
            logger.error(f"Failed to record job failure: {e}", job_id=job_id)
            return FailOutcome.DEAD

    # ------------------------------------------------------------------
    # Stale-job recovery
    # ------------------------------------------------------------------

    async def recover_stale_jobs(self) -> int:
        """
        Fail every job that has sat in processing longer than the
        processing timeout. Returns how many were re-queued for retry.

        Each stale entry is taken over before it is failed. An entry that
        another sweep already recovered, or that a worker has claimed again
        since the range read, no longer scores below the threshold and is
        left alone.
        """
        client = self._client("recover_stale_jobs")
        if client is None:
            return 0

        now_ms = self._now_ms()
        threshold_ms = now_ms - self.config.processing_timeout_seconds * 1000
        try:
            stale_ids = await client.zrangebyscore(self.keys.processing, "-inf", threshold_ms)
            if not stale_ids:
                return 0

            recovered = 0
            for job_id in stale_ids:
                owned = await client.eval(
                    RECLAIM_STALE_SCRIPT, 1, self.keys.processing, job_id, threshold_ms, now_ms
                )
                if not owned:
                    logger.debug("Stale job already taken over", job_id=job_id)
                    continue

                outcome = await self.fail_job(job_id, STALE_JOB_ERROR)
                if outcome is FailOutcome.RETRYING:
                    recovered += 1

            logger.info("Recovered stale jobs", stale=len(stale_ids), recovered=recovered)
            return recovered
        except Exception as e:
            logger.error(f"Failed to recover stale jobs: {e}")
            return 0

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    async def get_job(self, job_id: str) -> Optional[Job]:
        client = self._client("get_job")
        if client is None:
            return None

        try:
            return await self._load_job(client, job_id)
        except Exception as e:
            logger.error(f"Failed to get job: {e}", job_id=job_id)
            return None

    async def get_stats(self) -> QueueStats:
        client = self._client("get_stats")
        if client is None:
            return QueueStats()

        try:
            async with client.pipeline(transaction=False) as pipe:
                pipe.zcard(self.keys.pending)
                pipe.zcard(self.keys.processing)
                pipe.zcard(self.keys.dead)
                pipe.get(self.keys.metric("completed"))
                pipe.get(self.keys.metric("dead"))
                pipe.get(self.keys.metric("retried"))
                pending, processing, dead, completed, dead_total, retried = await pipe.execute()

            return QueueStats(
                pending=pending or 0,
                processing=processing or 0,
                dead=dead or 0,
                total_processed=int(completed or 0),
                total_failed=int(dead_total or 0),
                total_retried=int(retried or 0),
            )
        except Exception as e:
            logger.error(f"Failed to get queue stats: {e}")
            return QueueStats()

    async def list_dead_jobs(self, limit: int = 20) -> List[Job]:
        """Jobs in the dead letter queue, most recently dead first."""
        if limit <= 0:
            return []

        client = self._client("list_dead_jobs")
        if client is None:
            return []

        try:
            job_ids = await client.zrevrange(self.keys.dead, 0, limit - 1)
            if not job_ids:
                return []

            raws = await client.mget([self.keys.job(job_id) for job_id in job_ids])
            return [Job.model_validate_json(raw) for raw in raws if raw]
        except Exception as e:
            logger.error(f"Failed to list dead jobs: {e}")
            return []

    # ------------------------------------------------------------------
    # Dead letter intervention
    # ------------------------------------------------------------------

    async def retry_dead_job(self, job_id: str) -> bool:
        """
        Manually move a dead job back to pending with a fresh attempt budget.
        Only jobs currently in the ``dead`` state are eligible.
        """
        client = self._client("retry_dead_job")
        if client is None:
            return False

        try:
            job = await self._load_job(client, job_id)
            if job is None or job.state != JobState.DEAD:
                return False

            now_ms = self._now_ms()
            job.state = JobState.PENDING
            job.attempts = 0
            job.last_error = None
            job.failed_at = None
            job.scheduled_at = from_ms(now_ms)

            # Plain SET drops the dead-letter TTL.
            async with client.pipeline(transaction=True) as pipe:
                pipe.zrem(self.keys.dead, job_id)
                pipe.set(self.keys.job(job_id), job.model_dump_json())
                pipe.zadd(self.keys.pending, {job_id: now_ms})
                await pipe.execute()

            logger.info("Dead job re-queued", job_id=job_id, job_type=job.type.value)
            return True
        except Exception as e:
            logger.error(f"Failed to retry dead job: {e}", job_id=job_id)
            return False

    async def cleanup_expired_dead_jobs(self) -> int:
        """
        Drop dead-set members whose job record has already expired.

        Sorted-set members carry no TTL of their own, so they outlive the
        record key unless pruned here.
        """
        client = self._client("cleanup_expired_dead_jobs")
        if client is None:
            return 0

        try:
            job_ids = await client.zrange(self.keys.dead, 0, -1)
            if not job_ids:
                return 0

            cleaned = 0
            for job_id in job_ids:
                if not await client.exists(self.keys.job(job_id)):
                    await client.zrem(self.keys.dead, job_id)
                    cleaned += 1

            if cleaned:
                logger.info("Cleaned up expired dead-letter entries", count=cleaned)
            return cleaned
        except Exception as e:
            logger.error(f"Failed to clean up expired dead jobs: {e}")
            return 0


def create_queue_store(
    redis: Optional[RedisClient] = None,
    config: Optional[QueueConfig] = None,
    clock: Callable[[], float] = time.time,
    **overrides,
) -> QueueStore:
    """
    Build a store at process startup and pass it to whatever drives the
    worker. ``overrides`` are applied on top of ``config`` (or settings).
    """
    if config is None:
        config = QueueConfig.from_settings(**overrides)
    elif overrides:
        config = replace(config, **overrides)
    return QueueStore(redis or RedisClient(), config=config, clock=clock)
