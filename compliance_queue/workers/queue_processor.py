import time
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

from compliance_queue.core.logging import get_logger
from compliance_queue.schemas.job import FailOutcome, Job, JobType, ProcessResult
from compliance_queue.services.queue_store import QueueStore

logger = get_logger(__name__)

JobHandler = Callable[[Job], Awaitable[Any]]
JobHandlerMap = Mapping[Union[JobType, str], JobHandler]


class QueueError(Exception):
    """Base class for queue processing errors."""
    pass


class HandlerNotFoundError(QueueError):
    """Raised when a claimed job has no registered handler."""

    def __init__(self, job_type: JobType):
        self.job_type = job_type
        super().__init__(f"No handler registered for job type: {job_type.value}")


class QueueProcessor:
    """
    Dispatches claimed jobs to registered handlers and reports each outcome
    back to the store. Holds no persistent state of its own.

    Jobs in a batch run one at a time; run several processors (or several
    ticks) for concurrency, which is safe because claiming is atomic in the
    store.
    """

    def __init__(self, store: QueueStore):
        self.store = store
        self.handlers: Dict[JobType, JobHandler] = {}

    def register_handler(self, job_type: Union[JobType, str], handler: JobHandler) -> None:
        """Register a handler for a job type. The last registration wins."""
        self.handlers[JobType(job_type)] = handler

    def register_handlers(self, handlers: JobHandlerMap) -> None:
        for job_type, handler in handlers.items():
            if handler:
                self.register_handler(job_type, handler)

    async def process_jobs(self, batch_size: Optional[int] = None) -> ProcessResult:
        """
        Process one batch of due jobs.

        1. Recover stale jobs stuck in processing.
        2. Claim due pending jobs (up to batch_size).
        3. Run each job's handler; complete or fail it.
        4. Prune expired dead-letter entries.

        Never raises: failures are reported in ``ProcessResult.errors``.
        """
        result = ProcessResult()

        try:
            recovered = await self.store.recover_stale_jobs()
            if recovered > 0:
                logger.info(f"Recovered {recovered} stale jobs")

            jobs = await self.store.fetch_pending_jobs(batch_size)
            if not jobs:
                return result

            logger.info(f"Processing {len(jobs)} jobs")

            for job in jobs:
                result.processed += 1

                try:
                    job_result = await self._execute_job(job)
                except Exception as e:
                    error_message = str(e) or "Unknown handler error"
                    result.failed += 1
                    result.errors.append(f"Job {job.id} ({job.type.value}): {error_message}")

                    outcome = await self.store.fail_job(job.id, error_message)
                    if outcome is FailOutcome.DEAD:
                        result.moved_to_dead += 1
                    continue

                await self.store.complete_job(job.id, job_result)
                result.succeeded += 1

            try:
                await self.store.cleanup_expired_dead_jobs()
            except Exception as e:
                logger.debug(f"Dead-letter cleanup skipped: {e}")

            logger.info(
                "Batch complete",
                succeeded=result.succeeded,
                failed=result.failed,
                moved_to_dead=result.moved_to_dead,
            )
        except Exception as e:
            result.errors.append(str(e) or "Unknown processor error")
            logger.error(f"Fatal processing error: {e}", exc_info=True)

        return result

    async def _execute_job(self, job: Job) -> Any:
        handler = self.handlers.get(job.type)
        if handler is None:
            raise HandlerNotFoundError(job.type)

        log = logger.with_context(job_id=job.id, job_type=job.type.value)
        log.info("Executing job", attempts=job.attempts, max_attempts=job.max_attempts)

        start = time.monotonic()
        try:
            job_result = await handler(job)
        except Exception as e:
            duration_ms = int((time.monotonic() - start) * 1000)
            log.error(f"Job failed: {e}", duration_ms=duration_ms)
            raise

        log.info("Job handler finished", duration_ms=int((time.monotonic() - start) * 1000))
        return job_result


def create_queue_processor(
    store: QueueStore,
    handlers: Optional[JobHandlerMap] = None,
) -> QueueProcessor:
    processor = QueueProcessor(store)
    if handlers:
        processor.register_handlers(handlers)
    return processor
