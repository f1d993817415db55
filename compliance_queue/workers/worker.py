"""
Long-running queue worker.

Usage:
    python -m compliance_queue.workers.worker                 # poll forever
    python -m compliance_queue.workers.worker --once          # single batch
    python -m compliance_queue.workers.worker --batch-size 25 --interval 5
"""
import argparse
import asyncio
import json
from typing import Optional

from compliance_queue.core.config import settings
from compliance_queue.core.logging import get_logger, setup_logging
from compliance_queue.core.redis_client import RedisClient
from compliance_queue.schemas.job import ProcessResult
from compliance_queue.services.queue_store import create_queue_store

from .handlers import create_default_processor
from .queue_processor import QueueProcessor

logger = get_logger(__name__)


class QueueWorker:
    """Calls ``process_jobs`` in a loop, sleeping whenever a tick finds no work."""

    def __init__(self, processor: QueueProcessor, batch_size: Optional[int] = None,
                 poll_interval: float = settings.QUEUE_POLL_INTERVAL_SECONDS):
        self.processor = processor
        self.batch_size = batch_size
        self.poll_interval = poll_interval
        self._stopping = asyncio.Event()

    def stop(self):
        self._stopping.set()

    async def run_once(self) -> ProcessResult:
        return await self.processor.process_jobs(self.batch_size)

    async def run(self):
        """Main worker loop."""
        logger.info("Starting queue worker",
                    batch_size=self.batch_size,
                    poll_interval=self.poll_interval)

        while not self._stopping.is_set():
            result = await self.run_once()
            for error in result.errors:
                logger.warning("Job error", error=error)

            if result.processed:
                continue  # More work may be due right away

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

        logger.info("Queue worker stopped")


async def _main(args) -> int:
    redis = RedisClient()
    await redis.connect_or_degrade()
    try:
        store = create_queue_store(redis)
        worker = QueueWorker(create_default_processor(store),
                             batch_size=args.batch_size,
                             poll_interval=args.interval)
        if args.once:
            result = await worker.run_once()
            print(json.dumps(result.model_dump(), indent=2))
            return 0 if not result.errors else 1
        await worker.run()
        return 0
    finally:
        await redis.disconnect()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run the compliance job queue worker")
    parser.add_argument("--batch-size", type=int, default=settings.QUEUE_BATCH_SIZE,
                        help="Maximum jobs claimed per tick")
    parser.add_argument("--interval", type=float, default=settings.QUEUE_POLL_INTERVAL_SECONDS,
                        help="Seconds to sleep when a tick finds no work")
    parser.add_argument("--once", action="store_true", help="Process one batch and exit")
    args = parser.parse_args(argv)

    setup_logging()
    try:
        return asyncio.run(_main(args))
    except KeyboardInterrupt:
        logger.info("Queue worker interrupted")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
