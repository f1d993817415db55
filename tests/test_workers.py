"""
Tests for the worker loop and the Celery tick.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from compliance_queue.core.redis_client import RedisClient
from compliance_queue.schemas.job import ProcessResult
from compliance_queue.workers.queue_processor import QueueProcessor
from compliance_queue.workers.worker import QueueWorker


@pytest.fixture
def mock_processor():
    processor = MagicMock(spec=QueueProcessor)
    processor.process_jobs = AsyncMock(return_value=ProcessResult())
    return processor


class TestQueueWorker:
    """Test cases for QueueWorker."""

    @pytest.mark.asyncio
    async def test_run_once_uses_batch_size(self, mock_processor):
        worker = QueueWorker(mock_processor, batch_size=3, poll_interval=0.01)

        result = await worker.run_once()

        assert result == ProcessResult()
        mock_processor.process_jobs.assert_awaited_once_with(3)

    @pytest.mark.asyncio
    async def test_run_drains_busy_queue_then_stops(self, mock_processor):
        worker = QueueWorker(mock_processor, poll_interval=0.01)
        results = [ProcessResult(processed=2, succeeded=2), ProcessResult(processed=1, failed=1,
                                                                           errors=["Job x (email-send): boom"])]

        async def tick(batch_size):
            if results:
                return results.pop(0)
            worker.stop()
            return ProcessResult()

        mock_processor.process_jobs.side_effect = tick

        await worker.run()

        assert mock_processor.process_jobs.await_count == 3


class TestCeleryTick:
    """Test cases for the scheduled Celery task."""

    def test_tick_without_redis_returns_zeroed_result(self):
        from compliance_queue.workers import celery_app

        redis_mock = MagicMock(spec=RedisClient)
        redis_mock.client = None
        redis_mock.connect_or_degrade = AsyncMock(return_value=False)
        redis_mock.disconnect = AsyncMock()

        with patch.object(celery_app, "RedisClient", return_value=redis_mock):
            result = celery_app.process_queue_jobs(5)

        assert result == ProcessResult().model_dump()
        redis_mock.disconnect.assert_awaited_once()

    def test_beat_schedule_targets_tick(self):
        from compliance_queue.workers.celery_app import celery_app

        entry = celery_app.conf.beat_schedule["process-job-queue"]
        assert entry["task"] == "compliance_queue.workers.celery_app.process_queue_jobs"
