"""
Tests for the queue admin and cron HTTP endpoints.
"""
import pytest
from fastapi.testclient import TestClient

from compliance_queue.api.deps import get_queue_processor, get_queue_store, get_redis_client
from compliance_queue.main import app
from compliance_queue.schemas.job import JobType
from compliance_queue.workers.handlers import create_default_processor


@pytest.fixture
def client(store, mock_redis):
    mock_redis.ping.return_value = True
    app.dependency_overrides[get_queue_store] = lambda: store
    app.dependency_overrides[get_queue_processor] = lambda: create_default_processor(store)
    app.dependency_overrides[get_redis_client] = lambda: mock_redis
    # No context manager: the lifespan (real Redis connect) is not run.
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestQueueEndpoints:
    """Test cases for /v1/queue."""

    def test_enqueue_and_get_job(self, client, email_payload):
        response = client.post("/v1/queue/jobs", json={
            "type": "email-send",
            "payload": email_payload,
            "organization_id": "org-1",
        })

        assert response.status_code == 202
        job_id = response.json()["job_id"]

        response = client.get(f"/v1/queue/jobs/{job_id}")
        assert response.status_code == 200
        body = response.json()
        assert body["state"] == "pending"
        assert body["type"] == "email-send"
        assert body["organization_id"] == "org-1"

    def test_enqueue_unknown_type_is_rejected(self, client):
        response = client.post("/v1/queue/jobs", json={"type": "fax-send", "payload": {}})

        assert response.status_code == 422

    def test_enqueue_returns_503_when_not_queued(self, client, fake_redis, email_payload):
        fake_redis.fail_with = ConnectionError("down")

        response = client.post("/v1/queue/jobs", json={"type": "email-send", "payload": email_payload})

        assert response.status_code == 503
        assert response.json()["success"] is False

    def test_missing_job_is_404(self, client):
        response = client.get("/v1/queue/jobs/job_missing")

        assert response.status_code == 404
        assert response.json()["error"] == "Job not found"

    def test_process_then_stats(self, client, email_payload):
        client.post("/v1/queue/jobs", json={"type": "email-send", "payload": email_payload})

        response = client.post("/v1/queue/process", params={"batch_size": 5})

        assert response.status_code == 200
        assert response.json()["succeeded"] == 1

        stats = client.get("/v1/queue/stats").json()
        assert stats["total_processed"] == 1
        assert stats["pending"] == 0

    def test_dead_letter_listing_and_retry(self, client):
        job_id = client.post("/v1/queue/jobs", json={
            "type": JobType.EMAIL_SEND.value,
            "payload": {"bad": "payload"},
            "max_attempts": 1,
        }).json()["job_id"]
        result = client.post("/v1/queue/process").json()
        assert result["moved_to_dead"] == 1

        dead = client.get("/v1/queue/dead", params={"limit": 10}).json()
        assert [job["id"] for job in dead] == [job_id]

        response = client.post(f"/v1/queue/dead/{job_id}/retry")
        assert response.status_code == 200
        assert response.json() == {"success": True, "job_id": job_id}

        response = client.post(f"/v1/queue/dead/{job_id}/retry")
        assert response.status_code == 409

    def test_maintenance_endpoints(self, client):
        assert client.post("/v1/queue/maintenance/recover-stale").json() == {"count": 0}
        assert client.post("/v1/queue/maintenance/cleanup-dead").json() == {"count": 0}


class TestHealthEndpoints:
    """Test cases for /v1/health."""

    def test_basic_health(self, client):
        response = client.get("/v1/health/")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_detailed_health_reports_queue_stats(self, client):
        response = client.get("/v1/health/detailed")

        assert response.status_code == 200
        assert response.json()["checks"]["queue"]["stats"]["pending"] == 0

    def test_detailed_health_unhealthy_without_redis(self, client, mock_redis):
        mock_redis.ping.return_value = False

        response = client.get("/v1/health/detailed")

        assert response.status_code == 503
