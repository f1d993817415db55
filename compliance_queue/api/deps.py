from fastapi import Request

from compliance_queue.core.redis_client import RedisClient
from compliance_queue.services.queue_store import QueueStore
from compliance_queue.workers.queue_processor import QueueProcessor


def get_redis_client(request: Request) -> RedisClient:
    return request.app.state.redis


def get_queue_store(request: Request) -> QueueStore:
    return request.app.state.queue_store


def get_queue_processor(request: Request) -> QueueProcessor:
    return request.app.state.queue_processor
