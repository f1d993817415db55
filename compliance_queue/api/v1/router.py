from fastapi import APIRouter

from .endpoints import health, queue

api_router = APIRouter()

api_router.include_router(queue.router, prefix="/queue", tags=["queue"])
api_router.include_router(health.router, prefix="/health", tags=["health"])
