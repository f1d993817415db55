from .queue_store import QueueStore, create_queue_store

__all__ = [
    "QueueStore",
    "create_queue_store",
]
