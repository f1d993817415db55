from dataclasses import dataclass, replace

from compliance_queue.core.config import settings


@dataclass(frozen=True)
class QueueConfig:
    batch_size: int
    max_attempts: int
    base_backoff_ms: int
    job_ttl_seconds: int
    processing_timeout_seconds: int
    key_prefix: str = "queue"

    def __post_init__(self):
        for name in ("batch_size", "max_attempts", "job_ttl_seconds", "processing_timeout_seconds"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.base_backoff_ms < 0:
            raise ValueError("base_backoff_ms must not be negative")
        if not self.key_prefix:
            raise ValueError("key_prefix must not be empty")

    @classmethod
    def from_settings(cls, **overrides) -> "QueueConfig":
        """Build a config from the environment, then apply per-store overrides."""
        base = cls(
            batch_size=settings.QUEUE_BATCH_SIZE,
            max_attempts=settings.QUEUE_MAX_ATTEMPTS,
            base_backoff_ms=settings.QUEUE_BASE_BACKOFF_MS,
            job_ttl_seconds=settings.QUEUE_JOB_TTL_SECONDS,
            processing_timeout_seconds=settings.QUEUE_PROCESSING_TIMEOUT_SECONDS,
            key_prefix=settings.QUEUE_KEY_PREFIX,
        )
        return replace(base, **overrides) if overrides else base

    def backoff_ms(self, attempts: int) -> int:
        """Delay before a job that has been claimed ``attempts`` times may run again."""
        return self.base_backoff_ms * (2 ** max(0, attempts))


@dataclass(frozen=True)
class QueueKeys:
    """Redis key layout for one queue namespace."""

    prefix: str

    @property
    def pending(self) -> str:
        return f"{self.prefix}:pending"

    @property
    def processing(self) -> str:
        return f"{self.prefix}:processing"

    @property
    def dead(self) -> str:
        return f"{self.prefix}:dead"

    def job(self, job_id: str) -> str:
        return f"{self.prefix}:job:{job_id}"

    def metric(self, name: str) -> str:
        return f"{self.prefix}:metrics:{name}"
