from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class JobType(str, Enum):
    COMPLIANCE_EXPORT = "compliance-export"
    REPORT_EXPORT = "report-export"
    ENTERPRISE_EXPORT = "enterprise-export"
    EMAIL_SEND = "email-send"
    WEBHOOK_DELIVERY = "webhook-delivery"
    AUTOMATION_TRIGGER = "automation-trigger"


class JobState(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    DEAD = "dead"


class FailOutcome(str, Enum):
    RETRYING = "retrying"
    DEAD = "dead"


class Job(BaseModel):
    """
    Full snapshot of one job, stored as a single JSON document per key.

    The payload is opaque here; handlers narrow it with ``parse_payload``.
    """
    id: str
    type: JobType
    state: JobState = JobState.PENDING
    payload: Any = None
    created_at: datetime
    scheduled_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    attempts: int = 0
    max_attempts: int
    last_error: Optional[str] = None
    result: Any = None
    organization_id: Optional[str] = None
    ttl_seconds: int


class EnqueueResult(BaseModel):
    success: bool
    job_id: str
    scheduled_at: datetime


class QueueStats(BaseModel):
    pending: int = 0
    processing: int = 0
    dead: int = 0
    total_processed: int = 0
    total_failed: int = 0
    total_retried: int = 0


class ProcessResult(BaseModel):
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    moved_to_dead: int = 0
    errors: List[str] = Field(default_factory=list)


class EnqueueRequest(BaseModel):
    type: JobType
    payload: Any = None
    scheduled_at: Optional[datetime] = None
    max_attempts: Optional[int] = Field(default=None, ge=1)
    ttl_seconds: Optional[int] = Field(default=None, ge=1)
    organization_id: Optional[str] = None
