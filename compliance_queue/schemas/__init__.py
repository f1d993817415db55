from .job import (
    Job, JobType, JobState, FailOutcome,
    EnqueueResult, EnqueueRequest, QueueStats, ProcessResult
)
from .payloads import (
    ComplianceExportPayload, ReportExportPayload, EnterpriseExportPayload,
    EmailSendPayload, WebhookDeliveryPayload, AutomationTriggerPayload,
    PAYLOAD_MODELS, parse_payload
)

__all__ = [
    # Jobs
    "Job", "JobType", "JobState", "FailOutcome",
    "EnqueueResult", "EnqueueRequest", "QueueStats", "ProcessResult",

    # Payloads
    "ComplianceExportPayload", "ReportExportPayload", "EnterpriseExportPayload",
    "EmailSendPayload", "WebhookDeliveryPayload", "AutomationTriggerPayload",
    "PAYLOAD_MODELS", "parse_payload",
]
