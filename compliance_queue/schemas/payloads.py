from typing import Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, Field

from .job import Job, JobType

ExportFormat = Literal["pdf", "csv", "json"]


class ComplianceExportPayload(BaseModel):
    organization_id: str
    framework_id: str
    format: ExportFormat = "pdf"
    requested_by: str


class ReportExportPayload(BaseModel):
    organization_id: str
    report_type: str
    format: ExportFormat = "pdf"
    requested_by: str
    filters: Dict[str, Any] = Field(default_factory=dict)


class EnterpriseExportPayload(BaseModel):
    organization_id: str
    export_scope: List[str] = Field(default_factory=list)
    format: ExportFormat = "json"
    requested_by: str


class EmailSendPayload(BaseModel):
    to: str
    subject: str
    template_id: str
    template_data: Dict[str, Any] = Field(default_factory=dict)


class WebhookDeliveryPayload(BaseModel):
    url: str
    event: str
    body: Dict[str, Any] = Field(default_factory=dict)
    headers: Dict[str, str] = Field(default_factory=dict)
    organization_id: Optional[str] = None


class AutomationTriggerPayload(BaseModel):
    organization_id: str
    automation_id: str
    trigger_event: str
    context: Dict[str, Any] = Field(default_factory=dict)


PAYLOAD_MODELS: Dict[JobType, Type[BaseModel]] = {
    JobType.COMPLIANCE_EXPORT: ComplianceExportPayload,
    JobType.REPORT_EXPORT: ReportExportPayload,
    JobType.ENTERPRISE_EXPORT: EnterpriseExportPayload,
    JobType.EMAIL_SEND: EmailSendPayload,
    JobType.WEBHOOK_DELIVERY: WebhookDeliveryPayload,
    JobType.AUTOMATION_TRIGGER: AutomationTriggerPayload,
}


def parse_payload(job: Job) -> BaseModel:
    """Narrow a job's opaque payload to the model for its type.

    Raises pydantic.ValidationError when the payload does not match.
    """
    return PAYLOAD_MODELS[job.type].model_validate(job.payload)
