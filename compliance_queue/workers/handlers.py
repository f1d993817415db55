"""
Default job handlers.

These validate the payload for their job type and log; the real export,
email, webhook and automation integrations register their own handlers on
the processor before it runs.
"""
from typing import Any, Dict

from compliance_queue.core.logging import get_logger
from compliance_queue.schemas.job import Job, JobType
from compliance_queue.schemas.payloads import parse_payload
from compliance_queue.services.queue_store import QueueStore

from .queue_processor import JobHandlerMap, QueueProcessor, create_queue_processor

logger = get_logger(__name__)


async def handle_compliance_export(job: Job) -> Dict[str, Any]:
    payload = parse_payload(job)
    logger.info("Compliance export requested", job_id=job.id,
                organization_id=payload.organization_id,
                framework_id=payload.framework_id, format=payload.format)
    return {"status": "exported", "format": payload.format}


async def handle_report_export(job: Job) -> Dict[str, Any]:
    payload = parse_payload(job)
    logger.info("Report export requested", job_id=job.id,
                organization_id=payload.organization_id,
                report_type=payload.report_type, format=payload.format)
    return {"status": "exported", "format": payload.format}


async def handle_enterprise_export(job: Job) -> Dict[str, Any]:
    payload = parse_payload(job)
    logger.info("Enterprise export requested", job_id=job.id,
                organization_id=payload.organization_id,
                scope=payload.export_scope)
    return {"status": "exported", "format": payload.format}


async def handle_email_send(job: Job) -> Dict[str, Any]:
    payload = parse_payload(job)
    logger.info("Email send requested", job_id=job.id, template_id=payload.template_id)
    return {"status": "sent"}


async def handle_webhook_delivery(job: Job) -> Dict[str, Any]:
    payload = parse_payload(job)
    logger.info("Webhook delivery requested", job_id=job.id, url=payload.url, event=payload.event)
    return {"status": "delivered"}


async def handle_automation_trigger(job: Job) -> Dict[str, Any]:
    payload = parse_payload(job)
    logger.info("Automation trigger requested", job_id=job.id,
                automation_id=payload.automation_id,
                trigger_event=payload.trigger_event)
    return {"status": "triggered"}


DEFAULT_HANDLERS: JobHandlerMap = {
    JobType.COMPLIANCE_EXPORT: handle_compliance_export,
    JobType.REPORT_EXPORT: handle_report_export,
    JobType.ENTERPRISE_EXPORT: handle_enterprise_export,
    JobType.EMAIL_SEND: handle_email_send,
    JobType.WEBHOOK_DELIVERY: handle_webhook_delivery,
    JobType.AUTOMATION_TRIGGER: handle_automation_trigger,
}


def create_default_processor(store: QueueStore) -> QueueProcessor:
    """Processor with the stub handler for every job type."""
    return create_queue_processor(store, DEFAULT_HANDLERS)
