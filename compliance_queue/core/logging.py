import logging
import sys
from typing import Optional

import structlog

from compliance_queue.core.config import settings


def setup_logging(level: Optional[str] = None, json_logs: Optional[bool] = None):
    """
    Configure structlog on top of stdlib logging.

    Production emits one JSON object per line; development gets the
    structlog console renderer unless ``json_logs`` forces JSON.
    """
    level = (level or settings.LOG_LEVEL).upper()
    if json_logs is None:
        json_logs = settings.ENVIRONMENT != "development"

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level),
    )

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


class ContextLogger:
    """
    Logger that carries keyword context (job id, job type, ...) as fields.
    """

    def __init__(self, name: str, logger=None):
        self.name = name
        self.logger = logger if logger is not None else structlog.get_logger(name)

    def with_context(self, **kwargs) -> "ContextLogger":
        """Child logger with extra fields bound to every event."""
        return ContextLogger(self.name, self.logger.bind(**kwargs))

    def info(self, message: str, **kwargs):
        self.logger.info(message, **kwargs)

    def error(self, message: str, **kwargs):
        self.logger.error(message, **kwargs)

    def warning(self, message: str, **kwargs):
        self.logger.warning(message, **kwargs)

    def debug(self, message: str, **kwargs):
        self.logger.debug(message, **kwargs)


def get_logger(name: str) -> ContextLogger:
    return ContextLogger(name)
