"""
Structured logging configuration using structlog.

JSON lines everywhere except local development, where the console renderer is
easier to read.
"""
import logging
import sys
from typing import Any, Dict

import structlog

from paylink.config import settings


def add_app_context(logger: Any, method_name: str, event_dict: Dict) -> Dict:
    """Add service name, version and environment to log entries."""
    event_dict.setdefault('app', settings.APP_NAME)
    event_dict.setdefault('version', settings.APP_VERSION)
    event_dict.setdefault('environment', settings.ENVIRONMENT)
    return event_dict


def configure_logging(json_logs: bool = True, level: int = logging.INFO):
    """Configure stdlib logging and structlog processors."""
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            add_app_context,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging(
    json_logs=settings.ENVIRONMENT != "development",
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
)


def get_logger(name: str = __name__):
    """Get a structured logger instance."""
    return structlog.get_logger(name)
