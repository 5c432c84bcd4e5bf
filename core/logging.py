"""
Logging configuration
"""

import logging
import sys
from core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NOISY_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "botocore", "boto3", "httpx", "apscheduler")


class ErrorContextFormatter(logging.Formatter):
    """
    Appends the structured context of an ImportException.

    Call sites pass it as ``extra={"error_context": e.to_dict()}``; without
    this formatter the job id, phase and cause would never reach the log.
    """

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        error_context = getattr(record, "error_context", None)
        if not error_context:
            return message

        context = error_context.get("context") or {}
        details = ", ".join(
            f"{key}={value}" for key, value in context.items() if key != "error_timestamp"
        )
        message += f" | {error_context.get('error_type')}"
        if details:
            message += f" [{details}]"
        if error_context.get("original_error"):
            message += f" | caused by: {error_context['original_error']}"
        return message


def setup_logging():
    """Configure application logging"""

    # Get log level from settings
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ErrorContextFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    # Configure root logger
    logging.basicConfig(level=log_level, handlers=[handler])

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured at {settings.LOG_LEVEL} level")
