"""Centralized logging configuration for the import service."""

import logging
import sys
from typing import Any, Dict, MutableMapping, Optional, Tuple

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Get a configured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)
        level: Optional log level override (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(name)

    log_level = (level or "INFO").upper()
    logger.setLevel(getattr(logging, log_level))

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(getattr(logging, log_level))
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
        # Handler is attached per logger, so don't double print through root
        logger.propagate = False

    return logger


class JobLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that stamps import job context onto every record.

    The job and organization ids are merged into ``extra`` so call sites can
    keep passing their own extra fields.
    """

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        extra: Dict[str, Any] = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs


def get_job_logger(
    logger: logging.Logger, job_id: Any, org_id: Optional[str] = None
) -> JobLoggerAdapter:
    """Wrap a module logger with import job context."""
    context = {"job_id": str(job_id)}
    if org_id:
        context["org_id"] = org_id
    return JobLoggerAdapter(logger, context)
