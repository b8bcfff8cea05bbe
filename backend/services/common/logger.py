"""
Structured logging for the Masjid Finder backend
"""
import logging
import json
import sys
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from .config import get_settings

EXTRA_FIELDS = ["user_id", "request_id", "masjid_id", "role", "action", "status"]


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "service": getattr(record, "service", "unknown"),
            "message": record.getMessage(),
        }

        # Add extra fields
        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                value = getattr(record, key)
                # Handle UUID serialization
                if isinstance(value, UUID):
                    value = str(value)
                log_data[key] = value

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ServiceNameFilter(logging.Filter):
    """Stamps every record passing through a logger with its service name"""

    def __init__(self, service: str):
        super().__init__()
        self.service = service

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self.service
        return True


def get_logger(service: str) -> logging.Logger:
    """Get a logger for a service"""
    logger = logging.getLogger(service)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.addFilter(ServiceNameFilter(service))
        logger.setLevel(get_settings().log_level.upper())
        logger.propagate = False

    return logger
