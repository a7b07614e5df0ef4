"""
Structured logging utilities for the Clinic-AI client
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .config import LoggingSettings

ROOT_LOGGER_NAME = "clinicai_client"


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_data"):
            log_obj.update(record.extra_data)

        return json.dumps(log_obj, default=str)


def configure_logging(settings: Optional[LoggingSettings] = None, stream=None) -> logging.Logger:
    """Attach a single handler to the package logger according to settings.

    Calling it again replaces the handler instead of stacking another one.
    """
    settings = settings or LoggingSettings()
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, settings.level))

    for handler in list(logger.handlers):
        if getattr(handler, "_clinicai_client", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    if settings.format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )
    handler._clinicai_client = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    return logger


def log_fields(**kwargs: Any) -> Dict[str, Any]:
    """Build the `extra` mapping understood by JSONFormatter."""
    return {"extra_data": kwargs}
