"""Structured Logging - JSON formatter and setup for client observability.

Invariants:
    - All logs include timestamp, level, logger name, and message
    - Extra fields (principal_id, generation, operation, error_code) surfaced when present
    - JSON format by default, human-readable with fmt="text"

Design Decisions:
    - setup_logging called once by create_marketplace(), never at import time
"""

import logging
import json
from datetime import datetime, timezone


_EXTRA_KEYS = (
    "principal_id", "generation", "operation", "property_id",
    "error_code", "attempt", "cache", "status_code",
)


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_KEYS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


_installed_handler: logging.Handler | None = None


def setup_logging(level: str = "INFO", fmt: str = "json"):
    """Configure logging for the client process. Re-running replaces the handler."""
    global _installed_handler
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s - %(message)s",
        ))
    if _installed_handler is not None:
        logging.root.removeHandler(_installed_handler)
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))
    _installed_handler = handler
