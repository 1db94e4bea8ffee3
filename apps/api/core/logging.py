"""
Structured logging configuration.

JSON lines in production (or when LOG_FORMAT=json), plain text otherwise.
Callers attach structured context with extra={"extra_fields": {...}}; the
readiness services log athlete ids and scores this way.
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from core.config import settings

SERVICE_NAME = "readiness-api"


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    fields = getattr(record, "extra_fields", None)
    return fields if isinstance(fields, dict) else {}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shipping."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "environment": settings.ENVIRONMENT,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(_extra_fields(record))

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable lines with structured context appended as key=value."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-7s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _extra_fields(record)
        if context:
            line += " | " + " ".join(f"{k}={v}" for k, v in context.items())
        return line


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Configure the root logger once per process; safe to call again."""
    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)
    use_json = settings.LOG_FORMAT == "json" or settings.is_production

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(JSONFormatter() if use_json else TextFormatter())

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()
    root.addHandler(handler)

    # Request logging middleware already records every request
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return root


setup_logging()
