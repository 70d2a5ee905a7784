"""
Logging setup for the cognitive engine.

Services attach domain context (user_id, event_id, category, granted XP)
through ``extra={"extra_fields": {...}}``. Both formatters carry that context:
JSON lines merge it into the top-level object, text lines append it as
key=value pairs so development logs show the same fields.
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from core.config import settings

SERVICE_NAME = "cognitive-engine"

# Loggers that are noisy at INFO
QUIET_LOGGERS = ("sqlalchemy.engine", "uvicorn.access")


def _context(record: logging.LogRecord) -> Dict[str, Any]:
    return dict(getattr(record, "extra_fields", None) or {})


class JSONFormatter(logging.Formatter):
    """One JSON object per record, domain context merged in."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "environment": settings.ENVIRONMENT,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        # context never overwrites the fixed keys
        for key, value in _context(record).items():
            log_data.setdefault(key, value)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ContextTextFormatter(logging.Formatter):
    """Plain text for development with the context appended."""

    def __init__(self):
        super().__init__("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context(record)
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
        head, sep, tail = line.partition("\n")
        return f"{head} [{pairs}]{sep}{tail}"


def build_formatter(log_format: Optional[str] = None) -> logging.Formatter:
    log_format = (log_format or settings.LOG_FORMAT).lower()
    if log_format == "json" or settings.ENVIRONMENT == "production":
        return JSONFormatter()
    return ContextTextFormatter()


def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> logging.Logger:
    """
    Configure the root logger with a single stdout handler.

    Production always logs JSON. Called once from the app entry point; calling
    it again replaces the handler rather than stacking another.
    """
    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(build_formatter(log_format))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger
