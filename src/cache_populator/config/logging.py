"""Logging setup for cache population.

Refresh log records carry their context through ``extra=``: ``cache_key``,
``policy``, ``delay``, ``job_id`` and ``operation``. Both formatters render it.
"""

import json
import logging
import sys
from datetime import UTC, datetime

from cache_populator.config.settings import Settings, get_settings
from cache_populator.utils.redaction import sanitize_log_message

CONTEXT_FIELDS = ("cache_key", "policy", "delay", "job_id", "operation")


def _context(record: logging.LogRecord) -> dict:
    return {name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)}


class SanitizingFilter(logging.Filter):
    """Redacts store credentials and secrets from the rendered message."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = sanitize_log_message(record.getMessage())
        record.args = None
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record, refresh context as top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context(record),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """``time level logger: message [key=value ...]``"""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        context = _context(record)
        if context:
            line += " [" + " ".join(f"{k}={v}" for k, v in context.items()) + "]"
        return line


def configure_logging(
    level: str = "INFO",
    format: str = "text",
    sanitize_logs: bool = True,
    scheduler_level: str = "WARNING",
) -> None:
    """Install a single stdout handler on the root logger.

    Handlers already on the root logger are replaced, so repeated calls
    leave exactly one.

    Args:
        level: Root log level name
        format: 'text' or 'json'
        sanitize_logs: Redact credentials before records are formatted
        scheduler_level: Level for APScheduler's own loggers
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if format.lower() == "json" else TextFormatter())
    if sanitize_logs:
        handler.addFilter(SanitizingFilter())

    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper())

    # APScheduler logs every cron submission at INFO
    logging.getLogger("apscheduler").setLevel(scheduler_level.upper())


def configure_logging_from_settings(settings: Settings | None = None) -> None:
    """Apply the ``log_*`` fields of ``settings`` (default: ``get_settings()``)."""
    settings = settings or get_settings()
    configure_logging(
        level=settings.log_level,
        format=settings.log_format,
        sanitize_logs=settings.sanitize_logs,
        scheduler_level=settings.scheduler_log_level,
    )
