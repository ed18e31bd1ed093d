"""Centralized logging configuration.

Plain text for local runs, one JSON object per line when LOG_JSON is set.
Access-log fields passed through ``extra=`` (request id, method, path,
status, duration) become top-level JSON keys.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from emotions_api.core.config import settings

_EXTRA_FIELDS = ("request_id", "method", "path", "status_code", "duration_ms")

_TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter for production."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update({key: getattr(record, key) for key in _EXTRA_FIELDS if hasattr(record, key)})
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def _quiet_level(level: int) -> dict[str, int]:
    # uvicorn's own access log duplicates RequestLoggingMiddleware
    return {
        "httpx": logging.WARNING,
        "httpcore": logging.WARNING,
        "uvicorn.access": level if settings.app_debug else logging.WARNING,
    }


def setup_logging() -> None:
    """Install a single stdout handler on the root logger."""
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        JSONFormatter() if settings.log_json else logging.Formatter(_TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name, noisy_level in _quiet_level(level).items():
        logging.getLogger(name).setLevel(noisy_level)
