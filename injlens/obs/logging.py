"""
Structured JSON Lines logging for observability.

Every log entry is a single JSON object carrying:
- Timestamp (ISO 8601 UTC)
- Log level
- Service name for correlation across processes
- Event type for filtering
- Module name
- Human-readable message
- Extra structured data

Example log entry:
    {"ts": "2024-01-15T10:30:00Z", "level": "WARNING", "service": "injlens",
     "event": "cache_stale_served", "module": "cache", "msg": "Serving last known good value",
     "extra": {"key": "orderbook:0xabc:25"}}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class LogSettings:
    """
    Configuration for logger initialization.

    Attributes:
        level: Log level string (DEBUG, INFO, WARNING, ERROR).
        service: Service name included in every entry.
        log_file: Optional path to log file (None for console only).
        jsonl: If True, use JSON Lines format; otherwise plain text.
    """
    level: str
    service: str
    log_file: Path | None
    jsonl: bool


class JsonLineFormatter(logging.Formatter):
    """Logging formatter that emits one JSON object per record."""

    def __init__(self, service: str):
        super().__init__()
        self._service = service

    def format(self, record: logging.LogRecord) -> str:
        event = getattr(record, "event", "log")
        extra = getattr(record, "extra", {})
        if not isinstance(extra, dict):
            extra = {"value": extra}

        payload = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "service": self._service,
            "event": event,
            "module": record.module,
            "msg": record.getMessage(),
            "extra": extra,
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def build_logger(settings: LogSettings) -> logging.Logger:
    """
    Create and configure the service logger.

    The logger does not propagate; it writes to stderr and optionally to a
    file, in JSON Lines format when ``settings.jsonl`` is True.
    """
    logger = logging.getLogger(settings.service)
    logger.setLevel(settings.level)
    logger.handlers.clear()
    logger.propagate = False

    formatter = JsonLineFormatter(settings.service) if settings.jsonl else None

    stream_handler = logging.StreamHandler()
    if formatter:
        stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if settings.log_file:
        file_handler = logging.FileHandler(settings.log_file, encoding="utf-8")
        if formatter:
            file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    message: str,
    *,
    exc_info: logging._ExcInfoType | None = None,
    **extra: Any,
) -> None:
    """
    Log a structured event with typed metadata.

    Example:
        >>> log_event(logger, logging.INFO, "markets_normalized",
        ...           "Spot markets normalized", kind="spot", count=142)
    """
    logger.log(level, message, extra={"event": event, "extra": extra}, exc_info=exc_info)
