"""Structured JSON logging utilities."""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging

from extractkit.correlation import get_correlation_id

EXTRA_FIELDS = (
    "stage",
    "tier",
    "kind",
    "video_id",
    "url",
    "action",
    "input_tokens",
    "output_tokens",
    "model",
)


class JsonFormatter(logging.Formatter):
    """Minimal JSON formatter with correlation id."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": get_correlation_id(),
        }
        for field in EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def configure_logging(level: int = logging.INFO) -> None:
    """Configure root logger for JSON output."""

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    root.addHandler(handler)
