from __future__ import annotations

import json
import logging
import os
import re
from datetime import datetime, timezone

from orderhub.core.request_context import get_channel, get_delivery_id, get_request_id

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# "<key>=<value>" / "<key>: <value>" pairs whose value must never reach the logs
_MASKED = re.compile(
    r"(?P<key>authorization\s*[:=]\s*bearer\s+|(?:token|secret|api[_-]?key|signature)\s*[:=]\s*)"
    r"(?P<value>[^\s\",}]+)",
    re.IGNORECASE,
)

_CONTEXT = {
    "request_id": get_request_id,
    "channel": get_channel,
    "delivery_id": get_delivery_id,
}

_EXTRA_FIELDS = (
    "endpoint",
    "method",
    "status_code",
    "duration_ms",
    "order_id",
    "event",
    "subscription_id",
    "attempt",
    "delay_seconds",
)


def mask_secrets(text: str) -> str:
    return _MASKED.sub(lambda found: f"{found.group('key')}***", text)


class JsonFormatter(logging.Formatter):
    """One JSON object per line, enriched with the request/channel/delivery context."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": mask_secrets(record.getMessage()),
        }
        for name, getter in _CONTEXT.items():
            payload[name] = getattr(record, name, None) or getter()
        payload.update(
            {field: getattr(record, field) for field in _EXTRA_FIELDS if getattr(record, field, None) is not None}
        )
        if record.exc_info:
            payload["exc_info"] = mask_secrets(self.formatException(record.exc_info))
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str = LOG_LEVEL) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)
    logging.getLogger("httpx").setLevel(logging.WARNING)
