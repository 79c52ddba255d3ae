from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass
class SendResult:
    status: str
    provider: str
    provider_message_id: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "sent"


class ChannelSender(Protocol):
    name: str

    def send(self, address: str, text: str) -> SendResult:
        ...


SENSITIVE_KEYS = frozenset({"access_token", "authorization", "token", "secret", "api_key"})


def _redact(value: Any) -> str:
    text = "" if value is None else str(value)
    return "****" + text[-4:] if len(text) > 4 else "****"


def sanitize_payload(payload: Any) -> Any:
    """Copy of an outbound payload with credential-like keys redacted, for logging."""
    if isinstance(payload, list):
        return [sanitize_payload(entry) for entry in payload]
    if not isinstance(payload, dict):
        return payload
    return {
        key: _redact(value) if str(key).lower() in SENSITIVE_KEYS and value is not None else sanitize_payload(value)
        for key, value in payload.items()
    }
