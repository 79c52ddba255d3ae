from __future__ import annotations

import uuid
from threading import Lock
from typing import Any

from orderhub.channels.base import SendResult


class MockChannelSender:
    """Records every message in an outbox instead of sending it."""

    name = "mock"

    def __init__(self) -> None:
        self.outbox: list[dict[str, Any]] = []
        self._lock = Lock()

    def send(self, address: str, text: str) -> SendResult:
        message_id = f"mock-{uuid.uuid4().hex[:10]}"
        with self._lock:
            self.outbox.append({"to": address, "text": text, "id": message_id})
        return SendResult(status="sent", provider=self.name, provider_message_id=message_id)
