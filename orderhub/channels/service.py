from __future__ import annotations

import logging

from orderhub.channels.base import ChannelSender, SendResult
from orderhub.channels.cloud_provider import CloudWhatsAppSender
from orderhub.channels.mock_provider import MockChannelSender
from orderhub.core.config import CHANNEL_PROVIDER, IS_DEV

logger = logging.getLogger(__name__)


class ChannelService:
    """Acknowledges order actions back to the originating channel.

    Sending is fire-and-forget for callers: failures come back as a failed
    ``SendResult`` and a log line, never as an exception.
    """

    def __init__(
        self,
        *,
        provider: str = CHANNEL_PROVIDER,
        cloud_sender: ChannelSender | None = None,
        mock_sender: MockChannelSender | None = None,
        fallback_to_mock: bool = IS_DEV,
    ) -> None:
        self.provider = (provider or "mock").strip().lower()
        self.mock_sender = mock_sender or MockChannelSender()
        self._cloud_sender = cloud_sender or CloudWhatsAppSender()
        self.fallback_to_mock = fallback_to_mock

    def _select_sender(self) -> ChannelSender:
        if self.provider == "whatsapp_cloud":
            return self._cloud_sender
        return self.mock_sender

    def send(self, address: str | None, text: str) -> SendResult | None:
        if not address:
            return None
        sender = self._select_sender()
        try:
            result = sender.send(address, text)
        except Exception as exc:
            logger.exception("channel sender %s crashed", sender.name)
            result = SendResult(status="failed", provider=sender.name, error=str(exc))

        if not result.ok and sender is not self.mock_sender and self.fallback_to_mock:
            logger.warning("%s failed, using mock sender", sender.name)
            return self.mock_sender.send(address, text)
        if not result.ok:
            logger.warning("channel acknowledgement failed: %s", result.error)
        return result
