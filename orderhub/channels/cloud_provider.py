from __future__ import annotations

import logging

import httpx

from orderhub.channels.base import SendResult, sanitize_payload
from orderhub.core.config import META_API_VERSION, META_WA_ACCESS_TOKEN, META_WA_PHONE_NUMBER_ID

logger = logging.getLogger(__name__)


class CloudWhatsAppSender:
    name = "whatsapp_cloud"
    MAX_RETRIES = 3

    def __init__(
        self,
        *,
        access_token: str = META_WA_ACCESS_TOKEN,
        phone_number_id: str = META_WA_PHONE_NUMBER_ID,
        api_version: str = META_API_VERSION,
        timeout_seconds: float = 20.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.access_token = access_token
        self.phone_number_id = phone_number_id
        self.api_version = api_version
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.access_token and self.phone_number_id)

    def send(self, address: str, text: str) -> SendResult:
        if not self.is_configured:
            return SendResult(status="failed", provider=self.name, error="WhatsApp Cloud credentials missing")

        url = f"https://graph.facebook.com/{self.api_version}/{self.phone_number_id}/messages"
        headers = {"Authorization": f"Bearer {self.access_token}", "Content-Type": "application/json"}
        payload = {
            "messaging_product": "whatsapp",
            "to": address,
            "type": "text",
            "text": {"preview_url": False, "body": text},
        }

        last_error: str | None = None
        attempt = 0
        while True:
            attempt += 1
            try:
                with httpx.Client(timeout=self.timeout_seconds, transport=self._transport) as client:
                    response = client.post(url, headers=headers, json=payload)
                if 200 <= response.status_code < 300:
                    provider_id = None
                    try:
                        provider_id = ((response.json().get("messages") or [{}])[0].get("id"))
                    except ValueError:
                        pass
                    return SendResult(status="sent", provider=self.name, provider_message_id=provider_id)
                last_error = f"WhatsApp error {response.status_code}: {response.text[:200]}"
                retryable = response.status_code in (429, 500, 502, 503, 504)
            except httpx.HTTPError as exc:
                last_error = str(exc)
                retryable = True

            if not retryable or attempt >= self.MAX_RETRIES:
                break

        logger.warning("WhatsApp send failed payload=%s error=%s", sanitize_payload(payload), last_error)
        return SendResult(status="failed", provider=self.name, error=last_error)
