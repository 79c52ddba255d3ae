import json

import httpx
import pytest

from orderhub.ai.gemini_provider import GeminiOrderTextParser, GeminiProviderError
from orderhub.ai.mock_provider import MockOrderTextParser
from orderhub.ai.service import get_parser
from orderhub.channels.base import SendResult, sanitize_payload
from orderhub.channels.cloud_provider import CloudWhatsAppSender
from orderhub.channels.service import ChannelService
from orderhub.core.errors import AutomationBackendError, ValidationError
from orderhub.services.automation_backend import API_KEY_HEADER, AutomationBackendClient
from tests.fixtures_data import GEMINI_REPLY


def test_automation_requires_configuration():
    client = AutomationBackendClient(base_url="", api_key="")

    with pytest.raises(ValidationError):
        client.list_workflows()


def test_automation_lists_and_executes_workflows():
    seen = []

    def handler(request):
        seen.append(request)
        if request.method == "GET":
            return httpx.Response(200, json={"data": [{"id": "wf1", "name": "Notify kitchen"}]})
        return httpx.Response(200, json={"executionId": "ex-9"})

    client = AutomationBackendClient(
        base_url="https://n8n.example.com/",
        api_key="key-123",
        transport=httpx.MockTransport(handler),
    )

    workflows = client.list_workflows()
    result = client.execute_workflow("wf1", {"orderId": 7})

    assert workflows == [{"id": "wf1", "name": "Notify kitchen"}]
    assert result == {"executionId": "ex-9"}
    assert str(seen[0].url) == "https://n8n.example.com/api/v1/workflows"
    assert seen[0].headers[API_KEY_HEADER] == "key-123"
    assert json.loads(seen[1].content) == {"data": {"orderId": 7}}


def test_automation_error_status_is_typed():
    client = AutomationBackendClient(
        base_url="https://n8n.example.com",
        api_key="key",
        transport=httpx.MockTransport(lambda request: httpx.Response(401, text="unauthorized")),
    )

    with pytest.raises(AutomationBackendError):
        client.list_workflows()


def test_automation_configure_at_runtime():
    client = AutomationBackendClient(base_url="", api_key="")

    client.configure(base_url="https://n8n.example.com/", api_key="abc")

    assert client.is_configured
    assert client.describe() == {"baseUrl": "https://n8n.example.com", "apiKeySet": True}


def test_channel_service_mock_outbox():
    channels = ChannelService(provider="mock")

    result = channels.send("+15550001", "Order ORD-1001 created.")

    assert result.ok
    assert channels.mock_sender.outbox[0]["text"] == "Order ORD-1001 created."
    assert channels.send(None, "ignored") is None


def test_channel_service_falls_back_to_mock_on_failure():
    class BrokenSender:
        name = "whatsapp_cloud"

        def send(self, address, text):
            return SendResult(status="failed", provider=self.name, error="HTTP 500")

    channels = ChannelService(provider="whatsapp_cloud", cloud_sender=BrokenSender(), fallback_to_mock=True)

    result = channels.send("+15550001", "hello")

    assert result.provider == "mock"
    assert len(channels.mock_sender.outbox) == 1


def test_channel_service_without_fallback_returns_failure():
    class CrashingSender:
        name = "whatsapp_cloud"

        def send(self, address, text):
            raise RuntimeError("socket closed")

    channels = ChannelService(provider="whatsapp_cloud", cloud_sender=CrashingSender(), fallback_to_mock=False)

    result = channels.send("+15550001", "hello")

    assert not result.ok
    assert result.error == "socket closed"
    assert channels.mock_sender.outbox == []


def test_cloud_sender_retries_server_errors():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(503, text="busy")
        return httpx.Response(200, json={"messages": [{"id": "wamid.1"}]})

    sender = CloudWhatsAppSender(
        access_token="token",
        phone_number_id="123",
        transport=httpx.MockTransport(handler),
    )

    result = sender.send("+15550001", "ready")

    assert result.ok
    assert result.provider_message_id == "wamid.1"
    assert len(calls) == 3


def test_cloud_sender_without_credentials_fails_fast():
    result = CloudWhatsAppSender(access_token="", phone_number_id="").send("+15550001", "hi")

    assert result.status == "failed"


def test_sanitize_payload_masks_secrets():
    cleaned = sanitize_payload({"to": "+1555", "access_token": "abcdef123456", "nested": [{"secret": "xy"}]})

    assert cleaned == {"to": "+1555", "access_token": "****3456", "nested": [{"secret": "****"}]}


def test_gemini_parser_reads_fenced_json():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=GEMINI_REPLY)

    parser = GeminiOrderTextParser(api_key="g-key", model="gemini-test", transport=httpx.MockTransport(handler))

    parsed = parser.parse("two butter chicken, extra spicy", [{"id": 1, "name": "Butter Chicken", "price": "12.50"}])

    assert parsed["items"][0] == {"name": "butter chicken", "quantity": 2, "notes": "extra spicy"}
    assert seen[0].url.params["key"] == "g-key"
    assert "gemini-test" in str(seen[0].url)


def test_gemini_parser_errors_are_typed():
    parser = GeminiOrderTextParser(
        api_key="g-key",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"candidates": []})),
    )

    with pytest.raises(GeminiProviderError):
        parser.parse("anything", [])
    with pytest.raises(GeminiProviderError):
        GeminiOrderTextParser(api_key="").parse("anything", [])


def test_get_parser_by_provider():
    assert get_parser("none") is None
    assert isinstance(get_parser("mock"), MockOrderTextParser)
