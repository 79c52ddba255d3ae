from __future__ import annotations

import logging
from threading import Lock
from typing import Any

import httpx

from orderhub.core.config import AUTOMATION_API_KEY, AUTOMATION_BASE_URL
from orderhub.core.errors import AutomationBackendError, ValidationError

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-N8N-API-KEY"


class AutomationBackendClient:
    """Thin client for the n8n REST API. Base URL and key can change at runtime."""

    def __init__(
        self,
        *,
        base_url: str = AUTOMATION_BASE_URL,
        api_key: str = AUTOMATION_API_KEY,
        timeout_seconds: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or "").rstrip("/")
        self._api_key = api_key or ""
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._lock = Lock()

    def configure(self, *, base_url: str | None = None, api_key: str | None = None) -> None:
        with self._lock:
            if base_url is not None:
                self._base_url = base_url.strip().rstrip("/")
            if api_key is not None:
                self._api_key = api_key.strip()
        logger.info("automation backend configured base_url=%s", self._base_url)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def is_configured(self) -> bool:
        return bool(self._base_url and self._api_key)

    def describe(self) -> dict[str, Any]:
        return {"baseUrl": self._base_url or None, "apiKeySet": bool(self._api_key)}

    def _credentials(self) -> tuple[str, str]:
        with self._lock:
            base_url, api_key = self._base_url, self._api_key
        if not base_url or not api_key:
            raise ValidationError("automation backend not configured, set base URL and API key first")
        return base_url, api_key

    def _request(self, method: str, path: str, *, json: Any = None) -> Any:
        base_url, api_key = self._credentials()
        headers = {API_KEY_HEADER: api_key, "Accept": "application/json"}
        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = client.request(method, f"{base_url}{path}", headers=headers, json=json)
        except httpx.HTTPError as exc:
            logger.warning("automation backend unreachable: %s", exc)
            raise AutomationBackendError(f"automation backend unreachable: {exc}") from exc

        if response.status_code >= 400:
            logger.warning(
                "automation backend error",
                extra={"status_code": response.status_code, "endpoint": path, "method": method},
            )
            raise AutomationBackendError(f"automation backend returned {response.status_code}: {response.text[:200]}")
        try:
            return response.json()
        except ValueError:
            return {"raw": response.text}

    def list_workflows(self) -> list[dict[str, Any]]:
        data = self._request("GET", "/api/v1/workflows")
        if isinstance(data, dict):
            return list(data.get("data") or [])
        return list(data or [])

    def execute_workflow(self, workflow_id: str, data: Any) -> Any:
        if not str(workflow_id or "").strip():
            raise ValidationError("workflow id is required")
        return self._request("POST", f"/api/v1/workflows/{workflow_id}/execute", json={"data": data})
