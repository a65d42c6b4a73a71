"""HTTP client for the structured invoice extraction service (messages API)."""

from __future__ import annotations

import time
from typing import Any

import httpx

from avkosten.invoice.collaborators import ExtractionServiceUnavailable
from avkosten.runtime.logging import get_logger
from avkosten.runtime.settings import ExtractionSettings

logger = get_logger(__name__)

API_VERSION = "2023-06-01"


def _response_text(payload: Any) -> str:
    """Concatenate the text blocks of a messages-API response."""
    if not isinstance(payload, dict):
        raise ExtractionServiceUnavailable("Extraction service returned an unexpected payload")
    blocks = payload.get("content") or []
    return "".join(
        block.get("text", "") for block in blocks if isinstance(block, dict) and block.get("type") == "text"
    )


class MessagesApiUnderstanding:
    """Send extraction requests to a messages-API compatible endpoint."""

    def __init__(self, settings: ExtractionSettings, client: httpx.Client | None = None) -> None:
        self._settings = settings
        self._client = client

    def _headers(self) -> dict[str, str]:
        headers = {"content-type": "application/json", "anthropic-version": API_VERSION}
        if self._settings.api_key:
            headers["x-api-key"] = self._settings.api_key
        return headers

    def extract_invoice(self, instructions: str, message: str) -> str:
        url = f"{self._settings.api_url.rstrip('/')}/v1/messages"
        body = {
            "model": self._settings.model,
            "max_tokens": self._settings.max_tokens,
            "system": instructions,
            "messages": [{"role": "user", "content": message}],
        }
        logger.info("Sending invoice text to extraction service at %s...", self._settings.api_url)

        try:
            start_time = time.time()
            if self._client is not None:
                response = self._client.post(url, json=body, headers=self._headers(), timeout=self._settings.timeout)
            else:
                response = httpx.post(url, json=body, headers=self._headers(), timeout=self._settings.timeout)
            elapsed_time = time.time() - start_time
            logger.info("Extraction service returned in %.2f seconds", elapsed_time)
        except httpx.RequestError as e:
            logger.error("Failed to connect to extraction service: %s", e)
            raise ExtractionServiceUnavailable(f"Failed to connect to extraction service: {e}") from e

        if response.status_code != 200:
            # Response bodies may echo invoice text; keep only the status at ERROR.
            logger.error("Extraction service error: %s", response.status_code)
            logger.debug("Extraction service error body: %s", response.text)
            raise ExtractionServiceUnavailable(f"Extraction service error: {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise ExtractionServiceUnavailable("Extraction service returned invalid JSON") from e
        return _response_text(payload)
