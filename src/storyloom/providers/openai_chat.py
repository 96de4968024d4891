"""OpenAI-compatible chat completions oracle.

Single attempt per call. Transport errors, non-2xx statuses and empty bodies
are returned as classified OracleResponse failures instead of raised.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from storyloom.core.settings import (
    DEFAULT_BASE_URL,
    DEFAULT_MODEL,
    DEFAULT_ORACLE_TIMEOUT_S,
    DEFAULT_TEMPERATURE,
    Settings,
)
from storyloom.models.domain import GenerationRequest, OracleResponse
from storyloom.providers.base import OracleBase

logger = logging.getLogger(__name__)

# Keep error bodies short in logs and responses
MAX_DETAIL_CHARS = 500


def _extract_content(data: Any) -> str | None:
    """Pull choices[0].message.content out of a completions body."""
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    message = first.get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    return content if isinstance(content, str) else None


class OpenAIChatOracle(OracleBase):
    """Oracle backed by the /chat/completions endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        temperature: float = DEFAULT_TEMPERATURE,
        timeout_s: float = DEFAULT_ORACLE_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the oracle.

        Args:
            api_key: Bearer token for the backend.
            model: Chat model name.
            base_url: API base URL without trailing slash.
            temperature: Sampling temperature.
            timeout_s: Per-attempt client-side timeout in seconds.
            transport: Optional httpx transport (tests pass a MockTransport).
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.timeout = httpx.Timeout(timeout_s)
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> OpenAIChatOracle:
        """Build an oracle from settings.

        Raises:
            ConfigurationError: If no API key is configured.
        """
        return cls(
            api_key=settings.require_api_key(),
            model=settings.model,
            base_url=settings.openai_base_url,
            temperature=settings.temperature,
            timeout_s=settings.oracle_timeout_s,
        )

    def _build_payload(self, request: GenerationRequest) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "temperature": self.temperature,
            "messages": [m.to_dict() for m in request.messages],
        }
        if request.contract is not None:
            response_format = request.contract.response_format()
            if response_format is not None:
                payload["response_format"] = response_format
        return payload

    async def call(self, request: GenerationRequest) -> OracleResponse:
        url = f"{self.base_url}/chat/completions"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        payload = self._build_payload(request)
        logger.debug(f"Calling oracle {self.model} with {len(request.messages)} messages")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            detail = str(e) or type(e).__name__
            logger.warning(f"Oracle transport failure: {detail}")
            return OracleResponse.failure("transport", detail=detail[:MAX_DETAIL_CHARS])

        if not 200 <= response.status_code < 300:
            detail = response.text[:MAX_DETAIL_CHARS]
            logger.error(f"Oracle API error {response.status_code}: {detail}")
            return OracleResponse.failure(
                "non-2xx", status_code=response.status_code, detail=detail
            )

        try:
            data = response.json()
        except ValueError:
            return OracleResponse.failure(
                "empty-body",
                status_code=response.status_code,
                detail="Response body is not JSON",
            )

        content = _extract_content(data)
        if content is None or not content.strip():
            return OracleResponse.failure(
                "empty-body",
                status_code=response.status_code,
                detail="Oracle returned no content",
            )

        return OracleResponse.success(content)
