"""Streaming text client for OpenRouter-compatible chat completion APIs."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncGenerator, Optional

import httpx
from fastapi import status

from .config import Settings
from .errors import NetworkError, error_detail
from .schemas.chat import ChatCompletionRequest

logger = logging.getLogger(__name__)

STREAM_DONE = "[DONE]"


class OpenRouterError(NetworkError):
    """Raised when the completion request fails or the stream reports an error."""


def parse_sse_data(lines: list[str]) -> Optional[str]:
    """Join the ``data:`` fields of one SSE event; None when it has none."""

    data = [
        line.partition(":")[2].removeprefix(" ")
        for line in lines
        if line.partition(":")[0] == "data"
    ]
    return "\n".join(data) if data else None


def extract_text_deltas(chunk: Any) -> list[str]:
    """Text increments carried by one decoded completion chunk.

    Raises `OpenRouterError` when the chunk is an in-stream error report.
    """

    if not isinstance(chunk, dict):
        return []
    if chunk.get("error"):
        raise OpenRouterError(status.HTTP_502_BAD_GATEWAY, chunk["error"])
    texts: list[str] = []
    for choice in chunk.get("choices") or []:
        delta = choice.get("delta") if isinstance(choice, dict) else None
        content = delta.get("content") if isinstance(delta, dict) else None
        if isinstance(content, str) and content:
            texts.append(content)
    return texts


class OpenRouterClient:
    """Client responsible for streaming chat completions."""

    _shared_lock: asyncio.Lock = asyncio.Lock()
    _shared_clients: dict[tuple[str, float], httpx.AsyncClient] = {}

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings
        self._http_client = http_client

    @property
    def base_url(self) -> str:
        return str(self._settings.openrouter_base_url).rstrip("/")

    @property
    def headers(self) -> dict[str, str]:
        api_key = self._settings.openrouter_api_key.get_secret_value()
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        if self._settings.openrouter_app_url:
            headers["HTTP-Referer"] = str(self._settings.openrouter_app_url)
        if self._settings.openrouter_app_name:
            headers["X-Title"] = self._settings.openrouter_app_name
        return headers

    async def _client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client

        cls = self.__class__
        key = (self.base_url, float(self._settings.request_timeout))
        async with cls._shared_lock:
            client = cls._shared_clients.get(key)
            if client is None:
                client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self._settings.request_timeout, connect=10.0),
                    limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
                    http2=True,
                )
                cls._shared_clients[key] = client
        return client

    async def stream_text(
        self, request: ChatCompletionRequest
    ) -> AsyncGenerator[str, None]:
        """Yield the text increments of one streaming completion, in order."""

        payload = request.to_openrouter_payload()
        client = await self._client()
        url = f"{self.base_url}/chat/completions"
        logger.debug(
            "Streaming completion from %s (%d message(s))", payload.get("model"), len(request.messages)
        )

        try:
            async with client.stream("POST", url, headers=self.headers, json=payload) as response:
                if response.status_code >= 400:
                    detail = error_detail(await response.aread(), service="Completion service")
                    raise OpenRouterError(response.status_code, detail)

                event_lines: list[str] = []
                async for line in response.aiter_lines():
                    if line.startswith(":"):
                        continue
                    if line:
                        event_lines.append(line)
                        continue
                    data, event_lines = parse_sse_data(event_lines), []
                    if data is None:
                        continue
                    if data == STREAM_DONE:
                        return
                    for text in self._decode(data):
                        yield text

                data = parse_sse_data(event_lines)
                if data is not None and data != STREAM_DONE:
                    for text in self._decode(data):
                        yield text
        except httpx.HTTPError as exc:
            raise OpenRouterError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

    @staticmethod
    def _decode(data: str) -> list[str]:
        try:
            chunk = json.loads(data)
        except json.JSONDecodeError:
            logger.debug("Skipping non-JSON stream event: %s", data[:80])
            return []
        return extract_text_deltas(chunk)

    async def aclose(self) -> None:
        await self.__class__.aclose_shared()

    @classmethod
    async def aclose_shared(cls) -> None:
        async with cls._shared_lock:
            clients = list(cls._shared_clients.values())
            cls._shared_clients.clear()
        for client in clients:
            try:
                await client.aclose()
            except Exception as exc:  # pragma: no cover - best effort cleanup
                logger.debug("Error closing completion HTTP client: %s", exc)


__all__ = [
    "OpenRouterClient",
    "OpenRouterError",
    "extract_text_deltas",
    "parse_sse_data",
]
