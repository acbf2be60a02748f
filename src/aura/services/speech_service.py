import logging
from typing import Any, Mapping, Optional

import httpx

from ..config import Settings
from ..errors import NetworkError, error_detail

logger = logging.getLogger(__name__)


class SpeechService:
    """
    Service for Text-to-Speech generation through Gemini's TTS models.

    Every request returns one base64 payload of raw 16-bit mono PCM at
    24 kHz. Uses a singleton httpx.AsyncClient for connection pooling
    across requests.

    Failures to reach the service (transport errors, HTTP >= 400, missing
    API key) raise `NetworkError`; a successful response without audio
    yields None.
    """

    # Singleton HTTP client for connection pooling
    _http_client: Optional[httpx.AsyncClient] = None

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings
        self._client_override = http_client
        self._api_key = (
            settings.gemini_api_key.get_secret_value()
            if settings.gemini_api_key
            else None
        )

        if not self._api_key:
            logger.warning("No GEMINI_API_KEY configured. Speech will not be available.")
        else:
            logger.info(
                "Speech synthesis available: model=%s voice=%s",
                settings.tts_model,
                settings.tts_voice,
            )

    @property
    def available(self) -> bool:
        return bool(self._api_key)

    @classmethod
    def get_http_client(cls, timeout: float = 30.0) -> httpx.AsyncClient:
        """Get singleton HTTP client for connection pooling."""
        if cls._http_client is None:
            cls._http_client = httpx.AsyncClient(timeout=timeout)
            logger.info("Created singleton httpx.AsyncClient for speech")
        return cls._http_client

    @classmethod
    async def close_http_client(cls) -> None:
        """Close the singleton HTTP client. Call on app shutdown."""
        if cls._http_client is not None:
            await cls._http_client.aclose()
            cls._http_client = None
            logger.info("Closed speech HTTP client")

    def _client(self) -> httpx.AsyncClient:
        if self._client_override is not None:
            return self._client_override
        return self.get_http_client(self._settings.tts_timeout)

    @property
    def _endpoint(self) -> str:
        base = str(self._settings.gemini_base_url).rstrip("/")
        return f"{base}/models/{self._settings.tts_model}:generateContent"

    def build_payload(self, text: str) -> dict[str, Any]:
        """Request body asking for spoken audio in the configured voice."""

        return {
            "contents": [
                {"parts": [{"text": f"{self._settings.tts_style_prefix}{text}"}]}
            ],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {
                        "prebuiltVoiceConfig": {"voiceName": self._settings.tts_voice},
                    },
                },
            },
        }

    async def synthesize(self, text: str) -> Optional[str]:
        """Synthesize text and return the base64 audio payload, or None."""

        text = text.strip()
        if not text:
            return None
        if not self._api_key:
            raise NetworkError(503, "Speech synthesis is not configured")

        headers = {
            "x-goog-api-key": self._api_key,
            "Content-Type": "application/json",
        }

        try:
            response = await self._client().post(
                self._endpoint,
                headers=headers,
                json=self.build_payload(text),
                timeout=self._settings.tts_timeout,
            )
        except httpx.HTTPError as exc:
            raise NetworkError(502, str(exc)) from exc

        if response.status_code >= 400:
            raise NetworkError(
                response.status_code, error_detail(response.content, service="Speech service")
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise NetworkError(502, f"Invalid speech response: {exc}") from exc

        audio = extract_audio_payload(body)
        if audio is None:
            logger.warning("Speech response carried no audio for text: %s...", text[:50])
            return None

        logger.info(
            "Speech synthesized %d base64 chars for text: %s...", len(audio), text[:50]
        )
        return audio


def extract_audio_payload(body: Any) -> Optional[str]:
    """Return the first inline audio payload of a generateContent response."""

    if not isinstance(body, Mapping):
        return None
    candidates = body.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None
    first = candidates[0]
    content = first.get("content") if isinstance(first, Mapping) else None
    parts = content.get("parts") if isinstance(content, Mapping) else None
    if not isinstance(parts, list):
        return None
    for part in parts:
        if not isinstance(part, Mapping):
            continue
        inline = part.get("inlineData") or part.get("inline_data")
        if isinstance(inline, Mapping):
            data = inline.get("data")
            if isinstance(data, str) and data:
                return data
    return None


__all__ = ["SpeechService", "extract_audio_payload"]
