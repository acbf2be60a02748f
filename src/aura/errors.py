"""Exception hierarchy shared by the Aura services."""

from __future__ import annotations

import json
from typing import Any


class AuraError(Exception):
    """Base class for errors raised by the Aura backend."""


class NetworkError(AuraError):
    """Wrap transport or API failures when talking to a remote service."""

    def __init__(self, status_code: int, detail: Any):
        super().__init__(str(detail))
        self.status_code = status_code
        self.detail = detail


class DecodeError(AuraError):
    """Raised when an audio payload cannot be decoded."""


class DeviceError(AuraError):
    """Raised when the audio output device is unavailable."""


class TurnInProgressError(AuraError):
    """Raised when a new message arrives while a turn is still running."""


class MessageNotFoundError(AuraError):
    """Raised when no message matches the requested timestamp."""

    def __init__(self, timestamp: int):
        super().__init__(f"No message with timestamp {timestamp}")
        self.timestamp = timestamp


class SpeechUnavailableError(AuraError):
    """Raised when speech could not be synthesized for replay or download."""


def error_detail(raw: bytes, *, service: str) -> Any:
    """Best-effort detail from an error response body: its JSON `error`, else the text."""

    if not raw:
        return f"{service} returned an empty error response."
    text = raw.decode("utf-8", errors="ignore")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return text
    if isinstance(payload, dict):
        return payload.get("error") or payload
    return payload


__all__ = [
    "AuraError",
    "DecodeError",
    "DeviceError",
    "MessageNotFoundError",
    "NetworkError",
    "SpeechUnavailableError",
    "TurnInProgressError",
    "error_detail",
]
