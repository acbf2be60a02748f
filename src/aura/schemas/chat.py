"""Pydantic models for chat completion requests and API payloads."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    """Represents a single message sent to the completion service."""

    role: Literal["system", "user", "assistant"]
    content: str

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ChatCompletionRequest(BaseModel):
    """Streaming completion request sent to the text model."""

    model: str
    messages: List[ChatMessage]
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_openrouter_payload(self) -> Dict[str, Any]:
        """Serialize the request for OpenRouter, forcing streaming on."""

        payload = self.model_dump(by_alias=True, exclude_none=True)
        payload["stream"] = True
        return payload


class SendMessageRequest(BaseModel):
    """Body of ``POST /api/chat/stream``."""

    content: str


class AudioSettingsUpdate(BaseModel):
    """Body of ``PUT /api/audio``."""

    muted: bool


class ProfileUpdate(BaseModel):
    """Body of ``PUT /api/profile``."""

    name: str = Field(..., min_length=1, max_length=80)


class MoodRequest(BaseModel):
    """Body of ``POST /api/mood``."""

    score: int = Field(..., ge=1, le=5)
    note: Optional[str] = None
    follow_up: bool = False


__all__ = [
    "AudioSettingsUpdate",
    "ChatCompletionRequest",
    "ChatMessage",
    "MoodRequest",
    "ProfileUpdate",
    "SendMessageRequest",
]
