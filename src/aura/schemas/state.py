"""Conversation state persisted between runs: messages and mood entries."""

from __future__ import annotations

import time
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from ..errors import MessageNotFoundError


def current_timestamp_ms() -> int:
    """Epoch milliseconds, the identifier format used for messages."""

    return int(time.time() * 1000)


class Message(BaseModel):
    """One turn of the conversation.

    ``role``, ``content`` and ``timestamp`` are frozen once the message
    exists. ``audio_segment`` (base64 PCM of the whole turn) is the only
    field that may change, when speech is synthesized lazily for replay or
    download.
    """

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    role: Literal["user", "assistant"] = Field(frozen=True)
    content: str = Field(frozen=True)
    timestamp: int = Field(frozen=True)
    audio_segment: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("audioSegment", "audioBase64", "audio_segment"),
        serialization_alias="audioSegment",
    )

    @model_validator(mode="after")
    def _audio_only_for_assistant(self) -> "Message":
        if self.audio_segment is not None and self.role != "assistant":
            raise ValueError("Only assistant messages carry audio")
        return self

    @property
    def has_audio(self) -> bool:
        return bool(self.audio_segment)

    def summary(self) -> dict[str, Any]:
        """Client-facing view without the (large) audio payload."""

        return {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
            "has_audio": self.has_audio,
        }


class MoodEntry(BaseModel):
    """One mood sample on a 1 (very sad) to 5 (excellent) scale."""

    model_config = ConfigDict(frozen=True)

    date: str
    score: int = Field(ge=1, le=5)
    timestamp: int = 0
    note: Optional[str] = None


class ConversationState(BaseModel):
    """Aggregate persisted as a single record."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = "Amiga"
    mood_history: list[MoodEntry] = Field(
        default_factory=list,
        validation_alias=AliasChoices("moodHistory", "mood_history"),
        serialization_alias="moodHistory",
    )
    chat_history: list[Message] = Field(
        default_factory=list,
        validation_alias=AliasChoices("chatHistory", "chat_history"),
        serialization_alias="chatHistory",
    )

    def _next_timestamp(self, candidate: int | None) -> int:
        timestamp = candidate if candidate is not None else current_timestamp_ms()
        if self.chat_history:
            latest = max(message.timestamp for message in self.chat_history)
            if timestamp <= latest:
                timestamp = latest + 1
        return timestamp

    def append_message(
        self,
        role: Literal["user", "assistant"],
        content: str,
        *,
        audio_segment: str | None = None,
        timestamp: int | None = None,
    ) -> Message:
        message = Message(
            role=role,
            content=content,
            timestamp=self._next_timestamp(timestamp),
            audio_segment=audio_segment,
        )
        self.chat_history.append(message)
        return message

    def append_mood(
        self,
        score: int,
        *,
        note: str | None = None,
        when: datetime | None = None,
    ) -> MoodEntry:
        moment = when or datetime.now().astimezone()
        entry = MoodEntry(
            date=moment.strftime("%d/%m/%Y"),
            score=score,
            timestamp=int(moment.timestamp() * 1000),
            note=note,
        )
        self.mood_history.append(entry)
        return entry

    def find_message(self, timestamp: int) -> Message | None:
        for message in self.chat_history:
            if message.timestamp == timestamp:
                return message
        return None

    def attach_audio(self, timestamp: int, audio_segment: str) -> Message:
        """Store full-turn audio on an existing message, in place."""

        message = self.find_message(timestamp)
        if message is None:
            raise MessageNotFoundError(timestamp)
        message.audio_segment = audio_segment
        return message

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


__all__ = [
    "ConversationState",
    "Message",
    "MoodEntry",
    "current_timestamp_ms",
]
