from datetime import datetime

import pytest
from pydantic import ValidationError

from aura.errors import MessageNotFoundError
from aura.schemas.state import ConversationState, Message


def test_message_identity_fields_are_frozen() -> None:
    message = Message(role="assistant", content="Olá", timestamp=1)

    with pytest.raises(ValidationError):
        message.content = "outro"
    with pytest.raises(ValidationError):
        message.timestamp = 2

    message.audio_segment = "AAAA"
    assert message.has_audio


def test_user_messages_cannot_carry_audio() -> None:
    with pytest.raises(ValidationError):
        Message(role="user", content="Oi", timestamp=1, audio_segment="AAAA")


def test_append_message_keeps_timestamps_unique() -> None:
    state = ConversationState()
    first = state.append_message("user", "Oi", timestamp=100)
    second = state.append_message("assistant", "Olá", timestamp=100)
    third = state.append_message("user", "Tudo bem?", timestamp=50)

    assert [first.timestamp, second.timestamp, third.timestamp] == [100, 101, 102]


def test_attach_audio_changes_only_audio() -> None:
    state = ConversationState()
    message = state.append_message("assistant", "Respire fundo.", timestamp=10)

    updated = state.attach_audio(10, "AAAA")

    assert updated is message
    assert updated.content == "Respire fundo."
    assert updated.timestamp == 10
    assert updated.audio_segment == "AAAA"


def test_attach_audio_unknown_timestamp() -> None:
    with pytest.raises(MessageNotFoundError):
        ConversationState().attach_audio(404, "AAAA")


def test_append_mood_uses_calendar_day_label() -> None:
    state = ConversationState()
    entry = state.append_mood(5, note="ótimo", when=datetime(2025, 3, 7, 9, 30))

    assert entry.date == "07/03/2025"
    assert entry.score == 5
    assert state.mood_history == [entry]


def test_append_mood_rejects_out_of_range() -> None:
    with pytest.raises(ValidationError):
        ConversationState().append_mood(6)


def test_summary_hides_audio_payload() -> None:
    message = Message(role="assistant", content="Olá", timestamp=3, audio_segment="AAAA")
    assert message.summary() == {
        "role": "assistant",
        "content": "Olá",
        "timestamp": 3,
        "has_audio": True,
    }
