from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import Any, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from aura.audio.scheduler import PlaybackScheduler
from aura.chat import ConversationOrchestrator, TurnState
from aura.repository import StateRepository
from aura.routers.chat import router as chat_router
from aura.routers.dashboard import router as dashboard_router
from aura.routers.mood import router as mood_router
from conftest import FakeAudioDevice, FakeSpeechService, FakeTextClient

INCREMENTS = ["Entendo você, ", "de verdade. ", "Conte mais sobre isso."]


def parse_sse(body: str) -> list[dict[str, Any]]:
    events: list[dict[str, Any]] = []
    current: dict[str, str] = {}
    for line in body.splitlines():
        if not line:
            if current:
                events.append(
                    {"event": current.get("event", "message"), "data": json.loads(current["data"])}
                )
                current = {}
            continue
        field, _, value = line.partition(":")
        if field in ("event", "data"):
            current[field] = value.lstrip(" ")
    if current:
        events.append({"event": current.get("event", "message"), "data": json.loads(current["data"])})
    return events


def make_app(orchestrator: ConversationOrchestrator) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await orchestrator.initialize()
        yield
        await orchestrator.shutdown()

    app = FastAPI(lifespan=lifespan)
    app.state.conversation_orchestrator = orchestrator
    app.include_router(chat_router)
    app.include_router(mood_router)
    app.include_router(dashboard_router)
    return app


@pytest.fixture
def speech() -> FakeSpeechService:
    return FakeSpeechService()


@pytest.fixture
def client(settings, speech) -> Iterator[TestClient]:
    orchestrator = ConversationOrchestrator(
        settings,
        repository=StateRepository(settings.state_db_path),
        text_client=FakeTextClient(INCREMENTS),
        speech_service=speech,
        scheduler=PlaybackScheduler(FakeAudioDevice()),
    )
    with TestClient(make_app(orchestrator)) as test_client:
        yield test_client


def test_stream_endpoint_emits_turn_events(client: TestClient) -> None:
    response = client.post("/api/chat/stream", json={"content": "Estou cansada."})

    assert response.status_code == 200
    events = parse_sse(response.text)
    names = [event["event"] for event in events]
    assert names[0] == "turn"
    assert names[-2:] == ["message", "done"]
    assert events[-2]["data"]["content"] == "".join(INCREMENTS)
    assert events[-2]["data"]["has_audio"] is True

    history = client.get("/api/chat/history").json()
    assert [message["role"] for message in history["messages"]] == ["user", "assistant"]
    assert "audioSegment" not in history["messages"][1]


def test_stream_rejects_blank_content(client: TestClient) -> None:
    response = client.post("/api/chat/stream", json={"content": "   "})
    assert response.status_code == 400


def test_status_reports_idle(client: TestClient) -> None:
    assert client.get("/api/chat/status").json() == {
        "state": "idle",
        "is_typing": False,
        "streaming_text": "",
        "muted": False,
    }


def test_audio_settings_toggle_mute(client: TestClient) -> None:
    assert client.put("/api/audio", json={"muted": True}).json() == {"muted": True}
    assert client.get("/api/chat/status").json()["muted"] is True


def test_replay_and_download(client: TestClient, speech: FakeSpeechService) -> None:
    client.post("/api/chat/stream", json={"content": "Oi Aura"})
    messages = client.get("/api/chat/history").json()["messages"]
    user_ts = messages[0]["timestamp"]
    assistant_ts = messages[1]["timestamp"]
    calls_before = len(speech.calls)

    replay = client.post(f"/api/chat/messages/{assistant_ts}/replay")
    assert replay.status_code == 200
    assert replay.json()["duration"] == pytest.approx(0.1)

    download = client.get(f"/api/chat/messages/{assistant_ts}/audio")
    assert download.status_code == 200
    assert download.headers["content-type"] == "audio/wav"
    assert f"conselho_aura_{assistant_ts}.wav" in download.headers["content-disposition"]
    assert download.content[:4] == b"RIFF"
    assert len(speech.calls) == calls_before

    assert client.post(f"/api/chat/messages/{user_ts}/replay").status_code == 400
    assert client.post("/api/chat/messages/1/replay").status_code == 404


def test_download_reports_unavailable_speech(client: TestClient, speech: FakeSpeechService) -> None:
    speech.failures.add("".join(INCREMENTS))
    client.post("/api/chat/stream", json={"content": "Oi Aura"})
    assistant_ts = client.get("/api/chat/history").json()["messages"][1]["timestamp"]

    response = client.get(f"/api/chat/messages/{assistant_ts}/audio")

    assert response.status_code == 502


def test_profile_roundtrip(client: TestClient) -> None:
    assert client.get("/api/profile").json() == {"name": "Amiga"}
    assert client.put("/api/profile", json={"name": "Lívia"}).json() == {"name": "Lívia"}
    assert client.get("/api/profile").json() == {"name": "Lívia"}


def test_mood_entry_and_history(client: TestClient) -> None:
    response = client.post("/api/mood", json={"score": 4, "note": "dormi bem"})

    assert response.status_code == 201
    body = response.json()
    assert body["prompt"] == "Hoje estou me sentindo bem."
    assert body["feeling"] == "bem"
    assert body["entry"]["score"] == 4

    history = client.get("/api/mood").json()
    assert len(history["entries"]) == 1
    assert history["summary"]["latest"]["feeling"] == "bem"


def test_mood_rejects_out_of_range_score(client: TestClient) -> None:
    assert client.post("/api/mood", json={"score": 9}).status_code == 422


def test_mood_follow_up_streams_turn(client: TestClient) -> None:
    response = client.post("/api/mood", json={"score": 1, "follow_up": True})

    events = parse_sse(response.text)
    assert events[0]["event"] == "turn"
    assert events[0]["data"]["content"] == "Hoje estou me sentindo muito triste."


def test_stream_while_busy_is_conflict_until_released(client: TestClient) -> None:
    orchestrator = client.app.state.conversation_orchestrator
    events = client.portal.call(orchestrator.send_message, "Oi")
    try:
        busy = client.post("/api/chat/stream", json={"content": "De novo"})
    finally:
        client.portal.call(events.aclose)

    assert busy.status_code == 409
    assert orchestrator.turn_state is TurnState.IDLE
    assert client.post("/api/chat/stream", json={"content": "De novo"}).status_code == 200


def test_mood_follow_up_while_busy_records_nothing(client: TestClient) -> None:
    orchestrator = client.app.state.conversation_orchestrator
    events = client.portal.call(orchestrator.send_message, "Oi")
    try:
        response = client.post("/api/mood", json={"score": 2, "follow_up": True})
    finally:
        client.portal.call(events.aclose)

    assert response.status_code == 409
    assert client.get("/api/mood").json()["entries"] == []



def test_dashboard_summarizes_state(client: TestClient) -> None:
    client.post("/api/mood", json={"score": 5})

    body = client.get("/api/dashboard").json()

    assert body["name"] == "Amiga"
    assert body["mood"]["latest"]["feeling"] == "excelente"
    assert body["message_count"] == 0
    assert body["tip"].startswith("Tire 5 minutos")


def test_breathing_exercise_current_phase(client: TestClient) -> None:
    body = client.get("/api/exercises/breathing", params={"elapsed": 5}).json()

    assert body["current"] == {"phase": "Segure", "seconds_left": 3}
    assert client.get("/api/exercises/breathing", params={"elapsed": -2}).status_code == 400
