from fastapi.testclient import TestClient

import aura.app as app_module
from aura.audio.scheduler import PlaybackScheduler
from aura.chat import ConversationOrchestrator
from aura.repository import StateRepository
from conftest import FakeAudioDevice, FakeSpeechService, FakeTextClient


def test_health_reports_models(settings, monkeypatch) -> None:
    monkeypatch.setattr(app_module, "_configure_logging", lambda: None)
    device = FakeAudioDevice()
    orchestrator = ConversationOrchestrator(
        settings,
        repository=StateRepository(settings.state_db_path),
        text_client=FakeTextClient(),
        speech_service=FakeSpeechService(),
        scheduler=PlaybackScheduler(device),
    )
    app = app_module.create_app(settings, orchestrator)

    with TestClient(app) as client:
        body = client.get("/health").json()
        assert device.started is True

    assert body == {
        "status": "ok",
        "chat_model": settings.chat_model,
        "tts_model": settings.tts_model,
        "speech_available": True,
    }
    assert device.closed is True
