import asyncio
import json
import pathlib
import sys
from typing import Any, AsyncIterator, Iterable, Optional

import numpy as np
import pytest
from pydantic import SecretStr

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from aura.audio import codec  # noqa: E402
from aura.config import Settings  # noqa: E402
from aura.errors import DeviceError, NetworkError  # noqa: E402
from aura.schemas.chat import ChatCompletionRequest  # noqa: E402

# 0.1 s of 24 kHz 16-bit mono audio
PCM_100MS = b"\x01\x00" * 2400


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def settings(tmp_path: pathlib.Path) -> Settings:
    return Settings(
        openrouter_api_key=SecretStr("test-openrouter"),
        gemini_api_key=SecretStr("test-gemini"),
        state_db_path=tmp_path / "aura_state.db",
        audio_output_enabled=False,
    )


class FakeAudioDevice:
    """Records scheduled buffers against a manually advanced clock."""

    def __init__(self, sample_rate: int = codec.SAMPLE_RATE) -> None:
        self.sample_rate = sample_rate
        self.clock = 0.0
        self.played: list[tuple[float, int]] = []
        self.fail = False
        self.started = False
        self.closed = False

    def now(self) -> float:
        return self.clock

    def play_at(self, samples: np.ndarray, start_time: float) -> None:
        if self.fail:
            raise DeviceError("device unplugged")
        self.played.append((start_time, len(samples)))

    def start(self) -> None:
        self.started = True

    def close(self) -> None:
        self.closed = True


class FakeTextClient:
    """Streams scripted increments, optionally failing after some of them."""

    def __init__(
        self,
        chunks: Iterable[str] = (),
        *,
        fail_after: Optional[int] = None,
    ) -> None:
        self.chunks = list(chunks)
        self.fail_after = fail_after
        self.requests: list[ChatCompletionRequest] = []
        self.closed = False

    async def stream_text(self, request: ChatCompletionRequest) -> AsyncIterator[str]:
        self.requests.append(request)
        for position, chunk in enumerate(self.chunks):
            if self.fail_after is not None and position >= self.fail_after:
                raise NetworkError(503, "upstream unavailable")
            await asyncio.sleep(0)
            yield chunk
        if self.fail_after is not None and self.fail_after >= len(self.chunks):
            raise NetworkError(503, "upstream unavailable")

    async def aclose(self) -> None:
        self.closed = True


class FakeSpeechService:
    """Returns base64 PCM per text; delays and failures are keyed by text."""

    def __init__(
        self,
        *,
        pcm: bytes = PCM_100MS,
        delays: Optional[dict[str, float]] = None,
        failures: Iterable[str] = (),
        payloads: Optional[dict[str, Optional[str]]] = None,
    ) -> None:
        self.pcm = pcm
        self.delays = delays or {}
        self.failures = set(failures)
        self.payloads = payloads or {}
        self.calls: list[str] = []

    async def synthesize(self, text: str) -> Optional[str]:
        self.calls.append(text)
        delay = self.delays.get(text)
        if delay:
            await asyncio.sleep(delay)
        if text in self.failures:
            raise NetworkError(500, "synthesis failed")
        if text in self.payloads:
            return self.payloads[text]
        return codec.encode(self.pcm)


def collect(events: Iterable[dict[str, Any]], name: str) -> list[dict[str, Any]]:
    return [json.loads(event["data"]) for event in events if event["event"] == name]


@pytest.fixture
def fake_device() -> FakeAudioDevice:
    return FakeAudioDevice()
