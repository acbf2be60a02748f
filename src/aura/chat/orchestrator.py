"""Conversation orchestrator coordinating text streaming, speech and state."""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import aclosing
from enum import Enum
from pathlib import Path
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncGenerator,
    AsyncIterator,
    Callable,
    Optional,
    Protocol,
)

from ..audio import codec
from ..audio.device import AudioOutputDevice, SilentOutput, SoundDeviceOutput
from ..audio.scheduler import PlaybackScheduler, ScheduledSegment
from ..config import PROJECT_ROOT
from ..errors import (
    DecodeError,
    DeviceError,
    MessageNotFoundError,
    NetworkError,
    SpeechUnavailableError,
    TurnInProgressError,
)
from ..openrouter import OpenRouterClient
from ..repository import StateRepository
from ..schemas.chat import ChatCompletionRequest, ChatMessage
from ..schemas.state import ConversationState, Message, MoodEntry
from ..services import mood
from ..services.speech_service import SpeechService
from ..services.tts import Segment, SentenceSegmenter, SpeechPipeline

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)

SseEvent = dict[str, str]
DOWNLOAD_FILENAME_TEMPLATE = "conselho_aura_{timestamp}.wav"


class TurnState(str, Enum):
    IDLE = "idle"
    AWAITING_STREAM_START = "awaiting_stream_start"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    ERROR_ABORT = "error_abort"


class TextStreamClient(Protocol):
    def stream_text(self, request: ChatCompletionRequest) -> AsyncIterator[str]: ...

    async def aclose(self) -> None: ...


def _event(name: str, payload: Any) -> SseEvent:
    return {"event": name, "data": json.dumps(payload, ensure_ascii=False)}


def build_output_device(settings: Settings) -> AudioOutputDevice:
    """Return the speaker output, or a silent clock when output is disabled."""

    if not settings.audio_output_enabled:
        logger.info("Audio output disabled; speech will be synthesized but not played")
        return SilentOutput()
    return SoundDeviceOutput(device=settings.audio_device_selector)


class TurnStream:
    """Events of one claimed turn.

    Closing the stream always gives the turn back, also when it is closed
    before the first event was requested.
    """

    def __init__(self, events: AsyncGenerator[SseEvent, None], release: Callable[[], None]):
        self._events = events
        self._release = release
        self._started = False
        self._closed = False

    def __aiter__(self) -> TurnStream:
        return self

    async def __anext__(self) -> SseEvent:
        self._started = True
        return await self._events.__anext__()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._events.aclose()
        if not self._started:
            self._release()


class ConversationOrchestrator:
    """High-level coordination for the single Aura conversation.

    Owns the in-memory `ConversationState`, runs one turn at a time and
    keeps the repository in sync after every mutation.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        repository: Optional[StateRepository] = None,
        text_client: Optional[TextStreamClient] = None,
        speech_service: Optional[SpeechService] = None,
        scheduler: Optional[PlaybackScheduler] = None,
    ):
        db_path = Path(settings.state_db_path)
        if not db_path.is_absolute():
            db_path = PROJECT_ROOT / db_path

        self._settings = settings
        self._repo = repository or StateRepository(
            db_path, default_name=settings.display_name
        )
        self._text_client = text_client or OpenRouterClient(settings)
        self._speech = speech_service or SpeechService(settings)
        self._scheduler = scheduler or PlaybackScheduler(build_output_device(settings))

        self._state: Optional[ConversationState] = None
        self._turn_state = TurnState.IDLE
        self._streaming_text = ""
        self._muted = settings.start_muted
        self._pipeline: Optional[SpeechPipeline] = None
        self._init_lock = asyncio.Lock()
        self._turn_lock = asyncio.Lock()
        self._ready = asyncio.Event()

    async def initialize(self) -> None:
        """Open the store, load state and start the output device once."""

        async with self._init_lock:
            if self._ready.is_set():
                return

            await self._repo.initialize()
            self._state = await self._repo.load()
            try:
                self._scheduler.device.start()
            except DeviceError as exc:
                logger.error("Audio output unavailable, continuing without speakers: %s", exc)
            self._ready.set()
            logger.info(
                "Conversation orchestrator ready: %d message(s) in history",
                len(self._state.chat_history),
            )

    async def shutdown(self) -> None:
        """Clean up held resources."""

        if self._pipeline is not None:
            await self._pipeline.abort()

        try:
            await asyncio.wait_for(self._text_client.aclose(), timeout=2.0)
        except (asyncio.TimeoutError, Exception) as exc:
            logger.warning("Error closing text client: %s", exc)

        try:
            await asyncio.wait_for(SpeechService.close_http_client(), timeout=2.0)
        except (asyncio.TimeoutError, Exception) as exc:
            logger.warning("Error closing speech client: %s", exc)

        try:
            self._scheduler.device.close()
        except DeviceError as exc:
            logger.warning("Error closing audio device: %s", exc)

        try:
            await asyncio.wait_for(self._repo.close(), timeout=2.0)
        except (asyncio.TimeoutError, Exception) as exc:
            logger.warning("Error closing repository: %s", exc)

        self._ready.clear()

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConversationState:
        if self._state is None:
            raise RuntimeError("Orchestrator is not initialized")
        return self._state

    @property
    def turn_state(self) -> TurnState:
        return self._turn_state

    @property
    def is_typing(self) -> bool:
        return self._turn_state in (
            TurnState.AWAITING_STREAM_START,
            TurnState.STREAMING,
            TurnState.FINALIZING,
        )

    @property
    def streaming_text(self) -> str:
        return self._streaming_text

    @property
    def muted(self) -> bool:
        return self._muted

    @property
    def scheduler(self) -> PlaybackScheduler:
        return self._scheduler

    def set_muted(self, muted: bool) -> None:
        self._muted = bool(muted)
        logger.info("Live speech %s", "muted" if self._muted else "unmuted")

    def status(self) -> dict[str, Any]:
        return {
            "state": self._turn_state.value,
            "is_typing": self.is_typing,
            "streaming_text": self._streaming_text,
            "muted": self._muted,
        }

    def history(self) -> list[dict[str, Any]]:
        return [message.summary() for message in self.state.chat_history]

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def send_message(self, content: str) -> TurnStream:
        """Claim the turn and return the stream that runs it.

        Raises `TurnInProgressError` right away when another turn is active,
        so callers can reject the request before streaming starts. The claim
        is held until the returned stream finishes or is closed.
        """

        if self._turn_lock.locked():
            raise TurnInProgressError("A response is still being generated")
        text = content.strip()
        if not text:
            raise ValueError("Message content must not be empty")
        # an unlocked lock is acquired without suspending
        await self._turn_lock.acquire()
        self._turn_state = TurnState.AWAITING_STREAM_START
        return TurnStream(self._run_turn(text), self._release_turn)

    def _release_turn(self) -> None:
        self._pipeline = None
        self._streaming_text = ""
        self._turn_state = TurnState.IDLE
        if self._turn_lock.locked():
            self._turn_lock.release()

    def _build_request(self, prior: list[Message], content: str) -> ChatCompletionRequest:
        messages = [ChatMessage(role="system", content=self._settings.system_prompt)]
        messages.extend(
            ChatMessage(role=message.role, content=message.content) for message in prior
        )
        messages.append(ChatMessage(role="user", content=content))
        return ChatCompletionRequest(
            model=self._settings.chat_model,
            messages=messages,
            temperature=self._settings.temperature,
            top_p=self._settings.top_p,
        )

    def _segment_event(self, segment: Segment, spoken: bool) -> SseEvent:
        return _event(
            "segment",
            {
                "index": segment.index,
                "text": segment.text,
                "final": segment.final,
                "spoken": spoken,
            },
        )

    def _dispatch_segment(self, pipeline: SpeechPipeline, segment: Segment) -> SseEvent:
        spoken = False
        if not self._muted:
            spoken = pipeline.submit(segment)
        return self._segment_event(segment, spoken)

    async def _run_turn(self, content: str) -> AsyncGenerator[SseEvent, None]:
        pipeline: Optional[SpeechPipeline] = None
        try:
            state = self.state
            prior = list(state.chat_history)
            user_message = state.append_message("user", content)
            await self._repo.save(state)
            yield _event("turn", user_message.summary())

            self._scheduler.reset_cursor()
            segmenter = SentenceSegmenter(self._settings.segment_min_chars)
            pipeline = SpeechPipeline(self._speech, self._scheduler)
            self._pipeline = pipeline
            pipeline.start()
            request = self._build_request(prior, content)
            full_text = ""

            try:
                async with aclosing(self._text_client.stream_text(request)) as stream:
                    async for delta in stream:
                        self._turn_state = TurnState.STREAMING
                        full_text += delta
                        self._streaming_text = full_text
                        yield _event("delta", {"delta": delta, "text": full_text})
                        for segment in segmenter.consume(delta):
                            yield self._dispatch_segment(pipeline, segment)
                if not full_text.strip():
                    raise NetworkError(502, "Model returned an empty response")
            except Exception as exc:
                self._turn_state = TurnState.ERROR_ABORT
                if isinstance(exc, NetworkError):
                    logger.warning("Turn aborted: %s", exc)
                else:
                    logger.error("Turn aborted by unexpected error: %s", exc, exc_info=True)
                await pipeline.abort()
                self._streaming_text = ""
                self._turn_state = TurnState.IDLE
                detail = exc.detail if isinstance(exc, NetworkError) else str(exc)
                yield _event("error", {"message": "Falha ao gerar resposta", "detail": detail})
                yield _event("done", {"status": "error"})
                return

            self._turn_state = TurnState.FINALIZING
            tail = segmenter.flush()
            if tail is not None:
                yield self._dispatch_segment(pipeline, tail)

            full_audio, _ = await asyncio.gather(
                self._synthesize_full_text(full_text),
                pipeline.drain(),
            )

            assistant = state.append_message(
                "assistant", full_text, audio_segment=full_audio
            )
            await self._repo.save(state)
            logger.info(
                "Turn complete: %d chars, %d segment(s) played, %d skipped, full audio %s",
                len(full_text),
                len(pipeline.scheduled),
                len(pipeline.skipped),
                "attached" if full_audio else "missing",
            )
            self._streaming_text = ""
            self._turn_state = TurnState.IDLE
            yield _event("message", assistant.summary())
            yield _event("done", {"status": "ok"})
        finally:
            if pipeline is not None and not pipeline.finished:
                await pipeline.abort()
            self._release_turn()

    async def _synthesize_full_text(self, text: str) -> Optional[str]:
        """Synthesize the whole reply for replay/download; None on failure."""

        try:
            payload = await self._speech.synthesize(text)
        except NetworkError as exc:
            logger.warning("Full-turn speech synthesis failed: %s", exc)
            return None
        if payload is None:
            return None
        try:
            codec.decode(payload)
        except DecodeError as exc:
            logger.warning("Full-turn speech payload is not valid audio: %s", exc)
            return None
        return payload

    # ------------------------------------------------------------------
    # Replay and download
    # ------------------------------------------------------------------

    def _require_assistant_message(self, timestamp: int) -> Message:
        message = self.state.find_message(timestamp)
        if message is None:
            raise MessageNotFoundError(timestamp)
        if message.role != "assistant":
            raise ValueError("Only assistant messages have audio")
        return message

    async def _ensure_audio(self, message: Message) -> bytes:
        """Return the message's PCM, synthesizing and attaching it if absent."""

        if message.audio_segment:
            return codec.decode(message.audio_segment)

        logger.info("Synthesizing audio on demand for message %d", message.timestamp)
        try:
            payload = await self._speech.synthesize(message.content)
        except NetworkError as exc:
            raise SpeechUnavailableError(f"Speech synthesis failed: {exc}") from exc
        if payload is None:
            raise SpeechUnavailableError("Speech service returned no audio")
        try:
            pcm = codec.decode(payload)
        except DecodeError as exc:
            raise SpeechUnavailableError(f"Speech service returned invalid audio: {exc}") from exc

        self.state.attach_audio(message.timestamp, payload)
        await self._repo.save(self.state)
        return pcm

    async def replay(self, timestamp: int) -> ScheduledSegment:
        """Play the full-turn audio of an assistant message from the start."""

        message = self._require_assistant_message(timestamp)
        pcm = await self._ensure_audio(message)
        self._scheduler.reset_cursor()
        return self._scheduler.enqueue(pcm)

    async def download(self, timestamp: int) -> tuple[str, bytes]:
        """Return ``(filename, wav_bytes)`` for an assistant message."""

        message = self._require_assistant_message(timestamp)
        pcm = await self._ensure_audio(message)
        filename = DOWNLOAD_FILENAME_TEMPLATE.format(timestamp=message.timestamp)
        return filename, codec.wrap_as_container(pcm)

    # ------------------------------------------------------------------
    # Mood and profile
    # ------------------------------------------------------------------

    async def record_mood(
        self, score: int, note: Optional[str] = None
    ) -> tuple[MoodEntry, str]:
        """Append a mood entry and return it with its follow-up prompt."""

        mood.validate_score(score)
        entry = self.state.append_mood(score, note=note)
        await self._repo.save(self.state)
        logger.info("Recorded mood %d (%s)", score, mood.feeling_for(score))
        return entry, mood.follow_up_prompt(score)

    async def update_profile(self, name: str) -> ConversationState:
        cleaned = name.strip()
        if not cleaned:
            raise ValueError("Name must not be empty")
        self.state.name = cleaned
        await self._repo.save(self.state)
        return self.state


__all__ = [
    "ConversationOrchestrator",
    "DOWNLOAD_FILENAME_TEMPLATE",
    "SseEvent",
    "TurnState",
    "TurnStream",
    "build_output_device",
]
