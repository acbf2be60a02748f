"""Chat streaming, replay/download and profile API routes."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request, Response, status
from sse_starlette.sse import EventSourceResponse
from starlette.background import BackgroundTask

from ..chat import ConversationOrchestrator, TurnStream
from ..errors import (
    DecodeError,
    DeviceError,
    MessageNotFoundError,
    SpeechUnavailableError,
    TurnInProgressError,
)
from ..schemas.chat import AudioSettingsUpdate, ProfileUpdate, SendMessageRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])


def get_orchestrator(request: Request) -> ConversationOrchestrator:
    return request.app.state.conversation_orchestrator


async def claim_turn(orchestrator: ConversationOrchestrator, content: str) -> TurnStream:
    """Claim the turn, reporting a busy orchestrator as 409 and blank text as 400."""

    try:
        return await orchestrator.send_message(content)
    except TurnInProgressError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


def turn_response(events: TurnStream) -> EventSourceResponse:
    """Wrap a claimed turn in an SSE response that always closes it."""

    async def event_publisher():
        try:
            async for event in events:
                yield event
        except Exception as exc:  # pragma: no cover
            logger.error("Turn stream failed: %s", exc, exc_info=True)
            yield {"event": "error", "data": json.dumps({"message": str(exc)})}
            yield {"event": "done", "data": json.dumps({"status": "error"})}
        finally:
            await events.aclose()

    # the background task covers responses torn down before the publisher runs
    return EventSourceResponse(event_publisher(), background=BackgroundTask(events.aclose))


async def stream_turn(orchestrator: ConversationOrchestrator, content: str) -> EventSourceResponse:
    """Start a turn and wrap its events in an SSE response.

    The turn is claimed before the response is built so a busy
    orchestrator is reported as 409 rather than inside the stream.
    """

    return turn_response(await claim_turn(orchestrator, content))


def _raise_for_audio_error(exc: Exception) -> None:
    if isinstance(exc, MessageNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, SpeechUnavailableError):
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    if isinstance(exc, DeviceError):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
        ) from exc
    if isinstance(exc, DecodeError):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Stored audio is corrupted: {exc}",
        ) from exc
    if isinstance(exc, ValueError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    raise exc


@router.post("/chat/stream", response_model=None, status_code=200)
async def stream_chat(payload: SendMessageRequest, request: Request) -> EventSourceResponse:
    """Send a user message and stream the assistant turn as Server-Sent Events."""

    return await stream_turn(get_orchestrator(request), payload.content)


@router.get("/chat/status")
async def chat_status(request: Request) -> dict[str, Any]:
    return get_orchestrator(request).status()


@router.get("/chat/history")
async def chat_history(request: Request) -> dict[str, Any]:
    orchestrator = get_orchestrator(request)
    return {"name": orchestrator.state.name, "messages": orchestrator.history()}


@router.post("/chat/messages/{timestamp}/replay")
async def replay_message(timestamp: int, request: Request) -> dict[str, Any]:
    """Play the stored full-turn audio of an assistant message again."""

    try:
        placement = await get_orchestrator(request).replay(timestamp)
    except (
        MessageNotFoundError,
        SpeechUnavailableError,
        DeviceError,
        DecodeError,
        ValueError,
    ) as exc:
        _raise_for_audio_error(exc)
    return {
        "timestamp": timestamp,
        "start": placement.start,
        "duration": placement.duration,
    }


@router.get("/chat/messages/{timestamp}/audio")
async def download_message_audio(timestamp: int, request: Request) -> Response:
    """Return the full-turn audio of an assistant message as a WAV file."""

    try:
        filename, wav = await get_orchestrator(request).download(timestamp)
    except (MessageNotFoundError, SpeechUnavailableError, DecodeError, ValueError) as exc:
        _raise_for_audio_error(exc)
    return Response(
        content=wav,
        media_type="audio/wav",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.put("/audio")
async def update_audio_settings(
    payload: AudioSettingsUpdate, request: Request
) -> dict[str, bool]:
    orchestrator = get_orchestrator(request)
    orchestrator.set_muted(payload.muted)
    return {"muted": orchestrator.muted}


@router.get("/profile")
async def get_profile(request: Request) -> dict[str, str]:
    return {"name": get_orchestrator(request).state.name}


@router.put("/profile")
async def update_profile(payload: ProfileUpdate, request: Request) -> dict[str, str]:
    try:
        state = await get_orchestrator(request).update_profile(payload.name)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"name": state.name}


__all__ = ["claim_turn", "get_orchestrator", "router", "stream_turn", "turn_response"]
