"""Mood tracker API routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from ..schemas.chat import MoodRequest
from ..services import mood
from .chat import claim_turn, get_orchestrator, turn_response

router = APIRouter(prefix="/api/mood", tags=["mood"])


@router.get("")
async def get_mood_history(request: Request) -> dict[str, Any]:
    history = get_orchestrator(request).state.mood_history
    return {
        "entries": [entry.model_dump() for entry in history],
        "summary": mood.summarize(history),
    }


@router.post("", response_model=None, status_code=status.HTTP_201_CREATED)
async def record_mood(
    payload: MoodRequest, request: Request
) -> JSONResponse | EventSourceResponse:
    """Record a mood entry.

    With ``follow_up`` set, the follow-up sentence is sent as a user message
    and the resulting turn is streamed back instead of the JSON entry.
    """

    orchestrator = get_orchestrator(request)
    try:
        mood.validate_score(payload.score)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    # the turn is claimed first so a busy orchestrator leaves no entry behind
    events = None
    if payload.follow_up:
        events = await claim_turn(orchestrator, mood.follow_up_prompt(payload.score))

    try:
        entry, prompt = await orchestrator.record_mood(payload.score, payload.note)
    except Exception:
        if events is not None:
            await events.aclose()
        raise

    if events is not None:
        return turn_response(events)

    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={
            "entry": entry.model_dump(),
            "feeling": mood.feeling_for(entry.score),
            "prompt": prompt,
        },
    )


__all__ = ["router"]
