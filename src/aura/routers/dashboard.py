"""Dashboard and breathing exercise routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request, status

from ..services import exercises, mood
from .chat import get_orchestrator

router = APIRouter(prefix="/api", tags=["dashboard"])


@router.get("/dashboard")
async def dashboard(request: Request) -> dict[str, Any]:
    """Greeting data for the home screen."""

    orchestrator = get_orchestrator(request)
    state = orchestrator.state
    return {
        "name": state.name,
        "mood": mood.summarize(state.mood_history),
        "message_count": len(state.chat_history),
        "tip": exercises.DAILY_TIP,
    }


@router.get("/exercises/breathing")
async def breathing(
    elapsed: float | None = Query(default=None, description="Seconds since the exercise started"),
) -> dict[str, Any]:
    payload = exercises.breathing_exercise()
    if elapsed is not None:
        try:
            phase, seconds_left = exercises.breathing_phase_at(elapsed)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        payload["current"] = {"phase": phase, "seconds_left": seconds_left}
    return payload


__all__ = ["router"]
