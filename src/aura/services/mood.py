"""Mood tracker helpers: score labels, follow-up prompt and history summary."""

from __future__ import annotations

from typing import Any, Sequence

from ..schemas.state import MoodEntry

MIN_SCORE = 1
MAX_SCORE = 5

# Indexed by score - 1.
FEELINGS: tuple[str, ...] = ("muito triste", "triste", "neutro", "bem", "excelente")


def validate_score(score: int) -> int:
    if isinstance(score, bool) or not isinstance(score, int):
        raise ValueError("Mood score must be an integer")
    if not MIN_SCORE <= score <= MAX_SCORE:
        raise ValueError(f"Mood score must be between {MIN_SCORE} and {MAX_SCORE}")
    return score


def feeling_for(score: int) -> str:
    return FEELINGS[validate_score(score) - 1]


def follow_up_prompt(score: int) -> str:
    """Sentence that opens a chat turn about the recorded mood."""

    return f"Hoje estou me sentindo {feeling_for(score)}."


def summarize(history: Sequence[MoodEntry], *, window: int = 7) -> dict[str, Any]:
    """Latest entry plus the average over the last ``window`` entries."""

    if not history:
        return {"count": 0, "latest": None, "average": None}

    recent = list(history)[-window:]
    average = sum(entry.score for entry in recent) / len(recent)
    latest = history[-1]
    return {
        "count": len(history),
        "latest": {
            **latest.model_dump(),
            "feeling": feeling_for(latest.score),
        },
        "average": round(average, 2),
    }


__all__ = [
    "FEELINGS",
    "MAX_SCORE",
    "MIN_SCORE",
    "feeling_for",
    "follow_up_prompt",
    "summarize",
    "validate_score",
]
