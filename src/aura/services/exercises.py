"""Guided breathing cycle and the dashboard's daily reflection."""

from __future__ import annotations

from typing import Any

# (phase label, seconds); the cycle repeats forever.
BREATHING_CYCLE: tuple[tuple[str, int], ...] = (
    ("Inale", 4),
    ("Segure", 4),
    ("Exale", 4),
)

BREATHING_GUIDANCE = "Foque na sua respiração. Deixe as preocupações passarem como nuvens."

DAILY_TIP = (
    "Tire 5 minutos hoje para listar três coisas pelas quais você é grato. "
    "A gratidão muda nossa perspectiva sobre o mundo."
)


def cycle_length() -> int:
    return sum(seconds for _, seconds in BREATHING_CYCLE)


def breathing_phase_at(elapsed: float) -> tuple[str, int]:
    """Return ``(phase, seconds_left)`` ``elapsed`` seconds into the exercise.

    ``seconds_left`` counts down from the phase length to 1, like the
    on-screen counter.
    """

    if elapsed < 0:
        raise ValueError("elapsed must not be negative")
    position = int(elapsed) % cycle_length()
    for phase, seconds in BREATHING_CYCLE:
        if position < seconds:
            return phase, seconds - position
        position -= seconds
    raise AssertionError("unreachable")  # pragma: no cover


def breathing_exercise() -> dict[str, Any]:
    return {
        "phases": [
            {"phase": phase, "seconds": seconds} for phase, seconds in BREATHING_CYCLE
        ],
        "cycle_seconds": cycle_length(),
        "guidance": BREATHING_GUIDANCE,
    }


__all__ = [
    "BREATHING_CYCLE",
    "DAILY_TIP",
    "breathing_exercise",
    "breathing_phase_at",
    "cycle_length",
]
