"""Reader for ``logging_settings.conf``, the ``key = value`` logging file."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

LEVELS: dict[str, int | None] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "off": None,
}

DEFAULT_RETENTION_HOURS = 48


@dataclass(frozen=True)
class LoggingSettings:
    """Handler levels (None means the handler is off) and file retention."""

    terminal_level: int | None = logging.INFO
    app_level: int | None = logging.INFO
    retention_hours: int = DEFAULT_RETENTION_HOURS

    @property
    def root_level(self) -> int:
        """Lowest enabled level, so every handler receives what it needs."""

        enabled = [
            level for level in (self.terminal_level, self.app_level) if level is not None
        ]
        return min(enabled, default=logging.WARNING)


def _read_pairs(path: Path) -> dict[str, str]:
    pairs: dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        pairs[key.strip().lower()] = value.strip()
    return pairs


def _level(value: str | None) -> int | None:
    if value is None:
        return logging.INFO
    return LEVELS.get(value.lower(), logging.INFO)


def _retention(value: str | None) -> int:
    if value is None:
        return DEFAULT_RETENTION_HOURS
    try:
        return max(0, int(value))
    except ValueError:
        return DEFAULT_RETENTION_HOURS


def parse_logging_settings(path: Path) -> LoggingSettings:
    """Parse the logging settings file; a missing file means defaults.

    Keys: ``terminal`` and ``app`` take debug, info, warning, error or off;
    ``retention_hours`` bounds the age of files under ``logs/app``. Unknown
    levels fall back to info, unknown keys are ignored.
    """

    if not path.exists():
        return LoggingSettings()

    pairs = _read_pairs(path)
    return LoggingSettings(
        terminal_level=_level(pairs.get("terminal")),
        app_level=_level(pairs.get("app")),
        retention_hours=_retention(pairs.get("retention_hours")),
    )


__all__ = ["DEFAULT_RETENTION_HOURS", "LEVELS", "LoggingSettings", "parse_logging_settings"]
