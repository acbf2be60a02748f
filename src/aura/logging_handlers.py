"""Custom logging handler utilities."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Iterator, Optional
from zoneinfo import ZoneInfo

_BRASILIA = ZoneInfo("America/Sao_Paulo")


class DateStampedFileHandler(logging.FileHandler):
    """File handler that writes one file per process start.

    Files land in ``<directory>/<YYYY-MM-DD>/<prefix>_<YYYY-MM-DD_HH-MM-SS>.log``
    using Brasília local time for the folder and file names.
    """

    def __init__(
        self,
        *,
        directory: str | Path = "logs/app",
        prefix: str = "aura",
        encoding: str | None = "utf-8",
        mode: str = "a",
        delay: bool = False,
        errors: Optional[str] = None,
        current_time: datetime | None = None,
    ) -> None:
        local_time = (current_time or datetime.now(timezone.utc)).astimezone(_BRASILIA)
        date_folder = local_time.strftime("%Y-%m-%d")
        human_time = local_time.strftime("%Y-%m-%d_%H-%M-%S")
        log_path = (Path(directory) / date_folder / f"{prefix}_{human_time}.log").resolve()

        log_path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(
            log_path,
            mode=mode,
            encoding=encoding,
            delay=delay,
            errors=errors,
        )


def _expired_logs(directory: Path, cutoff: float) -> Iterator[Path]:
    for log_file in directory.rglob("*.log"):
        try:
            if log_file.stat().st_mtime < cutoff:
                yield log_file
        except FileNotFoundError:
            continue


def cleanup_old_logs(
    log_directories: Iterable[str | Path],
    retention_hours: int,
    logger: logging.Logger | None = None,
) -> tuple[int, int]:
    """Delete ``*.log`` files older than ``retention_hours`` (0 disables).

    Date folders left empty are removed as well. Returns
    ``(files_deleted, errors)``.
    """
    if retention_hours <= 0:
        return (0, 0)

    log = logger or logging.getLogger(__name__)
    cutoff = (datetime.now(timezone.utc) - timedelta(hours=retention_hours)).timestamp()
    deleted = 0
    errors = 0

    for directory in map(Path, log_directories):
        if not directory.is_dir():
            continue

        for log_file in list(_expired_logs(directory, cutoff)):
            try:
                log_file.unlink()
            except OSError as exc:
                errors += 1
                log.warning("Could not delete log file %s: %s", log_file, exc)
            else:
                deleted += 1
                log.debug("Deleted expired log file %s", log_file)

        for day_dir in [path for path in directory.iterdir() if path.is_dir()]:
            if any(day_dir.iterdir()):
                continue
            try:
                day_dir.rmdir()
            except OSError as exc:
                errors += 1
                log.warning("Could not remove empty log folder %s: %s", day_dir, exc)

    return (deleted, errors)


__all__ = ["DateStampedFileHandler", "cleanup_old_logs"]
