"""Gapless scheduling of speech segments on an output device."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

import numpy as np

from .codec import SAMPLE_RATE
from .device import AudioOutputDevice

logger = logging.getLogger(__name__)


@dataclass
class PlaybackCursor:
    """Scheduled end time of the most recently enqueued segment."""

    next_free_time: float = 0.0


@dataclass(frozen=True)
class ScheduledSegment:
    """Placement of one enqueued buffer on the device timeline."""

    start: float
    duration: float

    @property
    def end(self) -> float:
        return self.start + self.duration


def pcm_to_samples(pcm: bytes) -> np.ndarray:
    """Convert little-endian 16-bit PCM into float32 samples in [-1, 1)."""

    if len(pcm) % 2:
        logger.warning("Dropping 1 byte from end of PCM payload to keep 16-bit alignment")
        pcm = pcm[:-1]
    int16 = np.frombuffer(pcm, dtype="<i2")
    return int16.astype(np.float32) / 32768.0


class PlaybackScheduler:
    """Chain independently synthesized segments into one continuous utterance.

    Each enqueue starts at ``max(cursor, device.now())`` and pushes the
    cursor to the end of the new buffer, so segments never overlap and
    segments that are already available play back-to-back.
    """

    def __init__(self, device: AudioOutputDevice, sample_rate: int = SAMPLE_RATE):
        self._device = device
        self._sample_rate = sample_rate
        self._cursor = PlaybackCursor()
        self._lock = threading.Lock()

    @property
    def device(self) -> AudioOutputDevice:
        return self._device

    @property
    def cursor(self) -> PlaybackCursor:
        return self._cursor

    def reset_cursor(self) -> None:
        """Start a new utterance from the device's current time."""

        with self._lock:
            self._cursor.next_free_time = self._device.now()

    def enqueue(self, pcm: bytes) -> ScheduledSegment:
        """Schedule raw PCM right after the previously enqueued segment.

        Raises `DeviceError` if the device rejects the buffer; the cursor is
        left untouched in that case.
        """

        samples = pcm_to_samples(pcm)
        duration = len(samples) / self._sample_rate

        with self._lock:
            start = max(self._cursor.next_free_time, self._device.now())
            if samples.size:
                self._device.play_at(samples, start)
                self._cursor.next_free_time = start + duration

        logger.debug("Scheduled %.2fs of speech at %.3f", duration, start)
        return ScheduledSegment(start=start, duration=duration)


__all__ = ["PlaybackCursor", "PlaybackScheduler", "ScheduledSegment", "pcm_to_samples"]
