"""Audio output devices addressed by absolute start times."""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import numpy as np

from ..errors import DeviceError
from .codec import SAMPLE_RATE

logger = logging.getLogger(__name__)


class AudioOutputDevice(Protocol):
    """Output device with its own clock, in seconds since the device started."""

    sample_rate: int

    def now(self) -> float: ...

    def play_at(self, samples: np.ndarray, start_time: float) -> None: ...

    def start(self) -> None: ...

    def close(self) -> None: ...


@dataclass
class _PendingBuffer:
    start_frame: int
    samples: np.ndarray

    @property
    def end_frame(self) -> int:
        return self.start_frame + len(self.samples)


class SoundDeviceOutput:
    """Speaker output backed by a PortAudio stream.

    The stream callback mixes every pending buffer into the block that
    overlaps its start frame, so buffers play at sample-accurate positions
    on the device clock. ``now()`` is the number of rendered frames divided
    by the sample rate.
    """

    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        device: Optional[int | str] = None,
    ):
        self.sample_rate = sample_rate
        self.device = device
        self._lock = threading.Lock()
        self._pending: list[_PendingBuffer] = []
        self._frames_rendered = 0
        self._stream: Any = None

    def _audio_callback(self, outdata, frames, time_info, status):
        """Callback for audio output"""
        if status:
            logger.warning("Output status: %s", status)

        outdata.fill(0)
        with self._lock:
            block_start = self._frames_rendered
            block_end = block_start + frames
            remaining: list[_PendingBuffer] = []
            for item in self._pending:
                if item.start_frame < block_end and item.end_frame > block_start:
                    src_from = max(block_start - item.start_frame, 0)
                    dst_from = max(item.start_frame - block_start, 0)
                    count = min(len(item.samples) - src_from, frames - dst_from)
                    outdata[dst_from : dst_from + count, 0] += item.samples[
                        src_from : src_from + count
                    ]
                if item.end_frame > block_end:
                    remaining.append(item)
            self._pending = remaining
            self._frames_rendered = block_end
        np.clip(outdata, -1.0, 1.0, out=outdata)

    def start(self) -> None:
        """Open the output stream; raise `DeviceError` when it is unavailable."""

        if self._stream is not None:
            return
        try:
            import sounddevice as sd
        except OSError as exc:
            # sounddevice raises OSError when the PortAudio library is missing
            raise DeviceError(f"PortAudio is not available: {exc}") from exc

        try:
            stream = sd.OutputStream(
                samplerate=self.sample_rate,
                channels=1,
                dtype="float32",
                device=self.device,
                callback=self._audio_callback,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as exc:
            raise DeviceError(f"Unable to open audio output: {exc}") from exc

        self._stream = stream
        logger.info("Audio output started (device: %s)", self.device or "default")

    def now(self) -> float:
        with self._lock:
            return self._frames_rendered / self.sample_rate

    def play_at(self, samples: np.ndarray, start_time: float) -> None:
        if self._stream is None:
            raise DeviceError("Audio output stream is not open")
        start_frame = math.ceil(start_time * self.sample_rate)
        with self._lock:
            # the callback may have rendered past `start_time` since it was read
            start_frame = max(start_frame, self._frames_rendered)
            self._pending.append(_PendingBuffer(start_frame, samples))

    def close(self) -> None:
        stream, self._stream = self._stream, None
        with self._lock:
            self._pending.clear()
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except Exception as exc:
            logger.warning("Error closing audio output: %s", exc)
        logger.info("Audio output stopped")


class SilentOutput:
    """Device with a wall-clock timeline that discards audio.

    Used when speaker output is disabled; scheduling still behaves exactly as
    it would on a real device.
    """

    def __init__(self, sample_rate: int = SAMPLE_RATE):
        self.sample_rate = sample_rate
        self._origin: float | None = None

    def start(self) -> None:
        if self._origin is None:
            self._origin = time.monotonic()

    def now(self) -> float:
        if self._origin is None:
            return 0.0
        return time.monotonic() - self._origin

    def play_at(self, samples: np.ndarray, start_time: float) -> None:
        logger.debug(
            "Silent output: %.2fs of audio at %.3f",
            len(samples) / self.sample_rate,
            start_time,
        )

    def close(self) -> None:
        self._origin = None


__all__ = ["AudioOutputDevice", "SilentOutput", "SoundDeviceOutput"]
