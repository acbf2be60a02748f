"""Audio helpers: payload codec, output devices and gapless scheduling."""

from .device import AudioOutputDevice, SilentOutput, SoundDeviceOutput
from .scheduler import PlaybackCursor, PlaybackScheduler, ScheduledSegment

__all__ = [
    "AudioOutputDevice",
    "PlaybackCursor",
    "PlaybackScheduler",
    "ScheduledSegment",
    "SilentOutput",
    "SoundDeviceOutput",
]
