"""Conversions between base64 speech payloads, raw PCM and WAV containers.

Speech arrives from the synthesis service as base64 text wrapping raw
little-endian 16-bit mono PCM at 24 kHz. Nothing here performs I/O.
"""

from __future__ import annotations

import base64
import binascii
import struct

from ..errors import DecodeError

SAMPLE_RATE = 24000
CHANNELS = 1
BITS_PER_SAMPLE = 16
SAMPLE_WIDTH = BITS_PER_SAMPLE // 8
BLOCK_ALIGN = CHANNELS * SAMPLE_WIDTH
BYTE_RATE = SAMPLE_RATE * BLOCK_ALIGN
WAV_HEADER_SIZE = 44

_WAV_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")
_PCM_FORMAT_TAG = 1


def decode(payload: str | bytes) -> bytes:
    """Return the raw PCM bytes carried by a base64 payload."""

    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Malformed base64 audio payload: {exc}") from exc


def encode(pcm: bytes) -> str:
    """Return the base64 text for raw PCM bytes."""

    return base64.b64encode(pcm).decode("ascii")


def wrap_as_container(pcm: bytes) -> bytes:
    """Prepend a 44-byte RIFF/WAVE header to raw PCM."""

    data_size = len(pcm)
    header = _WAV_HEADER.pack(
        b"RIFF",
        36 + data_size,
        b"WAVE",
        b"fmt ",
        16,
        _PCM_FORMAT_TAG,
        CHANNELS,
        SAMPLE_RATE,
        BYTE_RATE,
        BLOCK_ALIGN,
        BITS_PER_SAMPLE,
        b"data",
        data_size,
    )
    return header + pcm


def read_container_data_length(container: bytes) -> int:
    """Return the data length declared in a header built by `wrap_as_container`."""

    if len(container) < WAV_HEADER_SIZE:
        raise DecodeError("Container shorter than a WAV header")
    fields = _WAV_HEADER.unpack_from(container)
    if fields[0] != b"RIFF" or fields[2] != b"WAVE" or fields[11] != b"data":
        raise DecodeError("Not a RIFF/WAVE container")
    return fields[12]


def pcm_duration(pcm: bytes) -> float:
    """Seconds of audio represented by a raw PCM payload."""

    return (len(pcm) // BLOCK_ALIGN) / SAMPLE_RATE


__all__ = [
    "BITS_PER_SAMPLE",
    "CHANNELS",
    "SAMPLE_RATE",
    "WAV_HEADER_SIZE",
    "decode",
    "encode",
    "pcm_duration",
    "read_container_data_length",
    "wrap_as_container",
]
