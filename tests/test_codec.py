import base64
import struct

import pytest

from aura.audio import codec
from aura.errors import DecodeError


def test_decode_returns_raw_pcm() -> None:
    pcm = bytes(range(16))
    assert codec.decode(base64.b64encode(pcm).decode("ascii")) == pcm


def test_decode_rejects_malformed_payload() -> None:
    with pytest.raises(DecodeError):
        codec.decode("not*base64!")


def test_encode_is_inverse_of_decode() -> None:
    pcm = b"\x00\x01\xff\x7f" * 10
    assert codec.decode(codec.encode(pcm)) == pcm


def test_wrap_as_container_declares_decoded_length() -> None:
    pcm = codec.decode(codec.encode(b"\x10\x00" * 1200))
    container = codec.wrap_as_container(pcm)

    assert len(container) == codec.WAV_HEADER_SIZE + len(pcm)
    assert codec.read_container_data_length(container) == len(pcm)
    assert container[codec.WAV_HEADER_SIZE:] == pcm


def test_wav_header_fields() -> None:
    container = codec.wrap_as_container(b"\x00\x00" * 24000)
    (
        riff,
        riff_size,
        wave,
        fmt,
        fmt_size,
        format_tag,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bits,
        data,
        data_size,
    ) = struct.unpack_from("<4sI4s4sIHHIIHH4sI", container)

    assert (riff, wave, fmt, data) == (b"RIFF", b"WAVE", b"fmt ", b"data")
    assert riff_size == 36 + data_size
    assert fmt_size == 16
    assert format_tag == 1
    assert channels == 1
    assert sample_rate == 24000
    assert byte_rate == 48000
    assert block_align == 2
    assert bits == 16
    assert data_size == 48000


def test_empty_pcm_produces_header_only() -> None:
    container = codec.wrap_as_container(b"")
    assert len(container) == codec.WAV_HEADER_SIZE
    assert codec.read_container_data_length(container) == 0


def test_read_container_rejects_foreign_bytes() -> None:
    with pytest.raises(DecodeError):
        codec.read_container_data_length(b"ID3" + b"\x00" * 60)
    with pytest.raises(DecodeError):
        codec.read_container_data_length(b"RIFF")


def test_pcm_duration() -> None:
    assert codec.pcm_duration(b"\x00\x00" * 12000) == pytest.approx(0.5)
