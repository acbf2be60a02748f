import numpy as np
import pytest

from aura.audio.scheduler import PlaybackScheduler, pcm_to_samples
from aura.errors import DeviceError
from conftest import PCM_100MS, FakeAudioDevice


def test_segments_play_back_to_back() -> None:
    device = FakeAudioDevice()
    scheduler = PlaybackScheduler(device)

    first = scheduler.enqueue(PCM_100MS)
    second = scheduler.enqueue(PCM_100MS * 2)
    third = scheduler.enqueue(PCM_100MS)

    assert first.start == pytest.approx(0.0)
    assert second.start == pytest.approx(first.end)
    assert third.start == pytest.approx(second.end)
    assert second.duration == pytest.approx(0.2)
    assert [start for start, _ in device.played] == [first.start, second.start, third.start]


def test_late_segment_starts_at_device_time() -> None:
    device = FakeAudioDevice()
    scheduler = PlaybackScheduler(device)

    first = scheduler.enqueue(PCM_100MS)
    device.clock = 1.5
    second = scheduler.enqueue(PCM_100MS)

    assert first.end < device.clock
    assert second.start == pytest.approx(1.5)
    assert scheduler.cursor.next_free_time == pytest.approx(1.6)


def test_starts_never_overlap() -> None:
    device = FakeAudioDevice()
    scheduler = PlaybackScheduler(device)
    placements = []
    for step, repeats in enumerate([1, 3, 2, 1, 4]):
        device.clock = step * 0.05
        placements.append(scheduler.enqueue(PCM_100MS * repeats))

    for previous, current in zip(placements, placements[1:]):
        assert current.start >= previous.start
        assert current.start >= previous.start + previous.duration - 1e-9


def test_reset_cursor_moves_to_device_now() -> None:
    device = FakeAudioDevice()
    scheduler = PlaybackScheduler(device)
    scheduler.enqueue(PCM_100MS * 50)
    assert scheduler.cursor.next_free_time == pytest.approx(5.0)

    device.clock = 2.0
    scheduler.reset_cursor()

    assert scheduler.enqueue(PCM_100MS).start == pytest.approx(2.0)


def test_empty_pcm_is_zero_length_noop() -> None:
    device = FakeAudioDevice()
    scheduler = PlaybackScheduler(device)

    placement = scheduler.enqueue(b"")

    assert placement.duration == 0
    assert device.played == []
    assert scheduler.cursor.next_free_time == 0


def test_device_error_leaves_cursor_untouched() -> None:
    device = FakeAudioDevice()
    scheduler = PlaybackScheduler(device)
    scheduler.enqueue(PCM_100MS)
    device.fail = True

    with pytest.raises(DeviceError):
        scheduler.enqueue(PCM_100MS)

    assert scheduler.cursor.next_free_time == pytest.approx(0.1)


def test_pcm_to_samples_scales_and_drops_odd_byte() -> None:
    samples = pcm_to_samples(b"\x00\x40\x00\xc0\x07")

    assert samples.dtype == np.float32
    np.testing.assert_allclose(samples, [0.5, -0.5])
