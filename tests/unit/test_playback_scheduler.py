# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from audio.playback import PlaybackScheduler, decode_audio_payload
from errors import AudioDecodeError
from fakes import FakeSink, pcm_payload
from protocol.encoding import encode_payload


def test_units_are_scheduled_back_to_back():
    """
    Three parts of 0.5s, 0.3s and 0.2s span exactly 1.0s from the first
    unit's start.
    """
    sink = FakeSink(now=0.25)
    scheduler = PlaybackScheduler(sink=sink)

    units = [scheduler.enqueue(pcm_payload(d)) for d in (0.5, 0.3, 0.2)]

    assert all(u is not None for u in units)
    assert [u.start_time for u in units] == pytest.approx([0.25, 0.75, 1.05])
    assert units[-1].end_time - units[0].start_time == pytest.approx(1.0)
    assert scheduler.next_start_time == pytest.approx(1.25)
    assert [s[0] for s in sink.scheduled] == [1, 2, 3]


def test_start_time_never_precedes_previous_end():
    sink = FakeSink()
    scheduler = PlaybackScheduler(sink=sink)

    previous = None
    for i, d in enumerate((0.1, 0.02, 0.3, 0.05)):
        sink.now = i * 0.01  # output clock moves slower than the queue grows
        unit = scheduler.enqueue(pcm_payload(d))
        if previous is not None:
            assert unit.start_time >= previous.end_time
        previous = unit


def test_late_unit_starts_at_current_clock():
    """A unit arriving after the queue drained starts 'now', not in the past."""
    sink = FakeSink()
    scheduler = PlaybackScheduler(sink=sink)

    scheduler.enqueue(pcm_payload(0.1))
    sink.now = 5.0
    unit = scheduler.enqueue(pcm_payload(0.1))

    assert unit.start_time == pytest.approx(5.0)


def test_interrupt_flushes_all_active_units():
    sink = FakeSink()
    scheduler = PlaybackScheduler(sink=sink)
    for _ in range(4):
        scheduler.enqueue(pcm_payload(0.2))

    stopped = scheduler.interrupt()

    assert stopped == 4
    assert len(scheduler) == 0
    assert sink.stopped == [1, 2, 3, 4]
    assert scheduler.next_start_time == 0.0

    # Next unit is scheduled from the current clock
    sink.now = 0.6
    unit = scheduler.enqueue(pcm_payload(0.1))
    assert unit.start_time == pytest.approx(0.6)


def test_interrupt_with_nothing_playing_is_noop():
    scheduler = PlaybackScheduler(sink=FakeSink())
    assert scheduler.interrupt() == 0


def test_natural_completion_removes_unit_by_id():
    sink = FakeSink()
    scheduler = PlaybackScheduler(sink=sink)
    first = scheduler.enqueue(pcm_payload(0.1))
    second = scheduler.enqueue(pcm_payload(0.1))

    sink.finish(first.unit_id)

    assert scheduler.active_units == (second,)
    assert first.active is False


def test_unit_ids_are_never_reused_after_interrupt():
    scheduler = PlaybackScheduler(sink=FakeSink())
    scheduler.enqueue(pcm_payload(0.1))
    scheduler.interrupt()

    unit = scheduler.enqueue(pcm_payload(0.1))

    assert unit.unit_id == 2


def test_undecodable_payload_is_dropped_without_touching_clock():
    sink = FakeSink()
    scheduler = PlaybackScheduler(sink=sink)
    scheduler.enqueue(pcm_payload(0.5))

    assert scheduler.enqueue("not base64 !!") is None
    assert scheduler.enqueue(encode_payload(b"\x01\x02\x03")) is None

    assert scheduler.next_start_time == pytest.approx(0.5)
    assert len(sink.scheduled) == 1


def test_decode_audio_payload_scales_to_unit_range():
    samples = decode_audio_payload(encode_payload(b"\x00\x80\xff\x7f\x00\x00"))

    assert samples.tolist() == pytest.approx([-1.0, 32767 / 32768, 0.0])


def test_decode_audio_payload_rejects_empty():
    with pytest.raises(AudioDecodeError):
        decode_audio_payload("")
