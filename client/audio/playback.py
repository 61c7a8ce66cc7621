"""
Playback scheduler: gap-free, arrival-ordered playback of inbound audio.

Invariants:
- One PlaybackUnit per inbound audio part, scheduled in arrival order
- unit[i].start_time >= unit[i-1].end_time unless interrupt() ran between them
- next_start_time is read and advanced with no suspension point in between
- interrupt() stops every active unit and rewinds next_start_time to 0

The scheduler owns the clock bookkeeping only. Actually producing sound is
delegated to an AudioSink (see audio.devices.SoundDeviceSpeaker).
"""

from __future__ import annotations

from typing import Callable, Protocol

import numpy as np

from audio.frames import PlaybackUnit
from audio.pcm import pcm16le_to_float32
from errors import AudioDecodeError
from observability.logger import log_event
from protocol.encoding import PayloadDecodeError, decode_payload
from spec import OUTPUT_SAMPLE_RATE_HZ, SAMPLE_WIDTH_BYTES, samples_to_seconds


class AudioSink(Protocol):
    """
    Output device contract.

    All methods are called from the event loop thread. on_ended must be
    delivered on the event loop thread as well.
    """

    def current_time(self) -> float:
        """Current position of the output clock, in seconds."""

    def schedule(
        self,
        unit_id: int,
        samples: np.ndarray,
        start_time: float,
        on_ended: Callable[[int], None],
    ) -> None:
        """Start playing samples at start_time on the output clock."""

    def stop(self, unit_id: int) -> None:
        """Stop a unit immediately; a finished or unknown unit is a no-op."""


def decode_audio_payload(payload: str | bytes) -> np.ndarray:
    """
    Decode a transport-encoded PCM16 payload into float32 samples.

    Raises:
        AudioDecodeError if the payload is not valid base64, is empty, or
        does not contain whole PCM16 samples.
    """
    try:
        raw = decode_payload(payload)
    except PayloadDecodeError as e:
        raise AudioDecodeError(str(e)) from e

    if not raw:
        raise AudioDecodeError("empty audio payload")
    if len(raw) % SAMPLE_WIDTH_BYTES != 0:
        raise AudioDecodeError(f"truncated PCM16 payload ({len(raw)} bytes)")

    return pcm16le_to_float32(raw)


class PlaybackScheduler:
    """
    Schedules decoded inbound audio back-to-back on a single output clock.

    Active units live in a map keyed by a monotonically increasing unit id;
    natural completion removes by id.
    """

    def __init__(
        self,
        *,
        sink: AudioSink,
        sample_rate_hz: int = OUTPUT_SAMPLE_RATE_HZ,
    ) -> None:
        self._sink = sink
        self._sample_rate_hz = sample_rate_hz
        self._next_start_time: float = 0.0
        self._next_unit_id: int = 1
        self._active: dict[int, PlaybackUnit] = {}

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def next_start_time(self) -> float:
        """Earliest clock time at which the next unit may begin."""
        return self._next_start_time

    @property
    def active_units(self) -> tuple[PlaybackUnit, ...]:
        """Currently scheduled units, in scheduling order."""
        return tuple(self._active.values())

    def __len__(self) -> int:
        return len(self._active)

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def enqueue(self, payload: str | bytes) -> PlaybackUnit | None:
        """
        Decode one inbound audio part and schedule it after everything
        already scheduled.

        Returns:
            The scheduled unit, or None if the payload could not be decoded
            (logged, non-fatal; the clock is left untouched).
        """
        try:
            samples = decode_audio_payload(payload)
        except AudioDecodeError as e:
            log_event({
                "event_type": "PLAYBACK_DECODE_FAILED",
                "error": str(e),
                "next_start_time": self._next_start_time,
            })
            return None

        duration = samples_to_seconds(len(samples), self._sample_rate_hz)

        # No await between reading and advancing the clock.
        start_time = max(self._next_start_time, self._sink.current_time())
        unit = PlaybackUnit(
            unit_id=self._next_unit_id,
            samples=samples,
            start_time=start_time,
            duration=duration,
        )
        self._next_unit_id += 1
        self._next_start_time = start_time + duration
        self._active[unit.unit_id] = unit

        self._sink.schedule(unit.unit_id, samples, start_time, self._on_unit_ended)
        return unit

    def interrupt(self) -> int:
        """
        Barge-in: stop every active unit and schedule from "now" next time.

        Returns:
            Number of units that were stopped.
        """
        stopped = 0
        for unit in list(self._active.values()):
            unit.active = False
            try:
                self._sink.stop(unit.unit_id)
            except Exception as e:  # pylint: disable=broad-exception-caught
                # Best-effort; a unit that already finished is a no-op.
                log_event({
                    "event_type": "PLAYBACK_STOP_FAILED",
                    "unit_id": unit.unit_id,
                    "error": repr(e),
                })
            stopped += 1

        self._active.clear()
        self._next_start_time = 0.0

        log_event({
            "event_type": "PLAYBACK_INTERRUPTED",
            "units_stopped": stopped,
        })
        return stopped

    # ------------------------------------------------------------------
    # Sink callbacks
    # ------------------------------------------------------------------

    def _on_unit_ended(self, unit_id: int) -> None:
        unit = self._active.pop(unit_id, None)
        if unit is not None:
            unit.active = False
