"""
Audio data primitives.

Pure data containers only.
No behavior, no queues, no timing logic.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np


@dataclass(frozen=True)
class AudioChunk:
    """
    One block of captured microphone audio, ready for transmission.

    sequence_num:
        Monotonic per-capture counter, starting at 1 on every start().
        Used for debugging and drop accounting only.

    pcm_bytes:
        PCM16 little-endian mono bytes at spec.INPUT_SAMPLE_RATE_HZ.

    ts_ms:
        Wall-clock timestamp (milliseconds) when the block reached the
        event loop. Observability only.
    """
    sequence_num: int
    pcm_bytes: bytes
    ts_ms: int


@dataclass
class PlaybackUnit:
    """
    A decoded inbound audio buffer scheduled on the output clock.

    unit_id:
        Monotonic id assigned by the scheduler; never reused.

    start_time / duration:
        Seconds on the output clock.

    active:
        False once playback ended naturally or the unit was stopped.
    """
    unit_id: int
    samples: np.ndarray = field(repr=False)
    start_time: float
    duration: float
    active: bool = True

    @property
    def end_time(self) -> float:
        """Clock time at which this unit finishes."""
        return self.start_time + self.duration
