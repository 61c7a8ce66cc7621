"""
Capture stream: microphone blocks -> protocol-ready AudioChunks.

Gating:
- A block is forwarded ONLY while the turn gate reports LISTENING.
- Otherwise it is dropped silently; the pipeline keeps running.

Lifecycle:
- start() opens the device (async; may fail with MicrophonePermissionError)
- stop() releases it; idempotent
- mute()/unmute() flip the device enabled flag without teardown
"""

from __future__ import annotations

import time
from typing import Callable, Protocol

import numpy as np

from audio.frames import AudioChunk
from audio.pcm import float32_to_pcm16le
from observability.logger import log_event


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class Microphone(Protocol):
    """Input device contract (see audio.devices.SoundDeviceMicrophone)."""

    enabled: bool

    @property
    def is_open(self) -> bool:
        """True while the device is held."""

    async def open(self, on_block: Callable[[np.ndarray], None]) -> None:
        """Acquire the device and start delivering blocks."""

    def close(self) -> None:
        """Release the device."""


class CaptureStream:
    """
    Owns the microphone between start() and stop().

    is_listening:
        Read-only gate consulted for every block (the turn state machine).

    on_chunk:
        Receives each encoded chunk on the event loop thread. Must not block;
        transmission is scheduled by the caller.
    """

    def __init__(
        self,
        *,
        microphone: Microphone,
        is_listening: Callable[[], bool],
        on_chunk: Callable[[AudioChunk], None],
    ) -> None:
        self._mic = microphone
        self._is_listening = is_listening
        self._on_chunk = on_chunk
        self._seq = 0
        self.chunks_sent = 0
        self.chunks_dropped = 0

    @property
    def running(self) -> bool:
        """True while the microphone is held."""
        return self._mic.is_open

    @property
    def muted(self) -> bool:
        """True while the device is open but disabled."""
        return self._mic.is_open and not self._mic.enabled

    async def start(self) -> None:
        """
        Open the microphone pipeline.

        Idempotent: a second start() while running is a no-op.

        Raises:
            MicrophonePermissionError if the device cannot be opened.
        """
        if self._mic.is_open:
            return

        self._seq = 0
        self.chunks_sent = 0
        self.chunks_dropped = 0
        await self._mic.open(self._handle_block)

    def stop(self) -> None:
        """Tear down the pipeline; no-op when nothing is running."""
        if not self._mic.is_open:
            return
        self._mic.close()
        log_event({
            "event_type": "CAPTURE_STOPPED",
            "chunks_sent": self.chunks_sent,
            "chunks_dropped": self.chunks_dropped,
        })

    def mute(self) -> None:
        """Disable the device without tearing down the pipeline."""
        if self._mic.is_open:
            self._mic.enabled = False

    def unmute(self) -> None:
        """Re-enable the device."""
        if self._mic.is_open:
            self._mic.enabled = True

    # ------------------------------------------------------------------
    # Per-block path (event loop thread)
    # ------------------------------------------------------------------

    def _handle_block(self, samples: np.ndarray) -> None:
        if not self._is_listening():
            self.chunks_dropped += 1
            return

        self._seq += 1
        chunk = AudioChunk(
            sequence_num=self._seq,
            pcm_bytes=float32_to_pcm16le(samples),
            ts_ms=_now_ms(),
        )
        self.chunks_sent += 1
        self._on_chunk(chunk)
