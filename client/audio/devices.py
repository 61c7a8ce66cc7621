"""
sounddevice-backed audio hardware.

SoundDeviceSpeaker:
    Callback-driven mixer. The output clock is the number of frames the
    device has rendered, divided by the sample rate. Scheduled units are
    mixed into each block at their start frame; natural completion is
    reported back on the event loop thread.

SoundDeviceMicrophone:
    Fixed-blocksize input stream. Blocks are handed to the event loop
    thread; a disabled microphone keeps the stream open and drops blocks.

PortAudio invokes both callbacks on its own thread. Shared state is
guarded by a threading.Lock and never touched by the event loop without it.
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from typing import Any, Callable

import numpy as np
import sounddevice as sd

from errors import MicrophonePermissionError
from observability.logger import log_event
from spec import (
    INPUT_BLOCK_SAMPLES,
    INPUT_CHANNELS,
    INPUT_SAMPLE_RATE_HZ,
    OUTPUT_BLOCK_SAMPLES,
    OUTPUT_CHANNELS,
    OUTPUT_SAMPLE_RATE_HZ,
)


# ---------------------------------------------------------------------
# Speaker
# ---------------------------------------------------------------------

@dataclass(slots=True)
class _Voice:
    unit_id: int
    samples: np.ndarray = field(repr=False)
    start_frame: int
    on_ended: Callable[[int], None]

    @property
    def end_frame(self) -> int:
        return self.start_frame + len(self.samples)


class SoundDeviceSpeaker:
    """Output device implementing the PlaybackScheduler AudioSink contract."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        sample_rate_hz: int = OUTPUT_SAMPLE_RATE_HZ,
        device: int | str | None = None,
    ) -> None:
        self._loop = loop
        self._sample_rate_hz = sample_rate_hz
        self._device = device
        self._lock = threading.Lock()
        self._voices: dict[int, _Voice] = {}
        self._frames_rendered: int = 0
        self._stream: sd.OutputStream | None = None

    # ------------------------------------------------------------------
    # Stream lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Open and start the output stream; idempotent."""
        if self._stream is not None:
            return

        stream = sd.OutputStream(
            device=self._device,
            samplerate=self._sample_rate_hz,
            channels=OUTPUT_CHANNELS,
            dtype="float32",
            blocksize=OUTPUT_BLOCK_SAMPLES,
            callback=self._callback,
        )
        stream.start()
        self._stream = stream
        log_event({
            "event_type": "SPEAKER_OPENED",
            "sample_rate_hz": self._sample_rate_hz,
        })

    def close(self) -> None:
        """Stop and close the output stream; idempotent."""
        stream = self._stream
        if stream is None:
            return
        self._stream = None
        try:
            stream.stop()
            stream.close()
        except sd.PortAudioError as e:
            log_event({"event_type": "SPEAKER_CLOSE_FAILED", "error": repr(e)})

        with self._lock:
            self._voices.clear()

    # ------------------------------------------------------------------
    # AudioSink contract
    # ------------------------------------------------------------------

    def current_time(self) -> float:
        with self._lock:
            return self._frames_rendered / self._sample_rate_hz

    def schedule(
        self,
        unit_id: int,
        samples: np.ndarray,
        start_time: float,
        on_ended: Callable[[int], None],
    ) -> None:
        voice = _Voice(
            unit_id=unit_id,
            samples=np.asarray(samples, dtype=np.float32),
            start_frame=int(round(start_time * self._sample_rate_hz)),
            on_ended=on_ended,
        )
        with self._lock:
            self._voices[unit_id] = voice

    def stop(self, unit_id: int) -> None:
        with self._lock:
            self._voices.pop(unit_id, None)

    # ------------------------------------------------------------------
    # Mixing
    # ------------------------------------------------------------------

    def render(self, frames: int) -> np.ndarray:
        """
        Mix the next `frames` frames of output and advance the clock.

        Called from the PortAudio thread; exposed for tests.
        """
        out = np.zeros(frames, dtype=np.float32)
        finished: list[_Voice] = []

        with self._lock:
            window_start = self._frames_rendered
            window_end = window_start + frames

            for voice in self._voices.values():
                if voice.start_frame >= window_end or voice.end_frame <= window_start:
                    if voice.end_frame <= window_start:
                        finished.append(voice)
                    continue

                src_from = max(0, window_start - voice.start_frame)
                dst_from = max(0, voice.start_frame - window_start)
                count = min(len(voice.samples) - src_from, frames - dst_from)
                out[dst_from:dst_from + count] += voice.samples[src_from:src_from + count]

                if voice.end_frame <= window_end:
                    finished.append(voice)

            for voice in finished:
                del self._voices[voice.unit_id]

            self._frames_rendered = window_end

        for voice in finished:
            self._loop.call_soon_threadsafe(voice.on_ended, voice.unit_id)

        np.clip(out, -1.0, 1.0, out=out)
        return out

    def _callback(self, outdata: np.ndarray, frames: int, time_info: Any, status: sd.CallbackFlags) -> None:
        # pylint: disable=unused-argument
        outdata[:, 0] = self.render(frames)


# ---------------------------------------------------------------------
# Microphone
# ---------------------------------------------------------------------

class SoundDeviceMicrophone:
    """
    Exclusive handle on one input device.

    At most one stream is open at a time; open() while open is a no-op.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        sample_rate_hz: int = INPUT_SAMPLE_RATE_HZ,
        block_samples: int = INPUT_BLOCK_SAMPLES,
        device: int | str | None = None,
    ) -> None:
        self._loop = loop
        self._sample_rate_hz = sample_rate_hz
        self._block_samples = block_samples
        self._device = device
        self._stream: sd.InputStream | None = None
        self._on_block: Callable[[np.ndarray], None] | None = None
        self._enabled = threading.Event()
        self._overflows = 0

    @property
    def is_open(self) -> bool:
        """True while an input stream is held."""
        return self._stream is not None

    @property
    def enabled(self) -> bool:
        """False while muted; blocks are dropped at the device boundary."""
        return self._enabled.is_set()

    @enabled.setter
    def enabled(self, value: bool) -> None:
        if value:
            self._enabled.set()
        else:
            self._enabled.clear()

    async def open(self, on_block: Callable[[np.ndarray], None]) -> None:
        """
        Request the input device and start streaming blocks.

        on_block is invoked on the event loop thread with a 1-D float32
        array of block_samples samples.

        Raises:
            MicrophonePermissionError if the device cannot be opened.
        """
        if self._stream is not None:
            return

        self._on_block = on_block
        self._enabled.set()

        try:
            stream = await asyncio.to_thread(self._open_stream)
        except (sd.PortAudioError, ValueError) as e:
            self._on_block = None
            raise MicrophonePermissionError(f"microphone unavailable: {e}") from e

        self._stream = stream
        log_event({
            "event_type": "MICROPHONE_OPENED",
            "sample_rate_hz": self._sample_rate_hz,
            "block_samples": self._block_samples,
        })

    def close(self) -> None:
        """Stop streaming and release the device; idempotent."""
        stream = self._stream
        if stream is None:
            return
        self._stream = None
        self._on_block = None
        self._enabled.clear()
        try:
            stream.stop()
            stream.close()
        except sd.PortAudioError as e:
            log_event({"event_type": "MICROPHONE_CLOSE_FAILED", "error": repr(e)})

        log_event({
            "event_type": "MICROPHONE_CLOSED",
            "overflows": self._overflows,
        })

    def _open_stream(self) -> sd.InputStream:
        stream = sd.InputStream(
            device=self._device,
            samplerate=self._sample_rate_hz,
            channels=INPUT_CHANNELS,
            dtype="float32",
            blocksize=self._block_samples,
            callback=self._callback,
        )
        stream.start()
        return stream

    def _callback(self, indata: np.ndarray, frames: int, time_info: Any, status: sd.CallbackFlags) -> None:
        # pylint: disable=unused-argument
        if status.input_overflow:
            self._overflows += 1
        on_block = self._on_block
        if on_block is None or not self._enabled.is_set():
            return
        mono = indata[:, 0] if indata.ndim > 1 else indata
        self._loop.call_soon_threadsafe(on_block, mono.copy())
