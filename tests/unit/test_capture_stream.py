# pylint: disable=missing-module-docstring,missing-function-docstring

import numpy as np
import pytest

from audio.capture import CaptureStream
from audio.frames import AudioChunk
from errors import MicrophonePermissionError
from fakes import FakeMicrophone
from spec import INPUT_BLOCK_SAMPLES


def _block(value: float = 0.5) -> np.ndarray:
    return np.full(INPUT_BLOCK_SAMPLES, value, dtype=np.float32)


def _stream(mic: FakeMicrophone, listening: list[bool]) -> tuple[CaptureStream, list[AudioChunk]]:
    chunks: list[AudioChunk] = []
    stream = CaptureStream(
        microphone=mic,
        is_listening=lambda: listening[0],
        on_chunk=chunks.append,
    )
    return stream, chunks


@pytest.mark.asyncio
async def test_blocks_forwarded_only_while_listening():
    mic = FakeMicrophone()
    listening = [True]
    stream, chunks = _stream(mic, listening)
    await stream.start()

    mic.push(_block())
    listening[0] = False
    mic.push(_block())
    mic.push(_block())

    assert len(chunks) == 1
    assert stream.chunks_dropped == 2
    assert len(chunks[0].pcm_bytes) == INPUT_BLOCK_SAMPLES * 2
    assert chunks[0].sequence_num == 1


@pytest.mark.asyncio
async def test_chunk_is_pcm16_little_endian():
    mic = FakeMicrophone()
    stream, chunks = _stream(mic, [True])
    await stream.start()

    mic.push(np.array([0.5, -1.0, 2.0], dtype=np.float32))

    assert chunks[0].pcm_bytes == b"\x00\x40\x00\x80\xff\x7f"


@pytest.mark.asyncio
async def test_start_twice_opens_device_once():
    mic = FakeMicrophone()
    stream, _ = _stream(mic, [True])

    await stream.start()
    await stream.start()

    assert mic.open_calls == 1
    assert stream.running


@pytest.mark.asyncio
async def test_mute_stops_chunks_until_unmute():
    mic = FakeMicrophone()
    stream, chunks = _stream(mic, [True])
    await stream.start()

    stream.mute()
    mic.push(_block())
    assert stream.muted
    assert chunks == []

    stream.unmute()
    mic.push(_block())
    assert len(chunks) == 1


@pytest.mark.asyncio
async def test_stop_is_idempotent_and_releases_device():
    mic = FakeMicrophone()
    stream, _ = _stream(mic, [True])
    await stream.start()

    stream.stop()
    stream.stop()

    assert mic.close_calls == 1
    assert not stream.running


@pytest.mark.asyncio
async def test_denied_microphone_raises_permission_error():
    stream, _ = _stream(FakeMicrophone(deny=True), [True])

    with pytest.raises(PermissionError):
        await stream.start()
    assert not stream.running


def test_permission_error_is_engine_error():
    assert issubclass(MicrophonePermissionError, PermissionError)
