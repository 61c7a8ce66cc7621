"""PCM conversion utilities."""
import numpy as np

from spec import PCM16_MAX, PCM16_MIN, PCM16_SCALE


def pcm16le_to_float32(pcm_bytes: bytes) -> np.ndarray:
    """
    Convert PCM16 little-endian mono bytes to float32 in [-1.0, 1.0).

    Runtime-safe, adapter-agnostic utility.
    No resampling. No channel mixing.
    """
    if len(pcm_bytes) % 2 != 0:
        # Truncated sample; caller should treat as malformed payload upstream.
        pcm_bytes = pcm_bytes[: len(pcm_bytes) - 1]

    audio_i16 = np.frombuffer(pcm_bytes, dtype="<i2")  # little-endian int16
    audio_f32 = audio_i16.astype(np.float32) / PCM16_SCALE
    return audio_f32


def float32_to_pcm16le(samples: np.ndarray) -> bytes:
    """
    Convert float32 mono samples in [-1.0, 1.0] to PCM16 little-endian bytes.

    Out-of-range samples are clipped rather than wrapped.
    """
    scaled = np.asarray(samples, dtype=np.float32) * PCM16_SCALE
    clipped = np.clip(scaled, PCM16_MIN, PCM16_MAX)
    return clipped.astype("<i2").tobytes()
