"""
SPEC-AS-CONSTANTS
-----------------
Single source of truth for all behavioral invariants of the live engine.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Capture format (mic -> service): PCM16 mono @ 16kHz
# =============================================================================

INPUT_SAMPLE_RATE_HZ: Final[int] = 16_000
INPUT_CHANNELS: Final[int] = 1
INPUT_BLOCK_SAMPLES: Final[int] = 256
INPUT_MIME_TYPE: Final[str] = f"audio/pcm;rate={INPUT_SAMPLE_RATE_HZ}"

# =============================================================================
# Playback format (service -> speaker): PCM16 mono @ 24kHz
# =============================================================================

OUTPUT_SAMPLE_RATE_HZ: Final[int] = 24_000
OUTPUT_CHANNELS: Final[int] = 1

# Speaker callback block; 0 lets PortAudio pick the optimal size
OUTPUT_BLOCK_SAMPLES: Final[int] = 0

# =============================================================================
# Sample format
# =============================================================================

SAMPLE_WIDTH_BYTES: Final[int] = 2  # PCM16 (signed 16-bit, little-endian)
PCM16_SCALE: Final[float] = 32768.0
PCM16_MAX: Final[int] = 32767
PCM16_MIN: Final[int] = -32768

# =============================================================================
# Session defaults
# =============================================================================

DEFAULT_MODEL: Final[str] = "gemini-2.5-flash-native-audio-preview-09-2025"
DEFAULT_VOICE: Final[str] = "Puck"
DEFAULT_ENDPOINT: Final[str] = (
    "wss://generativelanguage.googleapis.com/ws/"
    "google.ai.generativelanguage.v1beta.GenerativeService.BidiGenerateContent"
)

RESPONSE_MODALITIES: Final[Tuple[str, ...]] = ("AUDIO", "TEXT")
INPUT_MODALITIES: Final[Tuple[str, ...]] = ("TEXT", "IMAGE", "AUDIO")

# Max inbound websocket message size (base64 audio chunks can be large)
WS_MAX_MESSAGE_BYTES: Final[int] = 2**24

# Time allowed for setupComplete after the socket opens
SESSION_SETUP_TIMEOUT_S: Final[float] = 15.0

# =============================================================================
# Attachments
# =============================================================================

FALLBACK_MEDIA_TYPE: Final[str] = "application/octet-stream"

# =============================================================================
# Transcript links
# =============================================================================

# Scheme followed by contiguous non-whitespace; trailing punctuation is kept.
LINK_PATTERN: Final[str] = r"https?://\S+"

# =============================================================================
# Status messages (consumed verbatim by the presentation layer)
# =============================================================================

STATUS_CONNECTING: Final[str] = "Connecting..."
STATUS_OPENED: Final[str] = "Opened"
STATUS_CLOSED_PREFIX: Final[str] = "Close: "
STATUS_REQUESTING_MIC: Final[str] = "Requesting microphone access..."
STATUS_RECORDING: Final[str] = "Recording... capturing audio."
STATUS_PAUSED: Final[str] = "Paused. Processing response..."
STATUS_RESUMED: Final[str] = "Resumed. Capturing audio again."
STATUS_STOPPED: Final[str] = "Recording stopped. Start to begin again."
STATUS_SENDING: Final[str] = "Sending message..."
STATUS_SENT: Final[str] = "Message sent. Awaiting response..."
STATUS_SESSION_CLEARED: Final[str] = "Session cleared."
STATUS_MISSING_CREDENTIAL: Final[str] = "GEMINI_API_KEY is not set"


# =============================================================================
# Helper Functions
# =============================================================================

def samples_to_seconds(num_samples: int, sample_rate_hz: int) -> float:
    """
    Convert a sample count to a duration in seconds.

    Defensive behavior:
    - Non-positive input returns 0.0 instead of propagating an error.
    """
    if num_samples <= 0:
        return 0.0
    return num_samples / sample_rate_hz

