"""
Transport encoding for binary payloads.

The live channel is text-oriented (JSON over a websocket), so every binary
payload in both directions travels base64-encoded.

Usage example:

    data = encode_payload(pcm_bytes)
    assert decode_payload(data) == pcm_bytes
"""

from __future__ import annotations

import base64
import binascii


class PayloadDecodeError(ValueError):
    """Raised when a transport-encoded payload is not valid base64."""


def encode_payload(raw: bytes) -> str:
    """Encode raw bytes for the text-safe channel."""
    return base64.b64encode(raw).decode("ascii")


def decode_payload(data: str | bytes) -> bytes:
    """
    Decode a transport-encoded payload back into raw bytes.

    Strict: non-alphabet characters and bad padding are rejected instead of
    silently skipped.
    """
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise PayloadDecodeError(f"invalid transport payload: {e}") from e


def to_data_url(raw: bytes, media_type: str) -> str:
    """Build a data: URL, used as a preview token for image attachments."""
    return f"data:{media_type};base64,{encode_payload(raw)}"
