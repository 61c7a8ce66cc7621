"""
Engine error taxonomy.

Components raise these; the runtime converts them into events so that the
reducer can fold them into the observable status/error surface. None of
them is allowed to escape an event handler or a hardware callback.
"""

from __future__ import annotations


class LiveEngineError(Exception):
    """Base class for live engine errors."""


class SessionConnectionError(LiveEngineError, ConnectionError):
    """
    Raised when the streaming session cannot be established, or when the
    session handle was never resolved.

    The session stays unusable until an explicit reset().
    """


class MicrophonePermissionError(LiveEngineError, PermissionError):
    """
    Raised when the microphone cannot be opened (access denied or device
    unavailable). Capture does not start.
    """


class AttachmentEncodingError(LiveEngineError):
    """
    Raised when a single attachment cannot be read or encoded.

    The attachment is skipped; the send proceeds with the rest.
    """


class UnsupportedAttachmentError(LiveEngineError):
    """
    Raised when an attachment's kind maps to an input modality the session
    was not configured to accept.
    """


class TransmissionError(LiveEngineError):
    """
    Raised when a content turn, an end-of-turn marker, or a realtime audio
    chunk fails on the wire. Dropped chunks are not retried.
    """


class AudioDecodeError(LiveEngineError):
    """
    Raised when an inbound audio payload cannot be decoded.

    The unit is dropped; the playback clock is not touched.
    """
