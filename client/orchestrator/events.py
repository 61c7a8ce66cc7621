"""
Unified event definitions for the engine reducer.

Rules:
- Events describe facts that have occurred (or intents the user issued).
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Session-scoped events carry session_id for stale gating after reset().
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (state, event_type) pair must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------
    CREDENTIAL_MISSING = "CREDENTIAL_MISSING"

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    SESSION_CONNECTING = "SESSION_CONNECTING"
    SESSION_OPENED = "SESSION_OPENED"
    SESSION_ERROR = "SESSION_ERROR"
    SESSION_CLOSED = "SESSION_CLOSED"
    SESSION_RESET = "SESSION_RESET"
    SESSION_GO_AWAY = "SESSION_GO_AWAY"

    # ------------------------------------------------------------------
    # User intents (microphone)
    # ------------------------------------------------------------------
    MIC_START = "MIC_START"
    MIC_LOCK = "MIC_LOCK"
    MIC_RESUME = "MIC_RESUME"
    MIC_STOP = "MIC_STOP"

    # ------------------------------------------------------------------
    # Capture feedback
    # ------------------------------------------------------------------
    CAPTURE_STARTED = "CAPTURE_STARTED"
    CAPTURE_FAILED = "CAPTURE_FAILED"

    # ------------------------------------------------------------------
    # Outbound content
    # ------------------------------------------------------------------
    SEND_REQUESTED = "SEND_REQUESTED"
    SEND_COMPLETED = "SEND_COMPLETED"
    SEND_FAILED = "SEND_FAILED"
    ATTACHMENT_SKIPPED = "ATTACHMENT_SKIPPED"
    ATTACHMENTS_CHANGED = "ATTACHMENTS_CHANGED"
    TRANSMISSION_FAILED = "TRANSMISSION_FAILED"

    # ------------------------------------------------------------------
    # Inbound content
    # ------------------------------------------------------------------
    TRANSCRIPT_UPDATED = "TRANSCRIPT_UPDATED"
    REMOTE_TURN_COMPLETE = "REMOTE_TURN_COMPLETE"
    REMOTE_INTERRUPTED = "REMOTE_INTERRUPTED"


# =============================================================================
# Base Events
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


@dataclass(frozen=True)
class SessionEvent(Event):
    """Event raised by a specific live session; stale after reset()."""

    session_id: str


# =============================================================================
# Startup
# =============================================================================

@dataclass(frozen=True)
class CredentialMissing(Event):
    """The API credential is absent; the engine cannot connect."""

    reason: str


# =============================================================================
# Session lifecycle
# =============================================================================

@dataclass(frozen=True)
class SessionConnecting(SessionEvent):
    """A new session handle was requested (connect or reset)."""


@dataclass(frozen=True)
class SessionOpened(SessionEvent):
    """The service acknowledged setup; the session is usable."""


@dataclass(frozen=True)
class SessionError(SessionEvent):
    """Transport or setup failure."""

    reason: str


@dataclass(frozen=True)
class SessionClosed(SessionEvent):
    """The socket closed. Reported only; not retried."""

    reason: str


@dataclass(frozen=True)
class SessionReset(SessionEvent):
    """reset() replaced the previous session with session_id."""


@dataclass(frozen=True)
class SessionGoAway(SessionEvent):
    """The service announced it will close the session soon."""

    time_left: str


# =============================================================================
# User intents (microphone)
# =============================================================================

@dataclass(frozen=True)
class MicStart(Event):
    """User asked to start capturing."""


@dataclass(frozen=True)
class MicLock(Event):
    """User asked to pause capture and let the service respond."""


@dataclass(frozen=True)
class MicResume(Event):
    """User asked to resume capture after a lock."""


@dataclass(frozen=True)
class MicStop(Event):
    """User asked to stop capture entirely."""


# =============================================================================
# Capture feedback
# =============================================================================

@dataclass(frozen=True)
class CaptureStarted(Event):
    """The microphone pipeline is open."""


@dataclass(frozen=True)
class CaptureFailed(Event):
    """The microphone could not be opened."""

    reason: str


# =============================================================================
# Outbound content
# =============================================================================

@dataclass(frozen=True)
class SendRequested(Event):
    """User asked to send pending text / attachments."""

    has_text: bool
    attachment_count: int


@dataclass(frozen=True)
class SendCompleted(Event):
    """Content turn and end-of-turn marker were written to the session."""

    part_count: int


@dataclass(frozen=True)
class SendFailed(Event):
    """The content turn could not be transmitted."""

    reason: str


@dataclass(frozen=True)
class AttachmentSkipped(Event):
    """One attachment could not be encoded and was left out of the turn."""

    name: str
    reason: str


@dataclass(frozen=True)
class AttachmentsChanged(Event):
    """Pending attachment count changed (add / remove / clear)."""

    count: int


@dataclass(frozen=True)
class TransmissionFailed(Event):
    """A realtime chunk or an end-of-turn marker failed on the wire."""

    reason: str


# =============================================================================
# Inbound content
# =============================================================================

@dataclass(frozen=True)
class TranscriptUpdated(SessionEvent):
    """Streamed text for the current response turn grew."""

    text: str


@dataclass(frozen=True)
class RemoteTurnComplete(SessionEvent):
    """The service finished its turn; transcript was finalized."""

    text: str
    links: tuple[str, ...]


@dataclass(frozen=True)
class RemoteInterrupted(SessionEvent):
    """Barge-in: the service discarded its in-progress response."""

    units_stopped: int
