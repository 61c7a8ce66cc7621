"""
Side-effect command definitions for the engine.

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
- Reducer logic remains pure and deterministic.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
    - Commands are immutable value objects emitted by the reducer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    These are stable discriminants used for logging and runtime dispatch.
    """

    # Capture
    START_CAPTURE = "START_CAPTURE"
    STOP_CAPTURE = "STOP_CAPTURE"
    MUTE_CAPTURE = "MUTE_CAPTURE"
    UNMUTE_CAPTURE = "UNMUTE_CAPTURE"

    # Session
    SEND_TURN_COMPLETE = "SEND_TURN_COMPLETE"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Capture Commands
# =============================================================================

@dataclass(frozen=True)
class StartCapture(Command):
    """Open the microphone pipeline."""
    command_type: CommandType = CommandType.START_CAPTURE


@dataclass(frozen=True)
class StopCapture(Command):
    """Tear down the microphone pipeline and release the device."""
    command_type: CommandType = CommandType.STOP_CAPTURE


@dataclass(frozen=True)
class MuteCapture(Command):
    """Disable the device without teardown."""
    command_type: CommandType = CommandType.MUTE_CAPTURE


@dataclass(frozen=True)
class UnmuteCapture(Command):
    """Re-enable the device."""
    command_type: CommandType = CommandType.UNMUTE_CAPTURE


# =============================================================================
# Session Commands
# =============================================================================

@dataclass(frozen=True)
class SendTurnComplete(Command):
    """Send the explicit end-of-turn marker on the session channel."""
    command_type: CommandType = CommandType.SEND_TURN_COMPLETE


# =============================================================================
# Observability
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """
    Emit a structured log event.

    event must already contain the required fields (ts_ms, event_type,
    turn_state, decision).
    """
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
