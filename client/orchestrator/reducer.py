"""
Pure engine reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (state, event) pair is handled or explicitly ignored (logged).

Turn state machine:

    IDLE --MicStart--> LISTENING --MicLock--> LOCKED --MicResume--> LISTENING
    LISTENING | LOCKED --MicStop--> IDLE
    IDLE | LOCKED --SendRequested--> SENDING --SendCompleted/Failed--> back

There is no IDLE -> LOCKED edge. A send while LISTENING must be preceded by
a MicLock (the runtime issues it), so SENDING always starts from a muted mic.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from orchestrator.commands import (
    Command,
    LogEvent,
    MuteCapture,
    SendTurnComplete,
    StartCapture,
    StopCapture,
    UnmuteCapture,
)
from orchestrator.enums.state import TurnState
from orchestrator.events import (
    AttachmentSkipped,
    AttachmentsChanged,
    CaptureFailed,
    CaptureStarted,
    CredentialMissing,
    Event,
    MicLock,
    MicResume,
    MicStart,
    MicStop,
    RemoteInterrupted,
    RemoteTurnComplete,
    SendCompleted,
    SendFailed,
    SendRequested,
    SessionClosed,
    SessionConnecting,
    SessionError,
    SessionEvent,
    SessionGoAway,
    SessionOpened,
    SessionReset,
    TranscriptUpdated,
    TransmissionFailed,
)
from orchestrator.state_dataclass import EngineState
from session.connection_status import ConnectionStatus
from spec import (
    STATUS_CLOSED_PREFIX,
    STATUS_CONNECTING,
    STATUS_OPENED,
    STATUS_PAUSED,
    STATUS_RECORDING,
    STATUS_REQUESTING_MIC,
    STATUS_RESUMED,
    STATUS_SENDING,
    STATUS_SENT,
    STATUS_SESSION_CLEARED,
    STATUS_STOPPED,
)


Result = tuple[EngineState, tuple[Command, ...]]


# =============================================================================
# Small helpers
# =============================================================================

def _log(
    state: EngineState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "turn_state": state.turn_state.value,
            "connection_status": state.connection_status.value,
            "event_type": event.event_type.value,
            "decision": decision,
            "awaiting_response": state.awaiting_response,
            "details": details or {},
        }
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    non_logs: list[Command] = []
    logs: list[Command] = []
    state_change_logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            if command.event.get("decision") == "state_changed":
                state_change_logs.append(command)
            else:
                logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs + state_change_logs)


def _ignore(state: EngineState, event: Event, reason: str) -> Result:
    return state, (_log(state, event, "ignore", {"reason": reason}),)


def _transition(
    state: EngineState,
    new_state: EngineState,
    event: Event,
    decision: str,
    commands: tuple[Command, ...] = (),
    details: dict[str, Any] | None = None,
) -> Result:
    """Apply new_state, logging the decision and any turn state change."""
    cmds: tuple[Command, ...] = commands + (_log(new_state, event, decision, details),)

    if new_state.turn_state is not state.turn_state:
        cmds += (
            _log(
                new_state,
                event,
                "state_changed",
                {
                    "from_state": state.turn_state.value,
                    "to_state": new_state.turn_state.value,
                    "source": decision,
                },
            ),
        )

    return new_state, _logs_last(cmds)


# =============================================================================
# Session lifecycle
# =============================================================================

def _reduce_session(state: EngineState, event: SessionEvent) -> Result:
    if isinstance(event, SessionConnecting):
        return _transition(
            state,
            replace(
                state,
                session_id=event.session_id,
                connection_status=ConnectionStatus.CONNECTING,
                status=STATUS_CONNECTING,
                error=None,
            ),
            event,
            "session_connecting",
            details={"session_id": event.session_id},
        )

    # Everything below belongs to one specific session.
    if event.session_id != state.session_id:
        return _ignore(state, event, "stale_session")

    if isinstance(event, SessionReset):
        return _transition(
            state,
            replace(
                state,
                transcript="",
                links=(),
                awaiting_response=False,
                pending_attachments=0,
                status=STATUS_SESSION_CLEARED,
            ),
            event,
            "session_reset",
        )

    if isinstance(event, SessionOpened):
        return _transition(
            state,
            replace(
                state,
                connection_status=ConnectionStatus.UP,
                status=STATUS_OPENED,
                error=None,
            ),
            event,
            "session_opened",
        )

    if isinstance(event, SessionError):
        connection = state.connection_status
        if connection is ConnectionStatus.CONNECTING:
            connection = ConnectionStatus.DOWN
        return _transition(
            state,
            replace(state, connection_status=connection, error=event.reason),
            event,
            "session_error",
            details={"reason": event.reason},
        )

    if isinstance(event, SessionClosed):
        return _transition(
            state,
            replace(
                state,
                connection_status=ConnectionStatus.DOWN,
                awaiting_response=False,
                status=f"{STATUS_CLOSED_PREFIX}{event.reason}",
            ),
            event,
            "session_closed",
            details={"reason": event.reason},
        )

    if isinstance(event, SessionGoAway):
        return _transition(
            state,
            replace(state, status=f"Session ending soon ({event.time_left})"),
            event,
            "session_go_away",
        )

    if isinstance(event, TranscriptUpdated):
        return replace(state, transcript=event.text), ()

    if isinstance(event, RemoteTurnComplete):
        new_state = replace(
            state,
            transcript="",
            links=event.links,
            awaiting_response=False,
        )
        cmds: tuple[Command, ...] = ()
        decision = "remote_turn_complete"

        if state.auto_resume and state.turn_state is TurnState.LOCKED:
            new_state = replace(new_state, turn_state=TurnState.LISTENING, status=STATUS_RESUMED)
            cmds = (UnmuteCapture(),)
            decision = "remote_turn_complete_auto_resume"

        return _transition(
            state,
            new_state,
            event,
            decision,
            cmds,
            details={"chars": len(event.text), "links": len(event.links)},
        )

    if isinstance(event, RemoteInterrupted):
        return state, (
            _log(state, event, "playback_flushed", {"units_stopped": event.units_stopped}),
        )

    return _ignore(state, event, "unhandled_session_event")


# =============================================================================
# Microphone
# =============================================================================

def _reduce_mic_start(state: EngineState, event: MicStart) -> Result:
    if state.turn_state is TurnState.IDLE:
        return _transition(
            state,
            replace(state, turn_state=TurnState.LISTENING, status=STATUS_REQUESTING_MIC),
            event,
            "start_capture",
            (StartCapture(),),
        )

    if state.turn_state is TurnState.SENDING:
        return _ignore(state, event, "send_in_flight")

    return _ignore(state, event, "already_capturing")


def _reduce_mic_lock(state: EngineState, event: MicLock) -> Result:
    if state.turn_state is not TurnState.LISTENING:
        return _ignore(state, event, "lock_requires_listening")

    return _transition(
        state,
        replace(
            state,
            turn_state=TurnState.LOCKED,
            awaiting_response=True,
            status=STATUS_PAUSED,
        ),
        event,
        "lock",
        (MuteCapture(), SendTurnComplete()),
    )


def _reduce_mic_resume(state: EngineState, event: MicResume) -> Result:
    if state.turn_state is not TurnState.LOCKED:
        return _ignore(state, event, "resume_requires_locked")

    return _transition(
        state,
        replace(state, turn_state=TurnState.LISTENING, status=STATUS_RESUMED),
        event,
        "resume",
        (UnmuteCapture(),),
    )


def _reduce_mic_stop(state: EngineState, event: MicStop) -> Result:
    if state.turn_state in (TurnState.LISTENING, TurnState.LOCKED):
        return _transition(
            state,
            replace(state, turn_state=TurnState.IDLE, status=STATUS_STOPPED),
            event,
            "stop_capture",
            (StopCapture(),),
        )

    if state.turn_state is TurnState.SENDING and state.resume_to is TurnState.LOCKED:
        # Finish the send, then land in IDLE instead of LOCKED.
        return _transition(
            state,
            replace(state, resume_to=TurnState.IDLE, status=STATUS_STOPPED),
            event,
            "stop_capture_during_send",
            (StopCapture(),),
        )

    return _ignore(state, event, "mic_stop_noop_in_idle")


def _reduce_capture(state: EngineState, event: CaptureStarted | CaptureFailed) -> Result:
    if isinstance(event, CaptureStarted):
        if state.turn_state is not TurnState.LISTENING:
            return _ignore(state, event, "capture_started_outside_listening")
        return _transition(
            state,
            replace(state, status=STATUS_RECORDING),
            event,
            "capture_started",
        )

    failed = replace(state, status=f"Error: {event.reason}", error=event.reason)

    if state.turn_state in (TurnState.LISTENING, TurnState.LOCKED):
        return _transition(
            state,
            replace(failed, turn_state=TurnState.IDLE),
            event,
            "capture_failed",
            (StopCapture(),),
            details={"reason": event.reason},
        )

    if state.turn_state is TurnState.SENDING and state.resume_to is TurnState.LOCKED:
        return _transition(
            state,
            replace(failed, resume_to=TurnState.IDLE),
            event,
            "capture_failed_during_send",
            (StopCapture(),),
            details={"reason": event.reason},
        )

    return _transition(state, failed, event, "capture_failed", details={"reason": event.reason})


# =============================================================================
# Outbound content
# =============================================================================

def _reduce_send(
    state: EngineState,
    event: SendRequested | SendCompleted | SendFailed,
) -> Result:
    if isinstance(event, SendRequested):
        if not event.has_text and event.attachment_count == 0:
            return _ignore(state, event, "nothing_to_send")
        if state.turn_state is TurnState.SENDING:
            return _ignore(state, event, "send_in_flight")
        if state.turn_state is TurnState.LISTENING:
            return _ignore(state, event, "lock_required_before_send")

        return _transition(
            state,
            replace(
                state,
                turn_state=TurnState.SENDING,
                resume_to=state.turn_state,
                status=STATUS_SENDING,
                error=None,
            ),
            event,
            "send_started",
            details={
                "has_text": event.has_text,
                "attachments": event.attachment_count,
            },
        )

    if state.turn_state is not TurnState.SENDING:
        if isinstance(event, SendFailed):
            return _transition(
                state,
                replace(state, error=event.reason),
                event,
                "send_failed_outside_sending",
            )
        return _ignore(state, event, "no_send_in_flight")

    back_to = state.resume_to or TurnState.IDLE

    if isinstance(event, SendCompleted):
        return _transition(
            state,
            replace(
                state,
                turn_state=back_to,
                resume_to=None,
                awaiting_response=True,
                status=STATUS_SENT,
            ),
            event,
            "send_completed",
            details={"parts": event.part_count},
        )

    return _transition(
        state,
        replace(state, turn_state=back_to, resume_to=None, error=event.reason),
        event,
        "send_failed",
        details={"reason": event.reason},
    )


# =============================================================================
# Reducer entrypoint
# =============================================================================

def reduce(state: EngineState, event: Event) -> Result:
    """
    Pure reducer for the live engine.

    Given the current engine state and a single event, returns:
    - the next state
    - a tuple of commands describing required side effects

    Properties:
    - Deterministic: no IO, clocks, or randomness
    - Total: every (state, event) pair is handled or explicitly ignored
    - Session-safe: ignores events from a session replaced by reset()
    """
    if isinstance(event, CredentialMissing):
        return _transition(
            state,
            replace(
                state,
                connection_status=ConnectionStatus.DOWN,
                status=event.reason,
                error=event.reason,
            ),
            event,
            "credential_missing",
        )

    if isinstance(event, SessionEvent):
        return _reduce_session(state, event)

    if isinstance(event, MicStart):
        return _reduce_mic_start(state, event)

    if isinstance(event, MicLock):
        return _reduce_mic_lock(state, event)

    if isinstance(event, MicResume):
        return _reduce_mic_resume(state, event)

    if isinstance(event, MicStop):
        return _reduce_mic_stop(state, event)

    if isinstance(event, (CaptureStarted, CaptureFailed)):
        return _reduce_capture(state, event)

    if isinstance(event, (SendRequested, SendCompleted, SendFailed)):
        return _reduce_send(state, event)

    if isinstance(event, AttachmentSkipped):
        return _transition(
            state,
            replace(state, error=f"{event.name}: {event.reason}"),
            event,
            "attachment_skipped",
            details={"name": event.name},
        )

    if isinstance(event, AttachmentsChanged):
        return replace(state, pending_attachments=event.count), ()

    if isinstance(event, TransmissionFailed):
        return _transition(
            state,
            replace(state, error=event.reason),
            event,
            "transmission_failed",
            details={"reason": event.reason},
        )

    return _ignore(state, event, "unknown_event")
