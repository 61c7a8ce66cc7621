"""
Turn state machine legality tests.

Reducer-only guarantees:
- Illegal transitions are explicit no-ops (logged, state unchanged)
- Lock mutes capture and sends the end-of-turn marker
- Sending always starts from a muted mic and returns where it started
"""

from orchestrator.commands import (
    LogEvent,
    MuteCapture,
    SendTurnComplete,
    StartCapture,
    StopCapture,
    UnmuteCapture,
)
from orchestrator.enums.state import TurnState
from orchestrator.events import (
    CaptureFailed,
    CaptureStarted,
    EventType,
    MicLock,
    MicResume,
    MicStart,
    MicStop,
    SendCompleted,
    SendFailed,
    SendRequested,
)
from orchestrator.reducer import reduce
from orchestrator.state_dataclass import EngineState


def _non_logs(cmds):
    return [c for c in cmds if not isinstance(c, LogEvent)]


def _ignored(state, event):
    new_state, cmds = reduce(state, event)
    assert new_state == state
    assert len(cmds) == 1
    assert isinstance(cmds[0], LogEvent)
    assert cmds[0].event["decision"] == "ignore"
    return cmds[0].event["details"]["reason"]


def test_start_from_idle_requests_capture():
    state = EngineState()

    new_state, cmds = reduce(state, MicStart(event_type=EventType.MIC_START, ts_ms=1))

    assert new_state.turn_state is TurnState.LISTENING
    assert _non_logs(cmds) == [StartCapture()]


def test_start_twice_is_idempotent():
    listening, _ = reduce(EngineState(), MicStart(event_type=EventType.MIC_START, ts_ms=1))

    reason = _ignored(listening, MicStart(event_type=EventType.MIC_START, ts_ms=2))

    assert reason == "already_capturing"


def test_lock_from_idle_is_rejected():
    reason = _ignored(EngineState(), MicLock(event_type=EventType.MIC_LOCK, ts_ms=0))

    assert reason == "lock_requires_listening"


def test_resume_from_listening_is_rejected():
    state = EngineState(turn_state=TurnState.LISTENING)

    reason = _ignored(state, MicResume(event_type=EventType.MIC_RESUME, ts_ms=0))

    assert reason == "resume_requires_locked"


def test_lock_mutes_and_sends_end_of_turn_marker():
    state = EngineState(turn_state=TurnState.LISTENING)

    new_state, cmds = reduce(state, MicLock(event_type=EventType.MIC_LOCK, ts_ms=0))

    assert new_state.turn_state is TurnState.LOCKED
    assert new_state.awaiting_response is True
    assert _non_logs(cmds) == [MuteCapture(), SendTurnComplete()]


def test_resume_unmutes():
    state = EngineState(turn_state=TurnState.LOCKED)

    new_state, cmds = reduce(state, MicResume(event_type=EventType.MIC_RESUME, ts_ms=0))

    assert new_state.turn_state is TurnState.LISTENING
    assert _non_logs(cmds) == [UnmuteCapture()]


def test_stop_from_listening_or_locked_returns_to_idle():
    for turn_state in (TurnState.LISTENING, TurnState.LOCKED):
        new_state, cmds = reduce(
            EngineState(turn_state=turn_state),
            MicStop(event_type=EventType.MIC_STOP, ts_ms=0),
        )
        assert new_state.turn_state is TurnState.IDLE
        assert _non_logs(cmds) == [StopCapture()]


def test_stop_in_idle_is_noop():
    assert _ignored(EngineState(), MicStop(event_type=EventType.MIC_STOP, ts_ms=0))


def test_capture_failure_returns_to_idle_with_error():
    listening, _ = reduce(EngineState(), MicStart(event_type=EventType.MIC_START, ts_ms=0))

    new_state, cmds = reduce(
        listening,
        CaptureFailed(event_type=EventType.CAPTURE_FAILED, ts_ms=1, reason="access denied"),
    )

    assert new_state.turn_state is TurnState.IDLE
    assert new_state.status == "Error: access denied"
    assert new_state.error == "access denied"
    assert _non_logs(cmds) == [StopCapture()]


def test_capture_started_sets_recording_status():
    listening, _ = reduce(EngineState(), MicStart(event_type=EventType.MIC_START, ts_ms=0))

    new_state, _ = reduce(listening, CaptureStarted(event_type=EventType.CAPTURE_STARTED, ts_ms=1))

    assert new_state.status.startswith("Recording")


def test_send_from_listening_requires_lock_first():
    state = EngineState(turn_state=TurnState.LISTENING)
    event = SendRequested(
        event_type=EventType.SEND_REQUESTED, ts_ms=0, has_text=True, attachment_count=0
    )

    assert _ignored(state, event) == "lock_required_before_send"


def test_send_round_trip_returns_to_locked():
    locked = EngineState(turn_state=TurnState.LOCKED)

    sending, _ = reduce(
        locked,
        SendRequested(
            event_type=EventType.SEND_REQUESTED, ts_ms=0, has_text=True, attachment_count=1
        ),
    )
    assert sending.is_sending
    assert sending.resume_to is TurnState.LOCKED

    done, cmds = reduce(sending, SendCompleted(event_type=EventType.SEND_COMPLETED, ts_ms=1, part_count=2))

    assert done.turn_state is TurnState.LOCKED
    assert done.resume_to is None
    assert done.awaiting_response is True
    assert _non_logs(cmds) == []


def test_second_send_while_sending_is_ignored():
    sending = EngineState(turn_state=TurnState.SENDING, resume_to=TurnState.IDLE)
    event = SendRequested(
        event_type=EventType.SEND_REQUESTED, ts_ms=0, has_text=True, attachment_count=0
    )

    assert _ignored(sending, event) == "send_in_flight"


def test_empty_send_is_ignored():
    event = SendRequested(
        event_type=EventType.SEND_REQUESTED, ts_ms=0, has_text=False, attachment_count=0
    )

    assert _ignored(EngineState(), event) == "nothing_to_send"


def test_send_failure_restores_previous_state_and_reports():
    sending = EngineState(turn_state=TurnState.SENDING, resume_to=TurnState.IDLE)

    new_state, _ = reduce(sending, SendFailed(event_type=EventType.SEND_FAILED, ts_ms=0, reason="boom"))

    assert new_state.turn_state is TurnState.IDLE
    assert new_state.error == "boom"


def test_stop_during_send_lands_in_idle():
    sending = EngineState(turn_state=TurnState.SENDING, resume_to=TurnState.LOCKED)

    stopped, cmds = reduce(sending, MicStop(event_type=EventType.MIC_STOP, ts_ms=0))
    assert stopped.turn_state is TurnState.SENDING
    assert _non_logs(cmds) == [StopCapture()]

    done, _ = reduce(stopped, SendCompleted(event_type=EventType.SEND_COMPLETED, ts_ms=1, part_count=1))
    assert done.turn_state is TurnState.IDLE
