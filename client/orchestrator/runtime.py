"""
Runtime execution shell for the live engine.

Responsibilities:
- Own the authoritative engine state
- Call the pure reducer
- Execute commands with side effects (capture control, end-of-turn marker)
- Convert command outcomes into follow-up events
- Notify state observers
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Callable

from errors import MicrophonePermissionError, TransmissionError
from observability.logger import log_event
from orchestrator.commands import (
    Command,
    LogEvent,
    MuteCapture,
    SendTurnComplete,
    StartCapture,
    StopCapture,
    UnmuteCapture,
)
from orchestrator.events import (
    CaptureFailed,
    CaptureStarted,
    Event,
    EventType,
    TransmissionFailed,
)
from orchestrator.reducer import reduce
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import EngineState


StateObserver = Callable[[EngineState], None]


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class Runtime:
    """
    Runtime execution boundary for the live engine.

    Architectural role:
    Runtime is the bridge between the pure orchestration layer
    (reducer + immutable state) and the imperative world
    (capture device, session channel, logging).

    Guarantees:
    - Reducer is called exactly once per event
    - Events are serialized: handle_event() holds a lock for the whole
      reduce -> execute cycle, including follow-up events raised by
      command execution
    - State is swapped in before any command executes
    - Commands execute in reducer-emitted order
    """

    def __init__(
        self,
        *,
        initial_state: EngineState,
        context: RuntimeExecutionContext,
    ) -> None:
        self._state = initial_state
        self._ctx = context
        self._lock = asyncio.Lock()
        self._pending: deque[Event] = deque()
        self._observers: list[StateObserver] = []

    @property
    def state(self) -> EngineState:
        """
        Return the current immutable engine state.

        Consumers must never modify this state directly.
        """
        return self._state

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, observer: StateObserver) -> None:
        """Register observer; it receives every new state after a change."""
        if observer not in self._observers:
            self._observers.append(observer)

    def unsubscribe(self, observer: StateObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _notify(self, state: EngineState) -> None:
        for observer in list(self._observers):
            try:
                observer(state)
            except Exception as e:
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "OBSERVER_ERROR",
                    "session_id": state.session_id,
                    "observer": getattr(observer, "__qualname__", repr(observer)),
                    "error": repr(e),
                })

    # ------------------------------------------------------------------
    # Event entry point
    # ------------------------------------------------------------------

    async def handle_event(self, event: Event) -> None:
        """
        Process a single event through the orchestration pipeline.

        Processing steps:
        1. Pass the current state and event to the pure reducer
        2. Atomically swap in the new state
        3. Notify observers if the state changed
        4. Execute all emitted commands sequentially
        5. Repeat for any follow-up events the commands produced

        This method is the *only* entry point for events affecting engine
        state. All event sources converge here: user operations, the
        session controller, and command outcomes.
        """
        async with self._lock:
            self._pending.append(event)
            while self._pending:
                await self._process(self._pending.popleft())

    async def _process(self, event: Event) -> None:
        new_state, commands = reduce(self._state, event)
        changed = new_state != self._state
        self._state = new_state

        if changed:
            self._notify(new_state)

        for cmd in commands:
            await self._execute_command(cmd)

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    async def _execute_command(self, cmd: Command) -> None:
        """Execute a single command with side effects."""

        if isinstance(cmd, LogEvent):
            log_event({
                **cmd.event,
                "session_id": self._state.session_id,
            })

        elif isinstance(cmd, StartCapture):
            try:
                await self._ctx.capture.start()
            except MicrophonePermissionError as e:
                self._pending.append(
                    CaptureFailed(
                        event_type=EventType.CAPTURE_FAILED,
                        ts_ms=_now_ms(),
                        reason=str(e),
                    )
                )
            else:
                self._pending.append(
                    CaptureStarted(
                        event_type=EventType.CAPTURE_STARTED,
                        ts_ms=_now_ms(),
                    )
                )

        elif isinstance(cmd, StopCapture):
            self._ctx.capture.stop()

        elif isinstance(cmd, MuteCapture):
            self._ctx.capture.mute()

        elif isinstance(cmd, UnmuteCapture):
            self._ctx.capture.unmute()

        elif isinstance(cmd, SendTurnComplete):
            try:
                await self._ctx.channel.mark_turn_complete()
            except TransmissionError as e:
                self._pending.append(
                    TransmissionFailed(
                        event_type=EventType.TRANSMISSION_FAILED,
                        ts_ms=_now_ms(),
                        reason=str(e),
                    )
                )

        else:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "UNKNOWN_COMMAND",
                "session_id": self._state.session_id,
                "command_type": getattr(cmd, "command_type", None),
            })
