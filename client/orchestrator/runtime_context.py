"""
Runtime execution context.

Provides Runtime with live access to the engine-owned imperative resources
needed for command execution (capture pipeline, session channel).

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Zero orchestration logic
- Zero state mutation
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


# ---------------------------------------------------------------------
# Capability Protocols
# ---------------------------------------------------------------------

@runtime_checkable
class CaptureProtocol(Protocol):
    async def start(self) -> None: ...
    def stop(self) -> None: ...
    def mute(self) -> None: ...
    def unmute(self) -> None: ...


@runtime_checkable
class TurnSignalProtocol(Protocol):
    """Session channel capability: the explicit end-of-turn marker."""

    @property
    def session_id(self) -> str | None: ...

    async def mark_turn_complete(self) -> None:
        """
        Send the end-of-turn marker, queued behind session readiness.

        Raises:
            TransmissionError if the marker cannot be written.
        """


# ---------------------------------------------------------------------
# Runtime Execution Context
# ---------------------------------------------------------------------

class RuntimeExecutionContext:
    """
    Imperative execution context for Runtime.

    Runtime is allowed to:
    - Drive the capture pipeline
    - Send the end-of-turn marker

    Runtime is NOT allowed to:
    - Mutate engine state directly
    - Perform orchestration decisions
    """

    def __init__(
        self,
        *,
        capture: CaptureProtocol,
        channel: TurnSignalProtocol,
    ) -> None:
        self.capture = capture
        self.channel = channel

    @property
    def session_id(self) -> str | None:
        return self.channel.session_id
