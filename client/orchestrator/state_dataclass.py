"""
Authoritative engine state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need, plus every field the
  presentation layer observes (status, error, transcript, links).
- No behavior; derived values are read-only properties only.
"""
from __future__ import annotations

from dataclasses import dataclass

from orchestrator.enums.state import TurnState
from session.connection_status import ConnectionStatus


@dataclass(frozen=True)
class EngineState:
    """Immutable snapshot of all engine-owned observable state."""

    # ------------------------------------------------------------------
    # Turn taking
    # ------------------------------------------------------------------

    turn_state: TurnState = TurnState.IDLE

    # True between an end-of-turn marker and the service's turn completion
    awaiting_response: bool = False

    # Where SENDING returns once the content turn is out (IDLE or LOCKED)
    resume_to: TurnState | None = None

    # Resume LOCKED -> LISTENING when the service completes its turn
    auto_resume: bool = False

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    session_id: str | None = None
    connection_status: ConnectionStatus = ConnectionStatus.DOWN

    # ------------------------------------------------------------------
    # Observable surface
    # ------------------------------------------------------------------

    status: str = ""
    error: str | None = None

    # Live text of the current response turn
    transcript: str = ""

    # Links extracted from the last completed response turn
    links: tuple[str, ...] = ()

    pending_attachments: int = 0

    @property
    def is_sending(self) -> bool:
        """True while a content turn is in flight."""
        return self.turn_state is TurnState.SENDING
