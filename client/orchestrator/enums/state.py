"""
Authoritative turn state enumeration.

Rules:
- This enum defines ONLY the turn-taking states.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class TurnState(str, Enum):
    """
    Who may act on the microphone and the outbound channel.

    IDLE:      no capture running
    LISTENING: capture active, chunks flow upstream
    LOCKED:    capture muted, end-of-turn sent, awaiting the service
    SENDING:   a content turn is being transmitted; capture muted
    """

    IDLE = "IDLE"
    LISTENING = "LISTENING"
    LOCKED = "LOCKED"
    SENDING = "SENDING"
