"""
Connection status tracking for the live session.

Connection lifecycle is tracked separately from the turn state machine:
connection_status: DOWN | CONNECTING | UP
"""
from enum import Enum


class ConnectionStatus(str, Enum):
    """
    Session connection lifecycle.

    Separate from and independent of TurnState.
    IDLE can occur with any ConnectionStatus.
    """
    DOWN = "DOWN"              # Never connected, failed, or closed
    CONNECTING = "CONNECTING"  # Socket opening / awaiting setupComplete
    UP = "UP"                  # Session ready for content and audio
