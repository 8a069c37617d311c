"""
Doubao streaming session lifecycle states.

IDLE -> CONNECTING -> CONNECTED -> AWAITING_FULL_ACK -> STREAMING_SEGMENTS -> CLOSED
ERRORED is terminal and reachable from any non-IDLE state.

Pure data; transitions live in DoubaoStreamingASRClient.
"""

from __future__ import annotations

from enum import Enum


class SessionState(str, Enum):
    """
    Lifecycle of one provider connection.

    Separate from whatever the caller does with the yielded responses.
    """

    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    AWAITING_FULL_ACK = "AWAITING_FULL_ACK"
    STREAMING_SEGMENTS = "STREAMING_SEGMENTS"
    CLOSED = "CLOSED"
    ERRORED = "ERRORED"


TERMINAL_STATES: frozenset[SessionState] = frozenset({
    SessionState.CLOSED,
    SessionState.ERRORED,
})
