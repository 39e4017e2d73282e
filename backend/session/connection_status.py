"""
Pipeline status for a histogram run.

DISCONNECTED -> CONNECTING -> STREAMING -> {CLOSED_BY_PEER | IO_ERROR | SHUTDOWN}

A failed connect goes CONNECTING -> IO_ERROR. Terminal states are final:
there is no reconnect edge, reaching one ends the run.
"""
from enum import Enum


class PipelineStatus(str, Enum):
    """Connection/ingestion lifecycle, owned by HistogramClient."""
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    STREAMING = "STREAMING"
    CLOSED_BY_PEER = "CLOSED_BY_PEER"
    IO_ERROR = "IO_ERROR"
    SHUTDOWN = "SHUTDOWN"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    PipelineStatus.CLOSED_BY_PEER,
    PipelineStatus.IO_ERROR,
    PipelineStatus.SHUTDOWN,
})

ALLOWED_TRANSITIONS: dict[PipelineStatus, frozenset[PipelineStatus]] = {
    PipelineStatus.DISCONNECTED: frozenset({PipelineStatus.CONNECTING, PipelineStatus.SHUTDOWN}),
    PipelineStatus.CONNECTING: frozenset({
        PipelineStatus.STREAMING,
        PipelineStatus.IO_ERROR,
        PipelineStatus.SHUTDOWN,
    }),
    PipelineStatus.STREAMING: TERMINAL_STATUSES,
    PipelineStatus.CLOSED_BY_PEER: frozenset(),
    PipelineStatus.IO_ERROR: frozenset(),
    PipelineStatus.SHUTDOWN: frozenset(),
}


def can_transition(current: PipelineStatus, target: PipelineStatus) -> bool:
    """Return True if `current -> target` is an edge of the state machine."""
    return target in ALLOWED_TRANSITIONS[current]
