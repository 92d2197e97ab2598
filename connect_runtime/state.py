"""Lifecycle states shared by poll and stream executors."""

from enum import Enum


class RunState(str, Enum):
    """Lifecycle state of a producing context."""

    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    POLLING = "polling"
    RUNNING = "running"
    STOPPED = "stopped"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.STOPPED, RunState.FAILED)
