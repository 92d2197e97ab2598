"""Health reporting and status types."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict

from connect_runtime.state import RunState


class AdapterState(str, Enum):
    """Health state for adapters and components."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    FAILED = "failed"

    @classmethod
    def from_run_state(cls, state: RunState) -> "AdapterState":
        if state is RunState.FAILED:
            return cls.FAILED
        if state in (RunState.RUNNING, RunState.POLLING):
            return cls.HEALTHY
        return cls.DEGRADED


@dataclass(frozen=True)
class HealthEvent:
    """Health event emitted by a component."""

    component: str
    status: AdapterState
    details: Dict[str, object] = field(default_factory=dict)


class HealthReporter:
    """
    Aggregates component health and exposes it to the gateway.

    Follows Observer pattern: managers emit events, reporter aggregates.
    """

    def __init__(self) -> None:
        """Initialize reporter with empty state."""
        self._latest: Dict[str, HealthEvent] = {}
        self._lock = threading.Lock()

    def emit(self, event: HealthEvent) -> None:
        """Record a new health event."""
        with self._lock:
            self._latest[event.component] = event

    def forget(self, component: str) -> None:
        with self._lock:
            self._latest.pop(component, None)

    def snapshot(self) -> Dict[str, object]:
        """Return current health snapshot."""
        with self._lock:
            events = dict(self._latest)

        states = [event.status for event in events.values()]
        if any(state is AdapterState.FAILED for state in states):
            overall = AdapterState.DEGRADED if any(s is AdapterState.HEALTHY for s in states) else AdapterState.FAILED
        elif all(state is AdapterState.HEALTHY for state in states):
            overall = AdapterState.HEALTHY
        else:
            overall = AdapterState.DEGRADED

        return {
            "status": overall.value,
            "components": {
                name: {"status": event.status.value, **event.details} for name, event in sorted(events.items())
            },
        }
