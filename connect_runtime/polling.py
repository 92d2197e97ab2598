"""Fixed-interval executor for pull adapters."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, Optional, Sequence

from connect_runtime.connection import ConnectionHandle, ReadItem, ReadRequest, ReadResponse
from connect_runtime.errors import (
    AdapterConnectionError,
    AdapterError,
    AdapterStartError,
    ConfigError,
    ConfigErrorKind,
    FieldReadError,
    TickError,
)
from connect_runtime.pipeline import Event, EventPipeline
from connect_runtime.schema import MODBUS_TYPES, TIMESTAMP_FIELD, CanonicalType, NodeConfig, SchemaInferencer
from connect_runtime.state import RunState

logger = logging.getLogger(__name__)


class TimeUnit(str, Enum):
    """Unit of a polling interval."""

    MILLISECONDS = "MILLISECONDS"
    SECONDS = "SECONDS"
    MINUTES = "MINUTES"
    HOURS = "HOURS"

    @property
    def seconds(self) -> float:
        return {
            TimeUnit.MILLISECONDS: 0.001,
            TimeUnit.SECONDS: 1.0,
            TimeUnit.MINUTES: 60.0,
            TimeUnit.HOURS: 3600.0,
        }[self]


@dataclass(frozen=True)
class PollingSettings:
    """How often a pull adapter reads its source."""

    unit: TimeUnit = TimeUnit.SECONDS
    value: int = 1

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int) or self.value <= 0:
            raise ConfigError(
                f"Polling interval must be a positive integer, got {self.value!r}",
                ConfigErrorKind.INVALID_VALUE,
                "value",
            )

    @classmethod
    def of(cls, unit: TimeUnit, value: int) -> "PollingSettings":
        return cls(unit=unit, value=value)

    @classmethod
    def from_dict(cls, raw: Optional[Mapping[str, object]]) -> "PollingSettings":
        """Parse ``{"unit": ..., "value": ...}``; missing keys fall back to one second."""
        if not raw:
            return cls()
        try:
            unit = TimeUnit(str(raw.get("unit", TimeUnit.SECONDS.value)).upper())
        except ValueError as exc:
            raise ConfigError(f"Unknown time unit: {raw.get('unit')}", ConfigErrorKind.TYPE_MISMATCH, "unit") from exc
        return cls(unit=unit, value=raw.get("value", 1))  # type: ignore[arg-type]

    @property
    def seconds(self) -> float:
        return self.value * self.unit.seconds


def now_millis() -> int:
    return int(time.time() * 1000)


class PollExecutor:
    """
    Drives a pull adapter: connect once, then read every interval.

    One scheduler thread runs ticks at a fixed rate. A tick that overruns the
    interval causes the missed firings to be skipped, so reads for one
    instance never overlap.
    """

    def __init__(
        self,
        name: str,
        nodes: Sequence[NodeConfig],
        opener: Callable[[], ConnectionHandle],
        pipeline: EventPipeline,
        settings: Optional[PollingSettings] = None,
        type_table: Mapping[str, CanonicalType] = MODBUS_TYPES,
    ) -> None:
        """Resolve node types up front; an unsupported tag or reserved name raises SchemaError here."""
        inferencer = SchemaInferencer(type_table)
        self._name = name
        self._nodes = tuple(nodes)
        inferencer.check_reserved(self._nodes)
        self._types = tuple(inferencer.canonical_type(node.type_tag) for node in self._nodes)
        self._request = ReadRequest.of(
            ReadItem(name=node.source_name, address=node.address, type_tag=node.type_tag) for node in self._nodes
        )
        self._opener = opener
        self._pipeline = pipeline
        self._settings = settings or PollingSettings()

        self._state = RunState.IDLE
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._handle: Optional[ConnectionHandle] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def settings(self) -> PollingSettings:
        return self._settings

    def connect(self) -> None:
        """Open the connection handle and verify it can read."""
        with self._lock:
            if self._state is RunState.FAILED:
                raise AdapterStartError(f"{self._name} failed earlier and must be rebuilt")
            if self._state is not RunState.IDLE:
                raise AdapterStartError(f"{self._name} is already {self._state.value}")
            self._state = RunState.CONNECTING

        try:
            handle = self._opener()
        except AdapterError:
            self._fail()
            raise
        except Exception as exc:
            self._fail()
            raise AdapterConnectionError(f"Could not establish a connection for {self._name}: {exc}") from exc

        try:
            readable = handle.can_read()
        except Exception as exc:
            readable = False
            logger.debug("%s capability check raised: %s", self._name, exc)

        if not readable:
            self._fail()
            self._close_quietly(handle)
            raise AdapterConnectionError(f"The device behind {self._name} does not support reading data")

        with self._lock:
            if not self._stop_event.is_set():
                self._handle = handle
                self._state = RunState.CONNECTED
                handle = None
        if handle is not None:
            # stop() ran while the opener was blocked.
            self._close_quietly(handle)
            logger.info("%s stopped while connecting", self._name)
            return None
        logger.info("%s connected", self._name)

    def start(self) -> None:
        """Start the polling thread, connecting first if needed."""
        if self._state is RunState.IDLE:
            self.connect()

        with self._lock:
            if self._stop_event.is_set():
                return None
            if self._state is not RunState.CONNECTED:
                raise AdapterStartError(f"{self._name} cannot start polling while {self._state.value}")
            self._state = RunState.POLLING
            self._thread = threading.Thread(target=self._run, name=f"poll-{self._name}", daemon=True)
            self._thread.start()

        logger.info("%s polling every %.3fs", self._name, self._settings.seconds)

    def stop(self) -> None:
        """Cancel the schedule, let an in-flight tick finish, close the handle once."""
        with self._lock:
            if self._state in (RunState.STOPPED, RunState.FAILED):
                return None
            self._state = RunState.STOPPED
            self._stop_event.set()
            thread = self._thread

        if thread is not None and thread is not threading.current_thread():
            thread.join()

        with self._lock:
            handle, self._handle = self._handle, None
        if handle is not None:
            self._close_quietly(handle)
        logger.info("%s stopped", self._name)

    def tick(self) -> Optional[Event]:
        """Run one read cycle and emit the resulting event, if any."""
        handle = self._handle
        if handle is None:
            logger.error("%s: %s", self._name, TickError("no open connection"))
            return None

        try:
            response = handle.read(self._request)
        except Exception as exc:
            logger.error("%s: %s", self._name, TickError(f"read cycle failed: {exc}"))
            return None

        event: Event = {}
        for node, canonical in zip(self._nodes, self._types):
            try:
                event[node.runtime_name] = self._field_value(node, canonical, response)
            except FieldReadError as err:
                logger.warning("%s %s", self._name, err)

        event[TIMESTAMP_FIELD] = now_millis()

        try:
            self._pipeline.process(event)
        except Exception:
            logger.exception("%s: pipeline rejected event", self._name)
            return None
        return event

    def _run(self) -> None:
        interval = self._settings.seconds
        next_run = time.monotonic()

        while not self._stop_event.is_set():
            delay = next_run - time.monotonic()
            if delay > 0 and self._stop_event.wait(delay):
                break

            self.tick()

            next_run += interval
            behind = time.monotonic() - next_run
            if behind > 0:
                skipped = int(behind // interval) + 1
                next_run += skipped * interval
                logger.debug("%s skipped %d tick(s) after a slow read", self._name, skipped)

    @staticmethod
    def _field_value(node: NodeConfig, canonical: CanonicalType, response: ReadResponse) -> object:
        reading = response.reading(node.source_name)
        if not reading.ok:
            raise FieldReadError(node.source_name, reading.code.value)
        try:
            return canonical.coerce(reading.value)
        except (TypeError, ValueError) as exc:
            raise FieldReadError(node.source_name, str(exc)) from exc

    def _fail(self) -> None:
        with self._lock:
            if not self._stop_event.is_set():
                self._state = RunState.FAILED

    def _close_quietly(self, handle: ConnectionHandle) -> None:
        try:
            handle.close()
        except Exception:
            logger.exception("%s: error while closing connection", self._name)
