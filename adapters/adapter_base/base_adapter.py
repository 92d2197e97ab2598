"""Abstract base adapter classes."""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

from connect_runtime.connection import ConnectionHandle
from connect_runtime.description import AdapterDescription
from connect_runtime.errors import AdapterError, AdapterStartError
from connect_runtime.extractor import ConfigurationExtractor
from connect_runtime.pipeline import Event, EventPipeline
from connect_runtime.polling import PollExecutor, PollingSettings
from connect_runtime.schema import MODBUS_TYPES, EventSchema, NodeConfig
from connect_runtime.state import RunState
from connect_runtime.streaming import StreamConsumer, Subscription

logger = logging.getLogger(__name__)


class BaseAdapter:
    """
    Abstract base class for all adapters.

    Template Method pattern:
    start() guards the lifecycle and calls start_adapter(); stop() calls
    stop_adapter(). A start that fails with a config, schema or connection
    error leaves the instance FAILED; it must be rebuilt from its description.

    stop() may arrive from another thread while start() is still connecting.
    The request is recorded under the lock and start_adapter() releases
    whatever it opened afterwards, so nothing is produced once stop() returns.
    """

    ID = ""

    def __init__(self, description: AdapterDescription, pipeline: EventPipeline) -> None:
        """Initialize adapter with its description and output pipeline."""
        self._description = description
        self._pipeline = pipeline
        self._lock = threading.RLock()
        self._failed: Optional[str] = None
        self._started = False
        self._running = False
        self._stopped = False

    @classmethod
    def declare_model(cls) -> AdapterDescription:
        """Describe the adapter and the user inputs it requires."""
        raise NotImplementedError

    def get_schema(self) -> EventSchema:
        """Return the schema of the events this adapter emits."""
        raise NotImplementedError

    @property
    def adapter_id(self) -> str:
        return self.ID

    @property
    def description(self) -> AdapterDescription:
        return self._description

    @property
    def extractor(self) -> ConfigurationExtractor:
        return ConfigurationExtractor.from_description(self._description)

    @property
    def state(self) -> RunState:
        with self._lock:
            if self._failed is not None:
                return RunState.FAILED
            if self._stopped:
                return RunState.STOPPED
            if self._running:
                return RunState.RUNNING
            return RunState.CONNECTING if self._started else RunState.IDLE

    def start(self) -> None:
        """Run adapter lifecycle until stop() is called."""
        with self._lock:
            if self._failed is not None:
                raise AdapterStartError(f"Adapter {self.ID} failed ({self._failed}); rebuild it before starting again")
            if self._started:
                raise AdapterStartError(f"Adapter {self.ID} already started")
            if self._stopped:
                raise AdapterStartError(f"Adapter {self.ID} was stopped; rebuild it before starting again")
            self._started = True

        try:
            self.start_adapter()
        except AdapterError as exc:
            with self._lock:
                if self._stopped:
                    logger.info("adapter %s stopped while starting", self.ID)
                    return None
                self._failed = str(exc)
            logger.error("adapter %s failed to start: %s", self.ID, exc)
            raise

        with self._lock:
            if self._stopped:
                logger.info("adapter %s stopped while starting", self.ID)
                return None
            self._running = True
        logger.info("adapter %s started", self.ID)

    def stop(self) -> None:
        """Stop the adapter; safe to call more than once, and before start() has finished."""
        with self._lock:
            if self._stopped:
                return None
            self._stopped = True
            started = self._started
        if started:
            self.stop_adapter()
        logger.info("adapter %s stopped", self.ID)

    def start_adapter(self) -> None:
        """Acquire resources and begin producing events."""
        raise NotImplementedError

    def stop_adapter(self) -> None:
        """Release resources; no events may be produced afterwards."""
        raise NotImplementedError

    def health(self) -> Dict[str, object]:
        """Return adapter health status."""
        status: Dict[str, object] = {"adapter": self.ID, "state": self.state.value}
        if self._failed is not None:
            status["error"] = self._failed
        return status


class PullAdapter(BaseAdapter):
    """Adapter that reads its source on a fixed interval."""

    type_table = MODBUS_TYPES

    def __init__(self, description: AdapterDescription, pipeline: EventPipeline) -> None:
        super().__init__(description, pipeline)
        self._executor: Optional[PollExecutor] = None

    def nodes(self) -> List[NodeConfig]:
        """Return the fields to read on every tick."""
        raise NotImplementedError

    def open_connection(self) -> ConnectionHandle:
        """Open the connection handle to the source."""
        raise NotImplementedError

    def polling_interval(self) -> PollingSettings:
        """Return polling interval for this adapter, default is one second."""
        return PollingSettings()

    def before(self) -> None:
        """Extract configuration and connect; runs once before polling starts."""
        executor = PollExecutor(
            name=self.ID,
            nodes=self.nodes(),
            opener=self.open_connection,
            pipeline=self._pipeline,
            settings=self.polling_interval(),
            type_table=self.type_table,
        )
        with self._lock:
            if self._stopped:
                return None
            self._executor = executor
        executor.connect()

    def pull_data(self) -> Optional[Event]:
        """Run a single read cycle."""
        if self._executor is None:
            raise AdapterStartError(f"Adapter {self.ID} is not connected")
        return self._executor.tick()

    def start_adapter(self) -> None:
        self.before()
        if self._executor is not None:
            self._executor.start()

    def stop_adapter(self) -> None:
        with self._lock:
            executor = self._executor
        if executor is not None:
            executor.stop()


class StreamAdapter(BaseAdapter):
    """Adapter that forwards source-initiated messages."""

    def __init__(self, description: AdapterDescription, pipeline: EventPipeline) -> None:
        super().__init__(description, pipeline)
        self._consumer: Optional[StreamConsumer] = None

    def subscription(self) -> Subscription:
        """Return a fresh, unopened subscription to the source."""
        raise NotImplementedError

    def decode(self, payload: bytes) -> Event:
        """Decode one raw message into an event, raising DecodeError if it cannot."""
        raise NotImplementedError

    def start_adapter(self) -> None:
        consumer = StreamConsumer(
            name=self.ID,
            subscription=self.subscription(),
            decoder=self.decode,
            pipeline=self._pipeline,
        )
        with self._lock:
            if self._stopped:
                return None
            self._consumer = consumer
        consumer.start()

    def stop_adapter(self) -> None:
        with self._lock:
            consumer = self._consumer
        if consumer is not None:
            consumer.stop()
