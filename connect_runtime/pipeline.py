"""Event pipelines that receive normalized adapter output."""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Protocol

from connect_runtime.errors import KafkaError
from connect_runtime.schema import SchemaManager

logger = logging.getLogger(__name__)

Event = Dict[str, object]


class EventPipeline(Protocol):
    """Downstream consumer of events; called from one producing context."""

    def process(self, event: Event) -> None:
        ...


class ListPipeline:
    """Collects events in memory."""

    def __init__(self) -> None:
        self._events: List[Event] = []
        self._lock = threading.Lock()

    def process(self, event: Event) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> List[Event]:
        with self._lock:
            return list(self._events)

    def close(self) -> None:
        return None


class LoggingPipeline:
    """Writes each event to the log; used for dry runs."""

    def __init__(self, name: str) -> None:
        self._name = name

    def process(self, event: Event) -> None:
        logger.info("%s event %s", self._name, event)


class KafkaEventPipeline:
    """
    Publishes events to a Kafka topic.

    Sends are asynchronous; buffered records are flushed on close().
    """

    def __init__(self, bootstrap: str, topic: str, schema: Optional[SchemaManager] = None) -> None:
        self._bootstrap = bootstrap
        self._topic = topic
        self._schema = schema or SchemaManager()
        self._producer = None

    def process(self, event: Event) -> None:
        producer = self._ensure_producer()
        future = producer.send(self._topic, event)
        future.add_errback(self._on_send_error)

    def close(self) -> None:
        if self._producer is None:
            return None
        try:
            self._producer.flush()
        finally:
            self._producer.close()
            self._producer = None

    def _ensure_producer(self):
        if self._producer is None:
            try:
                from kafka import KafkaProducer  # type: ignore
            except ModuleNotFoundError as exc:
                raise KafkaError("kafka-python is required for KafkaEventPipeline") from exc

            try:
                self._producer = KafkaProducer(
                    bootstrap_servers=self._bootstrap,
                    value_serializer=self._schema.encode,
                )
            except Exception as exc:
                raise KafkaError(f"Kafka not reachable at {self._bootstrap}: {exc}") from exc
        return self._producer

    def _on_send_error(self, exc: BaseException) -> None:
        logger.error("failed to publish event to %s: %s", self._topic, exc)
