"""Tests for event pipelines and health aggregation."""

from __future__ import annotations

import json
from types import SimpleNamespace

import kafka
import pytest

from connect_runtime.errors import KafkaError
from connect_runtime.health import AdapterState, HealthEvent, HealthReporter
from connect_runtime.pipeline import KafkaEventPipeline, ListPipeline


class FakeProducer:
    instances: list = []

    def __init__(self, bootstrap_servers, value_serializer) -> None:
        self.bootstrap_servers = bootstrap_servers
        self.serialize = value_serializer
        self.sent = []
        self.flushed = False
        self.closed = False
        FakeProducer.instances.append(self)

    def send(self, topic, value):
        self.sent.append((topic, self.serialize(value)))
        return SimpleNamespace(add_errback=lambda callback: None)

    def flush(self) -> None:
        self.flushed = True

    def close(self) -> None:
        self.closed = True


def test_kafka_pipeline_publishes_json(monkeypatch: pytest.MonkeyPatch) -> None:
    FakeProducer.instances = []
    monkeypatch.setattr(kafka, "KafkaProducer", FakeProducer)

    pipeline = KafkaEventPipeline("kafka:9092", "plant.press")
    pipeline.process({"pump": True, "timestamp": 10})
    pipeline.process({"pump": False, "timestamp": 20})
    pipeline.close()

    (producer,) = FakeProducer.instances
    assert producer.bootstrap_servers == "kafka:9092"
    assert [topic for topic, _ in producer.sent] == ["plant.press", "plant.press"]
    assert json.loads(producer.sent[0][1]) == {"pump": True, "timestamp": 10}
    assert producer.flushed and producer.closed


def test_kafka_pipeline_wraps_producer_errors(monkeypatch: pytest.MonkeyPatch) -> None:

    def broken(**_kwargs):
        raise RuntimeError("NoBrokersAvailable")

    monkeypatch.setattr(kafka, "KafkaProducer", broken)
    with pytest.raises(KafkaError, match="not reachable"):
        KafkaEventPipeline("kafka:9092", "t").process({"timestamp": 1})


def test_close_without_events_is_noop() -> None:
    KafkaEventPipeline("kafka:9092", "t").close()


def test_list_pipeline_returns_copies() -> None:
    pipeline = ListPipeline()
    pipeline.process({"a": 1})
    events = pipeline.events
    events.clear()
    assert pipeline.events == [{"a": 1}]


class TestHealthReporter:
    def test_empty_is_healthy(self) -> None:
        assert HealthReporter().snapshot() == {"status": "healthy", "components": {}}

    def test_latest_event_wins(self) -> None:
        reporter = HealthReporter()
        reporter.emit(HealthEvent("a", AdapterState.FAILED, {"error": "refused"}))
        reporter.emit(HealthEvent("a", AdapterState.HEALTHY))

        assert reporter.snapshot()["components"]["a"] == {"status": "healthy"}

    def test_all_failed(self) -> None:
        reporter = HealthReporter()
        reporter.emit(HealthEvent("a", AdapterState.FAILED))
        assert reporter.snapshot()["status"] == "failed"

    def test_forget(self) -> None:
        reporter = HealthReporter()
        reporter.emit(HealthEvent("a", AdapterState.DEGRADED))
        reporter.forget("a")
        assert reporter.snapshot()["components"] == {}
