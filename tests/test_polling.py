"""Tests for the pull-model poll executor."""

from __future__ import annotations

import threading
import time

import pytest

from connect_runtime.connection import FieldReading, ResponseCode
from connect_runtime.errors import AdapterConnectionError, AdapterStartError, ConfigError, SchemaError
from connect_runtime.pipeline import ListPipeline
from connect_runtime.polling import PollExecutor, PollingSettings, TimeUnit
from connect_runtime.schema import NodeConfig
from connect_runtime.state import RunState
from tests.fakes import FakeConnection, ok

NODES = [
    NodeConfig(runtime_name="pump", source_name="n-pump", address=1, type_tag="Coil"),
    NodeConfig(runtime_name="level", source_name="n-level", address=40001, type_tag="HoldingRegister"),
]

FAST = PollingSettings.of(TimeUnit.MILLISECONDS, 10)


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


def _executor(connection: FakeConnection, pipeline: ListPipeline, settings: PollingSettings = FAST) -> PollExecutor:
    return PollExecutor("test", NODES, lambda: connection, pipeline, settings)


class TestTick:
    def test_partial_failure_omits_only_failed_field(self, connection: FakeConnection, pipeline: ListPipeline) -> None:
        connection.readings = {"n-pump": ok(True), "n-level": FieldReading(ResponseCode.INVALID_ADDRESS)}
        executor = _executor(connection, pipeline)
        executor.connect()

        event = executor.tick()

        assert event is not None
        assert event["pump"] is True
        assert "level" not in event
        assert isinstance(event["timestamp"], int)
        assert pipeline.events == [event]

    def test_batched_request_covers_all_nodes(self, connection: FakeConnection, pipeline: ListPipeline) -> None:
        connection.readings = {"n-pump": ok(False), "n-level": ok(12)}
        executor = _executor(connection, pipeline)
        executor.connect()
        executor.tick()

        assert len(connection.requests) == 1
        assert [item.name for item in connection.requests[0].items] == ["n-pump", "n-level"]
        assert pipeline.events[0]["level"] == 12

    def test_uncoercible_value_is_omitted(self, connection: FakeConnection, pipeline: ListPipeline) -> None:
        connection.readings = {"n-pump": ok("maybe"), "n-level": ok(5)}
        executor = _executor(connection, pipeline)
        executor.connect()

        event = executor.tick()
        assert event is not None and "pump" not in event and event["level"] == 5

    def test_failed_read_skips_emission(self, connection: FakeConnection, pipeline: ListPipeline) -> None:
        connection.fail_with = RuntimeError("socket closed")
        executor = _executor(connection, pipeline)
        executor.connect()

        assert executor.tick() is None
        assert pipeline.events == []

    def test_unsupported_type_fails_at_construction(self, connection: FakeConnection, pipeline: ListPipeline) -> None:
        nodes = [NodeConfig("x", "n-x", 1, "DiscreteInput")]
        with pytest.raises(SchemaError):
            PollExecutor("test", nodes, lambda: connection, pipeline)

    def test_node_named_timestamp_is_rejected(self, connection: FakeConnection, pipeline: ListPipeline) -> None:
        nodes = [NodeConfig("timestamp", "n-ts", 40001, "HoldingRegister")]
        with pytest.raises(SchemaError, match="reserved"):
            PollExecutor("test", nodes, lambda: connection, pipeline)


class TestConnect:
    def test_opener_failure_is_terminal(self, pipeline: ListPipeline) -> None:
        def opener():
            raise OSError("unreachable")

        executor = PollExecutor("test", NODES, opener, pipeline, FAST)
        with pytest.raises(AdapterConnectionError):
            executor.connect()

        assert executor.state is RunState.FAILED
        with pytest.raises(AdapterStartError):
            executor.start()

    def test_unreadable_device_is_rejected(self, pipeline: ListPipeline) -> None:
        connection = FakeConnection(readable=False)
        executor = _executor(connection, pipeline)

        with pytest.raises(AdapterConnectionError):
            executor.connect()
        assert executor.state is RunState.FAILED
        assert connection.close_calls == 1

    def test_connect_twice_fails(self, connection: FakeConnection, pipeline: ListPipeline) -> None:
        executor = _executor(connection, pipeline)
        executor.connect()
        with pytest.raises(AdapterStartError):
            executor.connect()


class TestSchedule:
    def test_polls_until_stopped(self, connection: FakeConnection, pipeline: ListPipeline) -> None:
        connection.readings = {"n-pump": ok(True), "n-level": ok(1)}
        executor = _executor(connection, pipeline)
        executor.start()
        assert executor.state is RunState.POLLING

        assert _wait_for(lambda: len(pipeline.events) >= 3)
        executor.stop()
        delivered = len(pipeline.events)
        time.sleep(0.05)

        assert executor.state is RunState.STOPPED
        assert len(pipeline.events) == delivered
        assert connection.close_calls == 1

    def test_stop_is_idempotent(self, connection: FakeConnection, pipeline: ListPipeline) -> None:
        executor = _executor(connection, pipeline)
        executor.start()
        executor.stop()
        executor.stop()
        assert connection.close_calls == 1

    def test_slow_reads_never_overlap(self, connection: FakeConnection, pipeline: ListPipeline) -> None:
        active = 0
        peak = 0
        lock = threading.Lock()

        def slow_read() -> None:
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.03)
            with lock:
                active -= 1

        connection.readings = {"n-pump": ok(True), "n-level": ok(1)}
        connection.on_read = slow_read
        executor = _executor(connection, pipeline)
        executor.start()
        assert _wait_for(lambda: len(pipeline.events) >= 3)
        executor.stop()

        assert peak == 1

    def test_failed_tick_keeps_timer_running(self, connection: FakeConnection, pipeline: ListPipeline) -> None:
        calls = 0

        def flaky() -> None:
            nonlocal calls
            calls += 1
            connection.fail_with = RuntimeError("boom") if calls == 1 else None

        connection.readings = {"n-pump": ok(True), "n-level": ok(1)}
        connection.on_read = flaky
        executor = _executor(connection, pipeline)
        executor.start()

        assert _wait_for(lambda: len(pipeline.events) >= 1)
        executor.stop()
        assert calls >= 2

    def test_stop_while_connecting_closes_late_handle(self, connection: FakeConnection, pipeline: ListPipeline) -> None:
        entered, release = threading.Event(), threading.Event()

        def opener() -> FakeConnection:
            entered.set()
            release.wait(2)
            return connection

        connection.readings = {"n-pump": ok(True), "n-level": ok(1)}
        executor = PollExecutor("test", NODES, opener, pipeline, FAST)
        starter = threading.Thread(target=executor.start)
        starter.start()
        assert entered.wait(2)

        executor.stop()
        release.set()
        starter.join(2)
        time.sleep(0.05)

        assert not starter.is_alive()
        assert executor.state is RunState.STOPPED
        assert connection.close_calls == 1
        assert connection.requests == []
        assert pipeline.events == []


class TestPollingSettings:
    def test_default_is_one_second(self) -> None:
        settings = PollingSettings()
        assert settings.unit is TimeUnit.SECONDS
        assert settings.seconds == 1.0

    def test_from_dict(self) -> None:
        assert PollingSettings.from_dict({"unit": "milliseconds", "value": 250}).seconds == pytest.approx(0.25)
        assert PollingSettings.from_dict(None) == PollingSettings()

    @pytest.mark.parametrize("value", [0, -1, 1.5])
    def test_rejects_non_positive_or_fractional(self, value) -> None:
        with pytest.raises(ConfigError):
            PollingSettings(TimeUnit.SECONDS, value)

    def test_rejects_unknown_unit(self) -> None:
        with pytest.raises(ConfigError):
            PollingSettings.from_dict({"unit": "fortnights", "value": 1})
