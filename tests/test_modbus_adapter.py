"""Tests for the Modbus TCP adapter."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from adapters.adapter_modbus_tcp.modbus_tcp_adapter import ModbusConfig, ModbusConnection, ModbusTcpAdapter
from connect_runtime.connection import ReadItem, ReadRequest, ResponseCode
from connect_runtime.errors import AdapterConnectionError, AdapterStartError, ConfigError
from connect_runtime.extractor import ConfigurationExtractor
from connect_runtime.pipeline import ListPipeline
from connect_runtime.schema import CanonicalType
from connect_runtime.state import RunState
from tests.fakes import FakeConnection, modbus_description, ok

NODES = [("pump", "n-pump", 1, "Coil"), ("level", "n-level", 40003, "HoldingRegister")]


class FakeModbusClient:
    """Stands in for pymodbus' ModbusTcpClient."""

    def __init__(self, coils=None, registers=None) -> None:
        self.coils = coils or {}
        self.registers = registers or {}
        self.connected = True
        self.calls = []

    def read_coils(self, address, count=1, device_id=1):
        self.calls.append(("coil", address, device_id))
        if address not in self.coils:
            return SimpleNamespace(isError=lambda: True, exception_code=2)
        return SimpleNamespace(isError=lambda: False, bits=[self.coils[address]])

    def read_holding_registers(self, address, count=1, device_id=1):
        self.calls.append(("holding", address, device_id))
        if address not in self.registers:
            return SimpleNamespace(isError=lambda: True, exception_code=4)
        return SimpleNamespace(isError=lambda: False, registers=[self.registers[address]])

    def close(self) -> None:
        self.connected = False


class TestModbusConfig:
    def test_default_port(self) -> None:
        extractor = ConfigurationExtractor.from_description(modbus_description(NODES, "10.0.0.5"))
        assert ModbusConfig.from_extractor(extractor) == ModbusConfig(host="10.0.0.5", port=502)

    def test_explicit_port(self) -> None:
        extractor = ConfigurationExtractor.from_description(modbus_description(NODES, "10.0.0.5:5020"))
        assert ModbusConfig.from_extractor(extractor).port == 5020

    def test_bad_port(self) -> None:
        extractor = ConfigurationExtractor.from_description(modbus_description(NODES, "10.0.0.5:abc"))
        with pytest.raises(ConfigError):
            ModbusConfig.from_extractor(extractor)


class TestModbusConnection:
    def _connection(self, client: FakeModbusClient) -> ModbusConnection:
        connection = ModbusConnection(ModbusConfig(host="plc", unit_id=3))
        connection._client = client
        return connection

    def test_reads_coils_and_registers(self) -> None:
        client = FakeModbusClient(coils={1: True}, registers={2: 77})
        request = ReadRequest.of([ReadItem("c", 1, "Coil"), ReadItem("h", 40003, "HoldingRegister")])

        response = self._connection(client).read(request)

        assert response.value("c") is True
        assert response.value("h") == 77
        assert client.calls == [("coil", 1, 3), ("holding", 2, 3)]

    def test_error_responses_become_field_codes(self) -> None:
        client = FakeModbusClient()
        request = ReadRequest.of([ReadItem("c", 9, "Coil"), ReadItem("h", 9, "HoldingRegister")])

        response = self._connection(client).read(request)

        assert response.response_code("c") is ResponseCode.INVALID_ADDRESS
        assert response.response_code("h") is ResponseCode.INTERNAL_ERROR

    def test_unknown_tag_is_invalid_datatype(self) -> None:
        response = self._connection(FakeModbusClient()).read(ReadRequest.of([ReadItem("x", 1, "InputRegister")]))
        assert response.response_code("x") is ResponseCode.INVALID_DATATYPE

    def test_close_is_safe_twice(self) -> None:
        client = FakeModbusClient()
        connection = self._connection(client)
        assert connection.can_read()
        connection.close()
        connection.close()
        assert not connection.can_read()


class TestAdapter:
    def test_schema_follows_declared_nodes(self, pipeline: ListPipeline) -> None:
        schema = ModbusTcpAdapter(modbus_description(NODES), pipeline).get_schema()

        assert schema.field_names == ["pump", "level"]
        assert [prop.type for prop in schema.properties] == [CanonicalType.BOOLEAN, CanonicalType.INTEGER]
        assert schema.properties[1].description == "FieldAddress: HoldingRegister 40003"

    def test_pull_data_emits_partial_event(self, monkeypatch: pytest.MonkeyPatch, pipeline: ListPipeline) -> None:
        connection = FakeConnection({"n-pump": ok(True)})
        adapter = ModbusTcpAdapter(modbus_description(NODES), pipeline)
        monkeypatch.setattr(adapter, "open_connection", lambda: connection)

        adapter.before()
        event = adapter.pull_data()

        assert event is not None
        assert event["pump"] is True
        assert "level" not in event

    def test_start_and_stop(self, monkeypatch: pytest.MonkeyPatch, pipeline: ListPipeline) -> None:
        connection = FakeConnection({"n-pump": ok(False), "n-level": ok(3)})
        adapter = ModbusTcpAdapter(modbus_description(NODES), pipeline)
        monkeypatch.setattr(adapter, "open_connection", lambda: connection)

        adapter.start()
        assert adapter.state is RunState.RUNNING
        adapter.stop()
        adapter.stop()

        assert adapter.state is RunState.STOPPED
        assert connection.close_calls == 1

    def test_connection_error_is_terminal(self, monkeypatch: pytest.MonkeyPatch, pipeline: ListPipeline) -> None:
        adapter = ModbusTcpAdapter(modbus_description(NODES), pipeline)

        def refuse():
            raise AdapterConnectionError("Could not establish a connection to Modbus device on IP: 10.0.0.5")

        monkeypatch.setattr(adapter, "open_connection", refuse)

        with pytest.raises(AdapterConnectionError):
            adapter.start()
        assert adapter.state is RunState.FAILED
        assert adapter.health()["state"] == "failed"

        with pytest.raises(AdapterStartError, match="rebuild"):
            adapter.start()

    def test_unreadable_device_fails_start(self, monkeypatch: pytest.MonkeyPatch, pipeline: ListPipeline) -> None:
        adapter = ModbusTcpAdapter(modbus_description(NODES), pipeline)
        monkeypatch.setattr(adapter, "open_connection", lambda: FakeConnection(readable=False))

        with pytest.raises(AdapterConnectionError, match="does not support reading"):
            adapter.start()
        assert adapter.state is RunState.FAILED

    def test_declared_model_has_node_collection(self) -> None:
        model = ModbusTcpAdapter.declare_model()
        assert model.app_id == "modbus_tcp"
        assert [prop.internal_name for prop in model.config] == ["plc_ip", "plc_nodes"]
        assert model.category == ("Manufacturing",)
