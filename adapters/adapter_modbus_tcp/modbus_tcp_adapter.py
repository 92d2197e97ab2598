"""Modbus TCP adapter implementation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List

from adapters.adapter_base.base_adapter import PullAdapter
from connect_runtime.connection import FieldReading, ReadRequest, ReadResponse, ResponseCode
from connect_runtime.description import (
    AdapterDescription,
    CollectionStaticProperty,
    FreeTextStaticProperty,
    OneOfStaticProperty,
    Option,
    StaticPropertyGroup,
)
from connect_runtime.errors import AdapterConnectionError, ConfigError, ConfigErrorKind
from connect_runtime.extractor import ConfigurationExtractor
from connect_runtime.polling import PollingSettings, TimeUnit
from connect_runtime.schema import EventSchema, NodeConfig, SchemaInferencer, normalize_type_tag

logger = logging.getLogger(__name__)

PLC_IP = "plc_ip"
PLC_NODES = "plc_nodes"
PLC_NODE_NAME = "plc_node_name"
PLC_NODE_RUNTIME_NAME = "plc_node_runtime_name"
PLC_NODE_ADDRESS = "plc_node_address"
PLC_NODE_TYPE = "plc_node_type"

DEFAULT_PORT = 502

# Modbus exception codes reported in error responses.
_EXCEPTION_CODES = {
    1: ResponseCode.INVALID_DATATYPE,
    2: ResponseCode.INVALID_ADDRESS,
    3: ResponseCode.INVALID_DATATYPE,
    5: ResponseCode.RESPONSE_PENDING,
}


@dataclass(frozen=True)
class ModbusConfig:
    """Connection settings for a Modbus TCP device."""

    host: str
    port: int = DEFAULT_PORT
    unit_id: int = 1

    @classmethod
    def from_extractor(cls, extractor: ConfigurationExtractor) -> "ModbusConfig":
        """Parse ``host[:port]`` from the PLC address field."""
        address = extractor.text(PLC_IP).strip()
        if not address:
            raise ConfigError("PLC address must not be empty", ConfigErrorKind.MISSING_KEY, PLC_IP)

        host, sep, port = address.rpartition(":")
        if not sep:
            return cls(host=address)
        try:
            return cls(host=host, port=int(port))
        except ValueError as exc:
            raise ConfigError(f"Invalid port in PLC address: {address}", ConfigErrorKind.TYPE_MISMATCH, PLC_IP) from exc


def extract_nodes(extractor: ConfigurationExtractor) -> List[NodeConfig]:
    """Return the configured nodes in declaration order."""
    return [
        NodeConfig(
            runtime_name=member.text(PLC_NODE_RUNTIME_NAME),
            source_name=member.text(PLC_NODE_NAME),
            address=member.single_value(PLC_NODE_ADDRESS, int),
            type_tag=member.text(PLC_NODE_TYPE),
        )
        for member in extractor.collection(PLC_NODES)
    ]


class ModbusConnection:
    """Connection handle backed by a pymodbus TCP client."""

    def __init__(self, config: ModbusConfig) -> None:
        self._config = config
        self._client = None

    def open(self) -> "ModbusConnection":
        try:
            from pymodbus.client import ModbusTcpClient  # type: ignore
        except ModuleNotFoundError as exc:
            raise AdapterConnectionError("pymodbus is required for ModbusTcpAdapter") from exc

        client = ModbusTcpClient(host=self._config.host, port=self._config.port)
        if not client.connect():
            client.close()
            raise AdapterConnectionError(
                f"Could not establish a connection to Modbus device on IP: {self._config.host}:{self._config.port}"
            )
        self._client = client
        return self

    def can_read(self) -> bool:
        return self._client is not None and bool(self._client.connected)

    def read(self, request: ReadRequest) -> ReadResponse:
        """Read every item; Modbus error responses become per-field codes."""
        from pymodbus.exceptions import ConnectionException, ModbusException  # type: ignore

        if self._client is None:
            raise ConnectionException("Modbus client not connected")

        readings: Dict[str, FieldReading] = {}
        for item in request.items:
            tag = normalize_type_tag(item.type_tag)
            try:
                if tag == "COIL":
                    response = self._client.read_coils(item.address, count=1, device_id=self._config.unit_id)
                    value = None if response.isError() else response.bits[0]
                elif tag == "HOLDINGREGISTER":
                    response = self._client.read_holding_registers(
                        self._normalize_address(item.address),
                        count=1,
                        device_id=self._config.unit_id,
                    )
                    value = None if response.isError() else response.registers[0]
                else:
                    readings[item.name] = FieldReading(ResponseCode.INVALID_DATATYPE)
                    continue
            except ConnectionException:
                raise
            except ModbusException as exc:
                logger.debug("modbus read of %s failed: %s", item.name, exc)
                readings[item.name] = FieldReading(ResponseCode.INTERNAL_ERROR)
                continue

            if response.isError():
                code = _EXCEPTION_CODES.get(getattr(response, "exception_code", None), ResponseCode.INTERNAL_ERROR)
                readings[item.name] = FieldReading(code)
            else:
                readings[item.name] = FieldReading(ResponseCode.OK, value)

        return ReadResponse(readings)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    @staticmethod
    def _normalize_address(address: int) -> int:
        """Normalize Modbus address to zero-based register offset."""
        if address >= 40001:
            return address - 40001
        return address


class ModbusTcpAdapter(PullAdapter):
    """
    Modbus TCP adapter implementation.

    Reads the configured coils and holding registers once per second.
    """

    ID = "modbus_tcp"

    @classmethod
    def declare_model(cls) -> AdapterDescription:
        node_template = StaticPropertyGroup(
            internal_name=PLC_NODES,
            properties=(
                FreeTextStaticProperty(internal_name=PLC_NODE_RUNTIME_NAME, label="Runtime Name"),
                FreeTextStaticProperty(internal_name=PLC_NODE_NAME, label="Node Name"),
                FreeTextStaticProperty(internal_name=PLC_NODE_ADDRESS, label="Address", datatype="integer"),
                OneOfStaticProperty(
                    internal_name=PLC_NODE_TYPE,
                    label="Type",
                    options=(Option("Coil"), Option("HoldingRegister")),
                ),
            ),
        )
        return AdapterDescription(
            app_id=cls.ID,
            name="Modbus TCP",
            description="Polls coils and holding registers of a Modbus TCP device",
            locales=("en",),
            category=("Manufacturing",),
            config=(
                FreeTextStaticProperty(internal_name=PLC_IP, label="PLC Address", description="Example: 192.168.34.56"),
                CollectionStaticProperty(
                    internal_name=PLC_NODES,
                    label="Nodes",
                    description="The PLC Nodes",
                    template=node_template,
                ),
            ),
        )

    def nodes(self) -> List[NodeConfig]:
        return extract_nodes(self.extractor)

    def get_schema(self) -> EventSchema:
        return SchemaInferencer(self.type_table).infer(self.nodes())

    def open_connection(self) -> ModbusConnection:
        return ModbusConnection(ModbusConfig.from_extractor(self.extractor)).open()

    def polling_interval(self) -> PollingSettings:
        return PollingSettings.of(TimeUnit.SECONDS, 1)
