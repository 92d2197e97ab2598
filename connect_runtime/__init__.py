"""Connect runtime package."""

__all__ = [
    "ConnectRuntime",
    "AdapterManager",
    "AdapterRegistry",
    "HealthReporter",
    "ConfigRepository",
    "AdapterConfig",
    "GatewayConfig",
    "HealthEvent",
    "AdapterState",
    "AdapterDescription",
    "ConfigurationExtractor",
    "SchemaInferencer",
    "SchemaManager",
    "CanonicalType",
    "NodeConfig",
    "EventSchema",
    "PollExecutor",
    "PollingSettings",
    "TimeUnit",
    "StreamConsumer",
    "KafkaEventPipeline",
    "RunState",
    "AdapterError",
    "ConfigError",
    "SchemaError",
    "AdapterStartError",
    "AdapterConnectionError",
    "FieldReadError",
    "DecodeError",
    "TickError",
    "KafkaError",
]

from connect_runtime.runtime import ConnectRuntime
from connect_runtime.adapter_manager import AdapterManager
from connect_runtime.registry import AdapterRegistry
from connect_runtime.health import HealthReporter, HealthEvent, AdapterState
from connect_runtime.config import ConfigRepository, GatewayConfig, AdapterConfig
from connect_runtime.description import AdapterDescription
from connect_runtime.extractor import ConfigurationExtractor
from connect_runtime.schema import SchemaInferencer, SchemaManager, CanonicalType, NodeConfig, EventSchema
from connect_runtime.polling import PollExecutor, PollingSettings, TimeUnit
from connect_runtime.streaming import StreamConsumer
from connect_runtime.pipeline import KafkaEventPipeline
from connect_runtime.state import RunState
from connect_runtime.errors import (
    AdapterError,
    ConfigError,
    SchemaError,
    AdapterStartError,
    AdapterConnectionError,
    FieldReadError,
    DecodeError,
    TickError,
    KafkaError,
)
