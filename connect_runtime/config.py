"""Gateway configuration models and repository."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional
import json

import jsonschema

from connect_runtime.description import AdapterDescription
from connect_runtime.errors import ConfigError

DEFAULT_SCHEMA_PATH = Path(__file__).resolve().parent / "schemas" / "gateway_config.schema.json"


@dataclass(frozen=True)
class AdapterConfig:
    """Configuration for a single adapter instance."""

    adapter_id: str
    adapter_type: str
    description: AdapterDescription
    output_topic: Optional[str] = None

    @property
    def topic(self) -> str:
        return self.output_topic or f"connect.{self.adapter_id}"


@dataclass(frozen=True)
class GatewayConfig:
    """Top-level configuration for the gateway runtime."""

    gateway_id: str
    adapters: List[AdapterConfig]
    kafka_bootstrap: Optional[str] = None


class ConfigRepository:
    """
    Repository for loading configuration.

    Loads a JSON file and validates it against the packaged JSON Schema.
    """

    def __init__(self, path: str, schema_path: str | None = None) -> None:
        """Initialize with config file path and optional schema path."""
        self._path = Path(path)
        self._schema_path = Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH

    def load(self) -> GatewayConfig:
        """Load and validate gateway configuration."""
        if not self._path.exists():
            raise ConfigError(f"Config file not found: {self._path}")

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in config file: {exc}") from exc

        self._validate(raw)
        return self.parse(raw)

    @staticmethod
    def parse(raw: Mapping[str, Any]) -> GatewayConfig:
        """Build typed configuration from already validated JSON."""
        adapters = [
            AdapterConfig(
                adapter_id=item["adapter_id"],
                adapter_type=item["adapter_type"],
                description=AdapterDescription.from_dict(item["description"]),
                output_topic=item.get("output_topic"),
            )
            for item in raw["adapters"]
        ]

        ids = [adapter.adapter_id for adapter in adapters]
        if len(ids) != len(set(ids)):
            raise ConfigError("Adapter ids must be unique")

        return GatewayConfig(
            gateway_id=raw["gateway_id"],
            adapters=adapters,
            kafka_bootstrap=raw.get("kafka_bootstrap"),
        )

    def _validate(self, raw: dict) -> None:
        """Validate config against the JSON Schema."""
        try:
            schema = json.loads(self._schema_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Cannot read config schema {self._schema_path}: {exc}") from exc

        try:
            jsonschema.validate(instance=raw, schema=schema)
        except jsonschema.ValidationError as exc:
            raise ConfigError(f"Config schema validation failed: {exc.message}") from exc
