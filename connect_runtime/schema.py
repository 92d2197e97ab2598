"""Event schema inference and serialization strategy for adapter output."""

from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Mapping, Sequence, Tuple

from connect_runtime.errors import SchemaError, SchemaErrorKind

logger = logging.getLogger(__name__)

TIMESTAMP_FIELD = "timestamp"


class CanonicalType(str, Enum):
    """Value types an event field can carry."""

    BOOLEAN = "boolean"
    INTEGER = "integer"
    DOUBLE = "double"
    LONG = "long"
    STRING = "string"
    TIMESTAMP = "timestamp"

    def coerce(self, raw: object) -> object:
        """Convert a raw source value to this type, raising ValueError/TypeError."""
        if self is CanonicalType.BOOLEAN:
            if isinstance(raw, bool):
                return raw
            if isinstance(raw, int) and raw in (0, 1):
                return bool(raw)
            raise TypeError(f"Cannot read {raw!r} as boolean")

        if self in (CanonicalType.INTEGER, CanonicalType.LONG):
            if isinstance(raw, bool):
                return int(raw)
            if isinstance(raw, float):
                if not raw.is_integer():
                    raise ValueError(f"Cannot read {raw!r} as integer without loss")
                return int(raw)
            if isinstance(raw, (int, str)):
                return int(raw)
            raise TypeError(f"Cannot read {raw!r} as integer")

        if self is CanonicalType.DOUBLE:
            if isinstance(raw, (int, float, str)) and not isinstance(raw, bool):
                return float(raw)
            raise TypeError(f"Cannot read {raw!r} as double")

        if self is CanonicalType.TIMESTAMP:
            if isinstance(raw, datetime):
                return int(raw.timestamp() * 1000)
            if isinstance(raw, int) and not isinstance(raw, bool):
                return raw
            raise TypeError(f"Cannot read {raw!r} as timestamp")

        return str(raw)


@dataclass(frozen=True)
class NodeConfig:
    """One user-declared field mapping."""

    runtime_name: str
    source_name: str
    address: int
    type_tag: str


@dataclass(frozen=True)
class EventProperty:
    """A single field of an event schema."""

    runtime_name: str
    type: CanonicalType
    label: str = ""
    description: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "runtime_name": self.runtime_name,
            "type": self.type.value,
            "label": self.label,
            "description": self.description,
        }


@dataclass(frozen=True)
class EventSchema:
    """Ordered description of the fields an adapter emits."""

    properties: Tuple[EventProperty, ...] = ()

    @property
    def field_names(self) -> List[str]:
        return [prop.runtime_name for prop in self.properties]

    def to_dict(self) -> Dict[str, object]:
        return {"properties": [prop.to_dict() for prop in self.properties]}


MODBUS_TYPES: Mapping[str, CanonicalType] = {
    "COIL": CanonicalType.BOOLEAN,
    "HOLDINGREGISTER": CanonicalType.INTEGER,
}


def normalize_type_tag(type_tag: str) -> str:
    """Strip any ``prefix:`` and upper-case a vendor type tag."""
    return type_tag[type_tag.rfind(":") + 1:].upper()


class SchemaInferencer:
    """
    Turns declared nodes into an event schema.

    Inference is all-or-nothing: one unsupported tag fails the whole schema.
    Duplicate runtime names are reported with a warning, or rejected when
    ``strict`` is set.
    """

    def __init__(self, type_table: Mapping[str, CanonicalType] = MODBUS_TYPES, strict: bool = False) -> None:
        self._type_table = dict(type_table)
        self._strict = strict

    def canonical_type(self, type_tag: str) -> CanonicalType:
        """Map a vendor type tag to its canonical type."""
        try:
            return self._type_table[normalize_type_tag(type_tag)]
        except KeyError:
            raise SchemaError(f"Datatype {type_tag} is not supported", SchemaErrorKind.UNSUPPORTED_TYPE) from None

    @staticmethod
    def check_reserved(nodes: Sequence[NodeConfig]) -> None:
        """Reject nodes named like the timestamp field every event carries."""
        for node in nodes:
            if node.runtime_name == TIMESTAMP_FIELD:
                raise SchemaError(
                    f"Runtime name {TIMESTAMP_FIELD!r} of {node.source_name} is reserved for the event time",
                    SchemaErrorKind.DUPLICATE_FIELD,
                )

    def infer(self, nodes: Sequence[NodeConfig]) -> EventSchema:
        self.check_reserved(nodes)
        properties = [
            EventProperty(
                runtime_name=node.runtime_name,
                type=self.canonical_type(node.type_tag),
                label=node.runtime_name,
                description=f"FieldAddress: {node.type_tag} {node.address}",
            )
            for node in nodes
        ]

        duplicates = sorted(name for name, count in Counter(n.runtime_name for n in nodes).items() if count > 1)
        if duplicates:
            if self._strict:
                raise SchemaError(f"Duplicate runtime names: {', '.join(duplicates)}", SchemaErrorKind.DUPLICATE_FIELD)
            logger.warning("schema has colliding field identifiers: %s", ", ".join(duplicates))

        return EventSchema(properties=tuple(properties))


class SchemaManager:
    """
    Handles serialization format for adapter output.

    Events are encoded as UTF-8 JSON.
    """

    def encode(self, event: Mapping[str, object]) -> bytes:
        """Serialize event into bytes."""
        return json.dumps(dict(event), default=str).encode("utf-8")
