"""Connection handle contract for pull adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Optional, Protocol, Tuple


class ResponseCode(str, Enum):
    """Per-field status of a read."""

    OK = "ok"
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    INVALID_ADDRESS = "invalid_address"
    INVALID_DATATYPE = "invalid_datatype"
    INTERNAL_ERROR = "internal_error"
    RESPONSE_PENDING = "response_pending"


@dataclass(frozen=True)
class ReadItem:
    """One field of a batched read."""

    name: str
    address: int
    type_tag: str


@dataclass(frozen=True)
class ReadRequest:
    """A batched read covering several fields."""

    items: Tuple[ReadItem, ...]

    @classmethod
    def of(cls, items: Iterable[ReadItem]) -> "ReadRequest":
        return cls(items=tuple(items))


@dataclass(frozen=True)
class FieldReading:
    """Outcome of reading one field."""

    code: ResponseCode
    value: object = None

    @property
    def ok(self) -> bool:
        return self.code is ResponseCode.OK


@dataclass
class ReadResponse:
    """Readings keyed by item name."""

    readings: Dict[str, FieldReading] = field(default_factory=dict)

    def reading(self, name: str) -> FieldReading:
        return self.readings.get(name, FieldReading(ResponseCode.NOT_FOUND))

    def response_code(self, name: str) -> ResponseCode:
        return self.reading(name).code

    def value(self, name: str) -> Optional[object]:
        return self.reading(name).value


class ConnectionHandle(Protocol):
    """Live link to a pull source, owned by exactly one adapter."""

    def can_read(self) -> bool:
        ...

    def read(self, request: ReadRequest) -> ReadResponse:
        ...

    def close(self) -> None:
        ...
