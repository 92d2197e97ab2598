"""Custom exceptions for the connect runtime."""

from __future__ import annotations

from enum import Enum


class AdapterError(Exception):
    """Base class for all adapter runtime errors."""


class ConfigErrorKind(str, Enum):
    """Reason a configuration value could not be extracted."""

    MISSING_KEY = "missing_key"
    TYPE_MISMATCH = "type_mismatch"
    INVALID_VALUE = "invalid_value"


class ConfigError(AdapterError):
    """Raised when config is invalid or missing."""

    def __init__(
        self,
        message: str,
        kind: ConfigErrorKind = ConfigErrorKind.INVALID_VALUE,
        key: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.key = key


class SchemaErrorKind(str, Enum):
    """Reason a schema could not be inferred."""

    UNSUPPORTED_TYPE = "unsupported_type"
    DUPLICATE_FIELD = "duplicate_field"


class SchemaError(AdapterError):
    """Raised when declared fields cannot be mapped to an event schema."""

    def __init__(self, message: str, kind: SchemaErrorKind = SchemaErrorKind.UNSUPPORTED_TYPE) -> None:
        super().__init__(message)
        self.kind = kind


class AdapterStartError(AdapterError):
    """Raised when adapter fails to start."""


class AdapterConnectionError(AdapterStartError):
    """Raised when the source cannot be reached or lacks a required capability."""


class FieldReadError(AdapterError):
    """A single field could not be read during a poll tick."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"Error[{field}]: {reason}")
        self.field = field
        self.reason = reason


class DecodeError(AdapterError):
    """An inbound message could not be decoded into an event."""


class TickError(AdapterError):
    """A whole poll cycle failed."""


class KafkaError(AdapterError):
    """Raised when the Kafka pipeline fails."""
