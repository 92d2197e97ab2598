"""Typed extraction of user configuration from an adapter description."""

from __future__ import annotations

from typing import Iterator, List, Sequence, Type, TypeVar, Union

from connect_runtime.description import (
    AdapterDescription,
    CollectionStaticProperty,
    FreeTextStaticProperty,
    OneOfStaticProperty,
    SecretStaticProperty,
    StaticProperty,
    StaticPropertyAlternatives,
    StaticPropertyGroup,
)
from connect_runtime.errors import ConfigError, ConfigErrorKind

T = TypeVar("T", str, int, float, bool)

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


class ConfigurationExtractor:
    """
    Pulls typed values out of a property bag.

    Lookups descend into groups and into the selected branch of an
    alternatives property only. Collections are not searched; use
    ``collection()`` to get one extractor per member group.
    """

    def __init__(self, properties: Sequence[StaticProperty]) -> None:
        self._properties = tuple(properties)

    @classmethod
    def from_description(cls, description: AdapterDescription) -> "ConfigurationExtractor":
        return cls(description.config)

    def single_value(self, key: str, type_: Type[T]) -> T:
        """Return the text or selected option of ``key`` coerced to ``type_``."""
        prop = self._require(key)

        if isinstance(prop, FreeTextStaticProperty):
            raw = prop.value
        elif isinstance(prop, OneOfStaticProperty):
            option = prop.selected_option
            raw = option.name if option else None
        else:
            raise ConfigError(
                f"Property '{key}' is a {prop.kind} property, not a single value",
                ConfigErrorKind.TYPE_MISMATCH,
                key,
            )

        if raw is None or (type_ is not str and raw.strip() == ""):
            raise ConfigError(f"No value set for '{key}'", ConfigErrorKind.MISSING_KEY, key)

        return _coerce(key, raw, type_)

    def text(self, key: str) -> str:
        return self.single_value(key, str)

    def secret_value(self, key: str) -> str:
        prop = self._require(key)
        if not isinstance(prop, SecretStaticProperty):
            raise ConfigError(f"Property '{key}' is not a secret", ConfigErrorKind.TYPE_MISMATCH, key)
        if prop.value is None:
            raise ConfigError(f"No value set for '{key}'", ConfigErrorKind.MISSING_KEY, key)
        return prop.value

    def selected_alternative(self, key: str) -> str:
        """Return the internal id of the selected alternative of ``key``."""
        prop = self._require(key)
        if not isinstance(prop, StaticPropertyAlternatives):
            raise ConfigError(f"Property '{key}' is not an alternatives property", ConfigErrorKind.TYPE_MISMATCH, key)

        selected = prop.selected_alternative
        if selected is None:
            raise ConfigError(f"No alternative selected for '{key}'", ConfigErrorKind.MISSING_KEY, key)
        return selected.internal_name

    def collection(self, key: str) -> List["ConfigurationExtractor"]:
        """Return one extractor per member group of the collection ``key``."""
        prop = self._require(key)
        if not isinstance(prop, CollectionStaticProperty):
            raise ConfigError(f"Property '{key}' is not a collection", ConfigErrorKind.TYPE_MISMATCH, key)
        return [ConfigurationExtractor(member.properties) for member in prop.members]

    def has(self, key: str) -> bool:
        return self._find(key) is not None

    def _require(self, key: str) -> StaticProperty:
        prop = self._find(key)
        if prop is None:
            raise ConfigError(f"Missing configuration key: {key}", ConfigErrorKind.MISSING_KEY, key)
        return prop

    def _find(self, key: str) -> Union[StaticProperty, None]:
        return next((prop for prop in _walk(self._properties) if prop.internal_name == key), None)


def _walk(properties: Sequence[StaticProperty]) -> Iterator[StaticProperty]:
    # Breadth first so a top-level key wins over a nested one of the same name.
    pending = list(properties)
    while pending:
        prop = pending.pop(0)
        yield prop
        if isinstance(prop, StaticPropertyGroup):
            pending.extend(prop.properties)
        elif isinstance(prop, StaticPropertyAlternatives):
            selected = prop.selected_alternative
            if selected is not None and selected.property is not None:
                pending.append(selected.property)


def _coerce(key: str, raw: str, type_: type) -> object:
    try:
        if type_ is str:
            return raw
        if type_ is bool:
            lowered = raw.strip().lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
            raise ValueError(raw)
        if type_ is int:
            return int(raw.strip())
        if type_ is float:
            return float(raw.strip())
    except ValueError as exc:
        raise ConfigError(
            f"Value '{raw}' of '{key}' is not a valid {type_.__name__}",
            ConfigErrorKind.TYPE_MISMATCH,
            key,
        ) from exc

    raise ConfigError(f"Unsupported target type {type_!r} for '{key}'", ConfigErrorKind.TYPE_MISMATCH, key)
