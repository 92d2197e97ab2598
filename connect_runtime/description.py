"""Adapter description model: the typed property bag a user fills in."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple

from connect_runtime.errors import ConfigError, ConfigErrorKind


@dataclass(frozen=True)
class StaticProperty:
    """Base of every configuration property."""

    kind: ClassVar[str] = ""

    internal_name: str
    label: str = ""
    description: str = ""


@dataclass(frozen=True)
class FreeTextStaticProperty(StaticProperty):
    """Free text input, optionally hinting a required datatype."""

    kind: ClassVar[str] = "text"

    value: Optional[str] = None
    datatype: str = "string"


@dataclass(frozen=True)
class SecretStaticProperty(StaticProperty):
    """Secret input such as a password."""

    kind: ClassVar[str] = "secret"

    value: Optional[str] = None


@dataclass(frozen=True)
class Option:
    """One choice of a single-selection property."""

    name: str
    internal_name: Optional[str] = None
    selected: bool = False


@dataclass(frozen=True)
class OneOfStaticProperty(StaticProperty):
    """Single selection among fixed options."""

    kind: ClassVar[str] = "single-selection"

    options: Tuple[Option, ...] = ()

    @property
    def selected_option(self) -> Optional[Option]:
        return next((option for option in self.options if option.selected), None)


@dataclass(frozen=True)
class StaticPropertyGroup(StaticProperty):
    """Named group of nested properties."""

    kind: ClassVar[str] = "group"

    properties: Tuple[StaticProperty, ...] = ()


@dataclass(frozen=True)
class CollectionStaticProperty(StaticProperty):
    """Repeated group: a template plus the member groups the user added."""

    kind: ClassVar[str] = "collection"

    template: Optional[StaticPropertyGroup] = None
    members: Tuple[StaticPropertyGroup, ...] = ()


@dataclass(frozen=True)
class StaticPropertyAlternative(StaticProperty):
    """One branch of an alternatives property with optional nested properties."""

    kind: ClassVar[str] = "alternative-option"

    selected: bool = False
    property: Optional[StaticPropertyGroup] = None


@dataclass(frozen=True)
class StaticPropertyAlternatives(StaticProperty):
    """Mutually exclusive sub-configurations."""

    kind: ClassVar[str] = "alternative"

    alternatives: Tuple[StaticPropertyAlternative, ...] = ()

    @property
    def selected_alternative(self) -> Optional[StaticPropertyAlternative]:
        return next((alt for alt in self.alternatives if alt.selected), None)


@dataclass(frozen=True)
class AdapterDescription:
    """Immutable definition of an adapter instance."""

    app_id: str
    name: str = ""
    description: str = ""
    locales: Tuple[str, ...] = ()
    category: Tuple[str, ...] = ()
    config: Tuple[StaticProperty, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "AdapterDescription":
        """Build a description from its JSON form."""
        if "app_id" not in raw:
            raise ConfigError("Adapter description must include 'app_id'", ConfigErrorKind.MISSING_KEY, "app_id")

        return cls(
            app_id=raw["app_id"],
            name=raw.get("name", ""),
            description=raw.get("description", ""),
            locales=tuple(raw.get("locales", ())),
            category=tuple(raw.get("category", ())),
            config=tuple(property_from_dict(item) for item in raw.get("config", ())),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON form of this description."""
        return {
            "app_id": self.app_id,
            "name": self.name,
            "description": self.description,
            "locales": list(self.locales),
            "category": list(self.category),
            "config": [property_to_dict(item) for item in self.config],
        }


def _require(raw: Any, key: str, what: str) -> Any:
    value = raw.get(key) if isinstance(raw, Mapping) else None
    if not value:
        raise ConfigError(f"{what} must include '{key}'", ConfigErrorKind.MISSING_KEY, key)
    return value


def _group_from_dict(raw: Any, owner: str) -> StaticPropertyGroup:
    """Parse a nested group; collection members and alternative bodies must be groups."""
    if not isinstance(raw, Mapping) or raw.get("type", "group") != "group":
        kind = raw.get("type") if isinstance(raw, Mapping) else type(raw).__name__
        raise ConfigError(f"{owner} must contain groups, got {kind}", ConfigErrorKind.TYPE_MISMATCH, owner)
    return property_from_dict({**raw, "type": "group"})  # type: ignore[return-value]


def property_from_dict(raw: Mapping[str, Any]) -> StaticProperty:
    """Parse one property from its JSON form, dispatching on ``type``."""
    kind = raw.get("type")
    name = raw.get("internal_name")
    if not name:
        raise ConfigError("Static property must include 'internal_name'", ConfigErrorKind.MISSING_KEY, "internal_name")

    common = {
        "internal_name": name,
        "label": raw.get("label", ""),
        "description": raw.get("description", ""),
    }

    if kind == "text":
        value = raw.get("value")
        return FreeTextStaticProperty(
            value=None if value is None else str(value),
            datatype=raw.get("datatype", "string"),
            **common,
        )
    if kind == "secret":
        return SecretStaticProperty(value=raw.get("value"), **common)
    if kind == "single-selection":
        options = tuple(
            Option(
                name=_require(item, "name", f"Option of {name}"),
                internal_name=item.get("internal_name"),
                selected=bool(item.get("selected", False)),
            )
            for item in raw.get("options", ())
        )
        return OneOfStaticProperty(options=options, **common)
    if kind == "group":
        return StaticPropertyGroup(
            properties=tuple(property_from_dict(item) for item in raw.get("properties", ())),
            **common,
        )
    if kind == "collection":
        template = raw.get("template")
        return CollectionStaticProperty(
            template=_group_from_dict(template, name) if template else None,
            members=tuple(_group_from_dict(item, name) for item in raw.get("members", ())),
            **common,
        )
    if kind == "alternative":
        alternatives = []
        for item in raw.get("alternatives", ()):
            alt_name = _require(item, "internal_name", f"Alternative of {name}")
            nested = item.get("property")
            alternatives.append(
                StaticPropertyAlternative(
                    internal_name=alt_name,
                    label=item.get("label", ""),
                    description=item.get("description", ""),
                    selected=bool(item.get("selected", False)),
                    property=_group_from_dict(nested, name) if nested else None,
                )
            )
        return StaticPropertyAlternatives(alternatives=tuple(alternatives), **common)

    raise ConfigError(f"Unsupported static property type: {kind}", ConfigErrorKind.TYPE_MISMATCH, name)


def property_to_dict(prop: StaticProperty) -> Dict[str, Any]:
    """Serialize one property to its JSON form."""
    raw: Dict[str, Any] = {
        "type": prop.kind,
        "internal_name": prop.internal_name,
        "label": prop.label,
        "description": prop.description,
    }

    if isinstance(prop, FreeTextStaticProperty):
        raw.update(value=prop.value, datatype=prop.datatype)
    elif isinstance(prop, SecretStaticProperty):
        raw["value"] = prop.value
    elif isinstance(prop, OneOfStaticProperty):
        raw["options"] = [
            {"name": option.name, "internal_name": option.internal_name, "selected": option.selected}
            for option in prop.options
        ]
    elif isinstance(prop, StaticPropertyGroup):
        raw["properties"] = [property_to_dict(item) for item in prop.properties]
    elif isinstance(prop, CollectionStaticProperty):
        raw["template"] = property_to_dict(prop.template) if prop.template else None
        raw["members"] = [property_to_dict(item) for item in prop.members]
    elif isinstance(prop, StaticPropertyAlternatives):
        raw["alternatives"] = [
            {
                "internal_name": alt.internal_name,
                "label": alt.label,
                "description": alt.description,
                "selected": alt.selected,
                "property": property_to_dict(alt.property) if alt.property else None,
            }
            for alt in prop.alternatives
        ]

    return raw
