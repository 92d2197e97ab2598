"""Registry for creating adapter instances from descriptions."""

from __future__ import annotations

from typing import Callable, Dict, List, Mapping, Optional, TYPE_CHECKING

from connect_runtime.description import AdapterDescription
from connect_runtime.errors import AdapterStartError
from connect_runtime.pipeline import EventPipeline

if TYPE_CHECKING:
    from adapters.adapter_base.base_adapter import BaseAdapter

AdapterFactory = Callable[[AdapterDescription, EventPipeline], "BaseAdapter"]


class AdapterRegistry:
    """
    Maps adapter identifiers to factories.

    Built explicitly and passed to the runtime; there is no global
    registration state.
    """

    def __init__(self, factories: Optional[Mapping[str, AdapterFactory]] = None) -> None:
        """Initialize with an optional mapping of identifier to factory."""
        self._factories: Dict[str, AdapterFactory] = dict(factories or {})

    def register(self, adapter_id: str, factory: AdapterFactory) -> "AdapterRegistry":
        if adapter_id in self._factories:
            raise AdapterStartError(f"Adapter type already registered: {adapter_id}")
        self._factories[adapter_id] = factory
        return self

    def create(self, adapter_type: str, description: AdapterDescription, pipeline: EventPipeline) -> "BaseAdapter":
        """Create adapter instance from a description."""
        try:
            factory = self._factories[adapter_type]
        except KeyError:
            raise AdapterStartError(f"Unsupported adapter type: {adapter_type}") from None
        return factory(description, pipeline)

    def __contains__(self, adapter_type: object) -> bool:
        return adapter_type in self._factories

    def ids(self) -> List[str]:
        return sorted(self._factories)
