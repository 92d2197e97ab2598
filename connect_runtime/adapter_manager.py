"""Adapter manager for starting and monitoring adapters."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Tuple

from connect_runtime.config import AdapterConfig
from connect_runtime.errors import AdapterError, AdapterStartError
from connect_runtime.health import AdapterState, HealthEvent, HealthReporter
from connect_runtime.pipeline import EventPipeline
from connect_runtime.registry import AdapterRegistry

if TYPE_CHECKING:
    from adapters.adapter_base.base_adapter import BaseAdapter

logger = logging.getLogger(__name__)

PipelineFactory = Callable[[AdapterConfig], EventPipeline]


class AdapterManager:
    """
    Starts and monitors adapter instances in-process.

    Each adapter is independent: a failed start is recorded and reported
    but does not prevent the remaining adapters from starting.
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        pipeline_factory: PipelineFactory,
        health: Optional[HealthReporter] = None,
    ) -> None:
        """Initialize manager with an explicit adapter registry."""
        self._registry = registry
        self._pipeline_factory = pipeline_factory
        self._health = health or HealthReporter()
        self._configs: Dict[str, AdapterConfig] = {}
        self._running: Dict[str, Tuple["BaseAdapter", EventPipeline]] = {}
        self._failed: Dict[str, str] = {}

    def start_all(self, configs: List[AdapterConfig]) -> None:
        """Start all adapters defined in config."""
        for config in configs:
            if config.adapter_id in self._configs:
                raise AdapterStartError(f"Adapter already running: {config.adapter_id}")
            self._configs[config.adapter_id] = config
            self._start(config)

    def stop_all(self) -> None:
        """Stop all running adapters."""
        for adapter_id in list(self._running):
            self._stop(adapter_id)
        self._configs.clear()
        self._failed.clear()

    def restart(self, adapter_id: str) -> None:
        """Rebuild a specific adapter from its stored config and start it."""
        config = self._configs.get(adapter_id)
        if config is None:
            raise AdapterStartError(f"Adapter not found: {adapter_id}")

        self._stop(adapter_id)
        self._failed.pop(adapter_id, None)
        self._start(config)

    def adapter(self, adapter_id: str) -> Optional["BaseAdapter"]:
        entry = self._running.get(adapter_id)
        return entry[0] if entry else None

    def health(self) -> Dict[str, object]:
        """Return health status for all adapters."""
        for adapter_id, (adapter, _) in self._running.items():
            self._health.emit(
                HealthEvent(adapter_id, AdapterState.from_run_state(adapter.state), adapter.health())
            )
        return self._health.snapshot()

    def _start(self, config: AdapterConfig) -> None:
        pipeline = self._pipeline_factory(config)
        try:
            adapter = self._registry.create(config.adapter_type, config.description, pipeline)
            adapter.start()
        except AdapterError as exc:
            logger.error("adapter %s (%s) failed to start: %s", config.adapter_id, config.adapter_type, exc)
            self._failed[config.adapter_id] = str(exc)
            self._health.emit(HealthEvent(config.adapter_id, AdapterState.FAILED, {"error": str(exc)}))
            _close_pipeline(pipeline)
            return None

        self._running[config.adapter_id] = (adapter, pipeline)
        self._health.emit(HealthEvent(config.adapter_id, AdapterState.HEALTHY, adapter.health()))
        logger.info("adapter_manager started %s as %s", config.adapter_id, config.adapter_type)

    def _stop(self, adapter_id: str) -> None:
        entry = self._running.pop(adapter_id, None)
        self._health.forget(adapter_id)
        if entry is None:
            return None

        adapter, pipeline = entry
        try:
            adapter.stop()
        except Exception:
            logger.exception("adapter %s did not stop cleanly", adapter_id)
        finally:
            _close_pipeline(pipeline)


def _close_pipeline(pipeline: EventPipeline) -> None:
    close = getattr(pipeline, "close", None)
    if close is None:
        return None
    try:
        close()
    except Exception:
        logger.exception("error while closing pipeline")
