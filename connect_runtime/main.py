"""Connect runtime entrypoint."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Optional

from connect_runtime.adapter_manager import AdapterManager, PipelineFactory
from connect_runtime.config import AdapterConfig, ConfigRepository, GatewayConfig
from connect_runtime.errors import ConfigError
from connect_runtime.health import HealthReporter
from connect_runtime.pipeline import EventPipeline, KafkaEventPipeline, LoggingPipeline
from connect_runtime.registry import AdapterRegistry
from connect_runtime.runtime import ConnectRuntime

logger = logging.getLogger(__name__)

HEALTH_LOG_INTERVAL_S = 60


async def _run(runtime: ConnectRuntime, config: Optional[GatewayConfig] = None) -> None:
    """Run the connect runtime and keep the loop alive."""
    runtime.start(config)
    try:
        while True:
            await asyncio.sleep(HEALTH_LOG_INTERVAL_S)
            logger.info("health %s", runtime.health_snapshot())
    finally:
        runtime.stop()


def resolve_kafka_bootstrap(config: GatewayConfig, env_bootstrap: Optional[str], dry_run: bool) -> Optional[str]:
    """KAFKA_BOOTSTRAP from the environment wins over ``kafka_bootstrap`` in the config file."""
    bootstrap = env_bootstrap or config.kafka_bootstrap
    if not bootstrap and not dry_run:
        raise ConfigError("KAFKA_BOOTSTRAP or kafka_bootstrap in the gateway config is required unless DRY_RUN is set")
    return bootstrap


def build_pipeline_factory(kafka_bootstrap: Optional[str], dry_run: bool) -> PipelineFactory:
    """Return a factory giving each adapter its own output pipeline."""
    if not dry_run and not kafka_bootstrap:
        raise ConfigError("A Kafka bootstrap address is required unless DRY_RUN is set")

    def factory(config: AdapterConfig) -> EventPipeline:
        if dry_run:
            return LoggingPipeline(config.adapter_id)
        return KafkaEventPipeline(kafka_bootstrap, config.topic)  # type: ignore[arg-type]

    return factory


def main(registry: Optional[AdapterRegistry] = None) -> None:
    """Application entrypoint for the connect runtime."""
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config_path = os.getenv("GATEWAY_CONFIG")
    dry_run = os.getenv("DRY_RUN", "0").lower() in ("1", "true", "yes")

    if not config_path:
        raise ConfigError("GATEWAY_CONFIG is required")

    config_repo = ConfigRepository(config_path)
    config = config_repo.load()
    kafka_bootstrap = resolve_kafka_bootstrap(config, os.getenv("KAFKA_BOOTSTRAP"), dry_run)

    if registry is None:
        from adapters import default_registry

        registry = default_registry()

    adapters = AdapterManager(
        registry=registry,
        pipeline_factory=build_pipeline_factory(kafka_bootstrap, dry_run),
        health=HealthReporter(),
    )
    runtime = ConnectRuntime(config_repo=config_repo, adapters=adapters)

    try:
        asyncio.run(_run(runtime, config))
    except KeyboardInterrupt:
        logger.info("interrupted")


if __name__ == "__main__":
    main()
