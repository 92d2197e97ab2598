"""Connect runtime facade."""

import logging
from typing import Dict, Optional

from connect_runtime.adapter_manager import AdapterManager
from connect_runtime.config import ConfigRepository, GatewayConfig

logger = logging.getLogger(__name__)


class ConnectRuntime:
    """
    Facade for the connect runtime.

    Responsibilities:
    - Load static config
    - Start/stop every configured adapter
    - Expose aggregated health
    """

    def __init__(self, config_repo: ConfigRepository, adapters: AdapterManager) -> None:
        """Initialize runtime with required managers."""
        self._config_repo = config_repo
        self._adapters = adapters

    def start(self, config: Optional[GatewayConfig] = None) -> None:
        """Load config, unless already loaded by the caller, and start adapters."""
        logger.info("connect_runtime starting")
        if config is None:
            config = self._config_repo.load()
        logger.info("connect_runtime config loaded for gateway %s (%d adapters)", config.gateway_id, len(config.adapters))
        self._adapters.start_all(config.adapters)
        logger.info("connect_runtime adapters started")

    def stop(self) -> None:
        """Stop all adapters gracefully."""
        logger.info("connect_runtime stopping")
        self._adapters.stop_all()
        logger.info("connect_runtime stopped")

    def health_snapshot(self) -> Dict[str, object]:
        """Return aggregated health snapshot for the gateway."""
        return {"adapters": self._adapters.health()}
