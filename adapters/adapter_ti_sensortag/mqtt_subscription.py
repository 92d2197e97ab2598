"""MQTT subscription used by push adapters."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from connect_runtime.errors import AdapterConnectionError, ConfigError, ConfigErrorKind
from connect_runtime.streaming import MessageCallback

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MqttConfig:
    """Broker address, topic and optional credentials."""

    broker_url: str
    topic: str
    username: Optional[str] = None
    password: Optional[str] = None
    qos: int = 0
    subscribe_timeout_s: float = 10.0

    @property
    def host(self) -> str:
        return self._parsed()[0]

    @property
    def port(self) -> int:
        return self._parsed()[1]

    def _parsed(self) -> tuple[str, int]:
        """Split ``tcp://host:port``; protocol and port are required."""
        parsed = urlparse(self.broker_url)
        try:
            port = parsed.port
        except ValueError as exc:
            raise ConfigError(f"Invalid port in broker URL: {self.broker_url}", ConfigErrorKind.TYPE_MISMATCH, "broker_url") from exc

        if not parsed.scheme or not parsed.hostname or port is None:
            raise ConfigError(
                f"Broker URL must look like tcp://host:1883, got {self.broker_url}",
                ConfigErrorKind.INVALID_VALUE,
                "broker_url",
            )
        return parsed.hostname, port


class MqttSubscription:
    """
    Subscription to one MQTT topic via paho-mqtt.

    open() returns once the broker has acknowledged the subscription.
    Payloads are handed to the callback from paho's network thread.
    """

    def __init__(self, config: MqttConfig) -> None:
        self._config = config
        self._client = None
        self._subscribed = threading.Event()
        self._error: Optional[str] = None
        self._closed = False

    def open(self, on_message: MessageCallback) -> None:
        try:
            import paho.mqtt.client as mqtt  # type: ignore
        except ModuleNotFoundError as exc:
            raise AdapterConnectionError("paho-mqtt is required for MqttSubscription") from exc

        host, port = self._config.host, self._config.port
        client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
        if self._config.username is not None:
            client.username_pw_set(self._config.username, self._config.password)

        client.on_connect = self._on_connect
        client.on_subscribe = self._on_subscribe
        client.on_message = lambda _client, _userdata, message: on_message(message.payload)

        try:
            client.connect(host, port)
        except (OSError, ValueError) as exc:
            raise AdapterConnectionError(f"Could not connect to MQTT broker {host}:{port}: {exc}") from exc

        self._client = client
        client.loop_start()

        if not self._subscribed.wait(self._config.subscribe_timeout_s):
            self.close()
            raise AdapterConnectionError(f"Timed out subscribing to {self._config.topic} on {host}:{port}")
        if self._closed:
            self.close()
            raise AdapterConnectionError(f"Subscription to {self._config.topic} closed while subscribing")
        if self._error is not None:
            self.close()
            raise AdapterConnectionError(self._error)

    def close(self) -> None:
        self._closed = True
        # Wake a pending open().
        self._subscribed.set()
        client, self._client = self._client, None
        if client is None:
            return None
        client.disconnect()
        client.loop_stop()

    def _on_connect(self, client, _userdata, _flags, reason_code, _properties) -> None:
        if reason_code.is_failure:
            self._error = f"MQTT broker refused connection: {reason_code}"
            self._subscribed.set()
            return None
        client.subscribe(self._config.topic, qos=self._config.qos)

    def _on_subscribe(self, _client, _userdata, _mid, reason_codes, _properties) -> None:
        failed = [str(code) for code in reason_codes if code.is_failure]
        if failed:
            self._error = f"MQTT subscription to {self._config.topic} rejected: {', '.join(failed)}"
        else:
            logger.info("subscribed to %s", self._config.topic)
        self._subscribed.set()
