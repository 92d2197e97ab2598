"""TI SensorTag adapter: MQTT text frames to events."""

from __future__ import annotations

from adapters.adapter_base.base_adapter import StreamAdapter
from adapters.adapter_ti_sensortag.decoder import KEY_1, KEY_2, parse_event
from adapters.adapter_ti_sensortag.mqtt_subscription import MqttConfig, MqttSubscription
from connect_runtime.description import (
    AdapterDescription,
    FreeTextStaticProperty,
    SecretStaticProperty,
    StaticPropertyAlternative,
    StaticPropertyAlternatives,
    StaticPropertyGroup,
)
from connect_runtime.extractor import ConfigurationExtractor
from connect_runtime.pipeline import Event, EventPipeline
from connect_runtime.schema import TIMESTAMP_FIELD, CanonicalType, EventProperty, EventSchema

BROKER_URL = "broker_url"
TOPIC = "topic"
ACCESS_MODE = "access_mode"
ANONYMOUS_ACCESS = "anonymous-alternative"
USERNAME_ACCESS = "username-alternative"
USERNAME = "username"
PASSWORD = "password"

_SENSOR_FIELDS = (
    ("ambientTemp", "Ambient Temperature"),
    ("objectTemp", "Object Temperature"),
    ("humidity", "Humidity"),
    ("accelX", "Acceleration X"),
    ("accelY", "Acceleration Y"),
    ("accelZ", "Acceleration Z"),
    ("gyroX", "Gyroscope X"),
    ("gyroY", "Gyroscope Y"),
    ("gyroZ", "Gyroscope Z"),
    ("magX", "Magnetometer X"),
    ("magY", "Magnetometer Y"),
    ("magZ", "Magnetometer Z"),
    ("light", "Light"),
)


def mqtt_config_from(extractor: ConfigurationExtractor) -> MqttConfig:
    """Build the MQTT settings; credentials are read only for username access."""
    broker_url = extractor.text(BROKER_URL)
    topic = extractor.text(TOPIC)

    if extractor.selected_alternative(ACCESS_MODE) == ANONYMOUS_ACCESS:
        return MqttConfig(broker_url=broker_url, topic=topic)

    return MqttConfig(
        broker_url=broker_url,
        topic=topic,
        username=extractor.text(USERNAME),
        password=extractor.secret_value(PASSWORD),
    )


class TISensorTagAdapter(StreamAdapter):
    """Streams TI SensorTag readings published on an MQTT topic."""

    ID = "ti_sensortag"

    def __init__(self, description: AdapterDescription, pipeline: EventPipeline) -> None:
        super().__init__(description, pipeline)
        self._mqtt_config = mqtt_config_from(self.extractor)

    @property
    def mqtt_config(self) -> MqttConfig:
        return self._mqtt_config

    @classmethod
    def declare_model(cls) -> AdapterDescription:
        credentials = StaticPropertyGroup(
            internal_name="username-group",
            properties=(
                FreeTextStaticProperty(internal_name=USERNAME, label="Username"),
                SecretStaticProperty(internal_name=PASSWORD, label="Password"),
            ),
        )
        return AdapterDescription(
            app_id=cls.ID,
            name="TI Sensor Tag",
            locales=("en",),
            category=("Environment", "OpenData"),
            config=(
                FreeTextStaticProperty(
                    internal_name=BROKER_URL,
                    label="Broker URL",
                    description="Example: tcp://test-server.com:1883 (Protocol required. Port required)",
                ),
                StaticPropertyAlternatives(
                    internal_name=ACCESS_MODE,
                    label="Access Mode",
                    alternatives=(
                        StaticPropertyAlternative(internal_name=ANONYMOUS_ACCESS, label="Unauthenticated"),
                        StaticPropertyAlternative(
                            internal_name=USERNAME_ACCESS,
                            label="Username/Password",
                            property=credentials,
                        ),
                    ),
                ),
                FreeTextStaticProperty(internal_name=TOPIC, label="Topic", description="Example: test/topic"),
            ),
        )

    def get_schema(self) -> EventSchema:
        properties = [EventProperty(TIMESTAMP_FIELD, CanonicalType.TIMESTAMP, label="Timestamp")]
        properties.extend(EventProperty(name, CanonicalType.DOUBLE, label=label) for name, label in _SENSOR_FIELDS)
        properties.append(EventProperty(KEY_1, CanonicalType.BOOLEAN, label="Key 1"))
        properties.append(EventProperty(KEY_2, CanonicalType.BOOLEAN, label="Key 2"))
        return EventSchema(properties=tuple(properties))

    def subscription(self) -> MqttSubscription:
        return MqttSubscription(self._mqtt_config)

    def decode(self, payload: bytes) -> Event:
        return parse_event(payload)
