"""TI SensorTag MQTT push adapter."""
