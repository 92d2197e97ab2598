"""Decoder for the SensorTag text frame."""

from __future__ import annotations

from typing import Union

from connect_runtime.errors import DecodeError
from connect_runtime.pipeline import Event
from connect_runtime.polling import now_millis
from connect_runtime.schema import TIMESTAMP_FIELD

KEY_1 = "key1"
KEY_2 = "key2"
BOOLEAN_FIELDS = (KEY_1, KEY_2)


def parse_event(payload: Union[bytes, str]) -> Event:
    """
    Parse newline separated ``key: value,`` tokens.

    Devices send a pretty-printed JSON object, so lines without a ``:``
    (the braces, blank lines) carry no reading and are skipped. Keys
    starting with ``key`` are push buttons and become booleans (pressed
    when the value is 1.0); every other value is a float. Missing buttons
    default to False and the receive time is always attached.

    >>> sorted(parse_event('{\\n"ambientTemp": 23.5,\\n"key1": 1.0\\n}'))
    ['ambientTemp', 'key1', 'key2', 'timestamp']
    """
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"Frame is not valid UTF-8: {exc}") from exc

    result: Event = {}
    for line in payload.split("\n"):
        token = line.replace(",", "").replace('"', "").strip()
        key, sep, raw = token.partition(":")
        if not sep:
            continue

        key = key.strip()
        if not key:
            raise DecodeError(f"Malformed token: {line!r}")

        try:
            value = float(raw.strip())
        except ValueError as exc:
            raise DecodeError(f"Value of {key} is not a number: {raw.strip()!r}") from exc

        result[key] = value == 1.0 if key.startswith("key") else value

    for key in BOOLEAN_FIELDS:
        result.setdefault(key, False)

    result[TIMESTAMP_FIELD] = now_millis()
    return result
