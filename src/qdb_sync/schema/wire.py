r"""Convert schema objects to and from their JSON wire representation.

The database service speaks JSON-encoded protocol buffers. Values are sent
as ``Any`` messages, with an ``@type`` URL naming the variant and a ``raw``
payload, for example:

.. code-block:: json

    {"@type": "type.googleapis.com/qdb.Integer", "raw": "42"}

64-bit integers may arrive as strings, and timestamps are RFC 3339 strings.

Anything that can't be parsed raises `.TransportError`\ , so malformed
responses never escape as `KeyError`, `ValueError` or `TypeError`\ .
"""

from __future__ import annotations
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from ..exceptions import FieldTypeError, TransportError
from .entity import Entity
from .field import Field
from .notification import Notification, NotificationConfig, NotificationToken
from .value import Value, ValueType

TYPE_URL_PREFIX = "type.googleapis.com/qdb."


def type_url(name: str) -> str:
    """Return the ``@type`` URL for a message name.

    :param name: the unqualified message name, e.g. ``String``.
    :return: the full type URL.
    """
    return TYPE_URL_PREFIX + name


def timestamp_to_wire(timestamp: datetime) -> str:
    """Format a datetime as an RFC 3339 string in UTC.

    Naive datetimes are assumed to be UTC already.

    :param timestamp: the time to format.
    :return: the formatted timestamp.
    """
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def timestamp_from_wire(data: Any) -> datetime:
    """Parse an RFC 3339 timestamp.

    :param data: the string from the wire.
    :return: an aware datetime.
    :raises TransportError: if the timestamp can't be parsed.
    """
    if not isinstance(data, str):
        raise TransportError(f"Invalid timestamp from server: {data!r}")
    try:
        parsed = datetime.fromisoformat(data.replace("Z", "+00:00"))
    except ValueError as e:
        raise TransportError(f"Invalid timestamp from server: {data!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _require(data: Any, key: str, what: str) -> Any:
    if not isinstance(data, Mapping):
        raise TransportError(f"Invalid response from server: {what} is not an object")
    if key not in data:
        raise TransportError(f"Invalid response from server: no {key} key in {what}")
    return data[key]


def value_to_wire(value: Value) -> dict[str, Any]:
    """Encode a value as an ``Any`` message.

    :param value: the value to encode.
    :return: a JSON-compatible dictionary.
    """
    message: dict[str, Any] = {"@type": type_url(value.type.value)}
    if value.is_unspecified():
        return message
    if value.is_timestamp():
        message["raw"] = timestamp_to_wire(value.as_timestamp())
    else:
        message["raw"] = value.raw
    return message


def value_from_wire(data: Any) -> Value:
    """Decode an ``Any`` message into a value.

    A missing or ``null`` message is an unspecified value.

    :param data: the decoded JSON.
    :return: the value.
    :raises TransportError: if the type URL is unknown or the payload
        doesn't match it.
    """
    if data is None:
        return Value()
    url = _require(data, "@type", "value")
    if not isinstance(url, str) or not url.startswith(TYPE_URL_PREFIX):
        raise TransportError(f"Unknown value type from server: {url!r}")
    try:
        value_type = ValueType(url[len(TYPE_URL_PREFIX) :])
    except ValueError as e:
        raise TransportError(f"Unknown value type from server: {url!r}") from e
    if value_type is ValueType.UNSPECIFIED:
        return Value()
    raw = _require(data, "raw", "value")
    if value_type is ValueType.TIMESTAMP:
        raw = timestamp_from_wire(raw)
    elif value_type is ValueType.INTEGER and isinstance(raw, str):
        try:
            raw = int(raw)
        except ValueError as e:
            raise TransportError(f"Invalid integer from server: {raw!r}") from e
    try:
        return Value(value_type, raw)
    except FieldTypeError as e:
        raise TransportError(f"Invalid {value_type.value} payload: {raw!r}") from e


def field_to_wire(field: Field) -> dict[str, Any]:
    """Encode a field as a database request item.

    :param field: the field to encode.
    :return: a JSON-compatible dictionary.
    """
    return {
        "id": field.entity_id,
        "field": field.name,
        "value": value_to_wire(field.value),
        "writeTime": timestamp_to_wire(field.write_time),
        "writerId": field.writer_id,
    }


def field_from_wire(data: Any) -> Field:
    """Decode a field from a database response item.

    :param data: the decoded JSON.
    :return: a new `.Field`.
    :raises TransportError: if the item is malformed.
    """
    field = Field(
        entity_id=_str(_require(data, "id", "field")),
        name=_str(_require(data, "field", "field")),
    )
    update_field_from_wire(field, data)
    return field


def update_field_from_wire(field: Field, data: Any) -> None:
    """Fill in a field's value, write time and writer from a response item.

    This is how `.Transport.read` updates fields in place.

    :param field: the field to update.
    :param data: the decoded JSON response item.
    :raises TransportError: if the item is malformed.
    """
    if not isinstance(data, Mapping):
        raise TransportError("Invalid response from server: field is not an object")
    value = value_from_wire(data.get("value"))
    write_time = field.write_time
    if data.get("writeTime") is not None:
        write_time = timestamp_from_wire(data["writeTime"])
    writer_id = _str(data.get("writerId", field.writer_id) or "")
    field.value = value
    field.write_time = write_time
    field.writer_id = writer_id


def entity_from_wire(data: Any) -> Entity:
    """Decode an entity.

    :param data: the decoded JSON.
    :return: the entity.
    :raises TransportError: if the ``id``, ``type`` or ``name`` key is missing.
    """
    return Entity(
        id=_str(_require(data, "id", "entity")),
        type=_str(_require(data, "type", "entity")),
        name=_str(_require(data, "name", "entity")),
    )


def config_to_wire(config: NotificationConfig) -> dict[str, Any]:
    """Encode a notification filter.

    :param config: the filter to encode.
    :return: a JSON-compatible dictionary.
    """
    return {
        "id": config.entity_id,
        "type": config.entity_type,
        "field": config.field,
        "notifyOnChange": config.notify_on_change,
        "context": list(config.context),
    }


def notification_from_wire(data: Any) -> Notification:
    """Decode a notification.

    :param data: the decoded JSON.
    :return: the notification.
    :raises TransportError: if the notification is malformed.
    """
    token = NotificationToken(_str(_require(data, "token", "notification")))
    context = data.get("context", [])
    if not isinstance(context, list):
        raise TransportError("Invalid response from server: context is not a list")
    return Notification(
        token=token,
        current=field_from_wire(_require(data, "current", "notification")),
        previous=field_from_wire(_require(data, "previous", "notification")),
        context=[field_from_wire(c) for c in context],
    )


def _str(data: Any) -> str:
    if not isinstance(data, str):
        raise TransportError(
            f"Invalid response from server: expected a string, got {data!r}"
        )
    return data
