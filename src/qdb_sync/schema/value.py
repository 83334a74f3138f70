r"""Typed values held by database fields.

A `.Value` is a tagged union: it holds exactly one variant from `.ValueType`
together with a payload of the matching Python type. Reading or updating a
value as the wrong variant raises `.FieldTypeError`\ , it is never coerced.

There are three families of methods for each variant:

* ``is_<variant>()`` tests the variant.
* ``as_<variant>()`` returns the payload, or raises `.FieldTypeError`\ .
* ``update_<variant>(x)`` replaces the payload, but only if the value already
  holds that variant.
* ``set_<variant>(x)`` replaces both the variant and the payload.
"""

from __future__ import annotations
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from ..exceptions import FieldTypeError


class ValueType(str, Enum):
    """The variants a `.Value` may hold.

    The string value of each member is the tag used on the wire, so these
    must not be renamed.
    """

    UNSPECIFIED = "Unspecified"
    STRING = "String"
    INTEGER = "Integer"
    FLOAT = "Float"
    BOOLEAN = "Boolean"
    ENTITY_REFERENCE = "EntityReference"
    TIMESTAMP = "Timestamp"
    CONNECTION_STATE = "ConnectionState"
    GARAGE_DOOR_STATE = "GarageDoorState"


_DESCRIPTIONS = {
    ValueType.UNSPECIFIED: "unspecified",
    ValueType.STRING: "a string",
    ValueType.INTEGER: "an integer",
    ValueType.FLOAT: "a float",
    ValueType.BOOLEAN: "a boolean",
    ValueType.ENTITY_REFERENCE: "an entity reference",
    ValueType.TIMESTAMP: "a timestamp",
    ValueType.CONNECTION_STATE: "a connection state",
    ValueType.GARAGE_DOOR_STATE: "a garage door state",
}


def _check_payload(value_type: ValueType, raw: Any) -> Any:
    """Validate (and lightly normalise) a payload for a variant.

    Integers are accepted for floats, but booleans are never accepted
    as numbers even though `bool` subclasses `int`.

    :param value_type: the variant the payload is for.
    :param raw: the payload.

    :return: the payload, converted to `float` for the ``FLOAT`` variant.

    :raises FieldTypeError: if the payload has the wrong Python type.
    """
    if value_type is ValueType.UNSPECIFIED:
        ok = raw is None
    elif value_type is ValueType.INTEGER:
        ok = isinstance(raw, int) and not isinstance(raw, bool)
    elif value_type is ValueType.FLOAT:
        ok = isinstance(raw, (int, float)) and not isinstance(raw, bool)
        if ok:
            raw = float(raw)
    elif value_type is ValueType.BOOLEAN:
        ok = isinstance(raw, bool)
    elif value_type is ValueType.TIMESTAMP:
        ok = isinstance(raw, datetime)
    else:
        ok = isinstance(raw, str)
    if not ok:
        raise FieldTypeError(
            f"{raw!r} is not a valid payload for {_DESCRIPTIONS[value_type]} value"
        )
    return raw


class Value:
    """A value held by a database field.

    Values are mutable: the ``update_*`` and ``set_*`` methods change the
    value in place. Two values are equal if they hold the same variant and
    equal payloads.
    """

    __slots__ = ("_type", "_raw")

    def __init__(
        self, value_type: ValueType = ValueType.UNSPECIFIED, raw: Optional[Any] = None
    ) -> None:
        """Create a value.

        :param value_type: the variant to hold. Defaults to unspecified.
        :param raw: the payload, which must match ``value_type``.
        """
        value_type = ValueType(value_type)
        self._raw = _check_payload(value_type, raw)
        self._type = value_type

    @property
    def type(self) -> ValueType:
        """The variant currently held."""
        return self._type

    @property
    def raw(self) -> Any:
        """The payload, whatever the variant."""
        return self._raw

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Value):
            return NotImplemented
        return self._type is other._type and self._raw == other._raw

    def __repr__(self) -> str:
        return f"Value({self._type.value}, {self._raw!r})"

    def _get(self, value_type: ValueType) -> Any:
        if self._type is not value_type:
            raise FieldTypeError(f"Value is not {_DESCRIPTIONS[value_type]}")
        return self._raw

    def _update(self, value_type: ValueType, raw: Any) -> None:
        self._get(value_type)
        self._raw = _check_payload(value_type, raw)

    def _set(self, value_type: ValueType, raw: Any) -> None:
        self._raw = _check_payload(value_type, raw)
        self._type = value_type

    # Variant tests

    def is_unspecified(self) -> bool:
        return self._type is ValueType.UNSPECIFIED

    def is_str(self) -> bool:
        return self._type is ValueType.STRING

    def is_int(self) -> bool:
        return self._type is ValueType.INTEGER

    def is_float(self) -> bool:
        return self._type is ValueType.FLOAT

    def is_bool(self) -> bool:
        return self._type is ValueType.BOOLEAN

    def is_entity_reference(self) -> bool:
        return self._type is ValueType.ENTITY_REFERENCE

    def is_timestamp(self) -> bool:
        return self._type is ValueType.TIMESTAMP

    def is_connection_state(self) -> bool:
        return self._type is ValueType.CONNECTION_STATE

    def is_garage_door_state(self) -> bool:
        return self._type is ValueType.GARAGE_DOOR_STATE

    # Typed access

    def as_str(self) -> str:
        """Return the payload of a string value.

        :return: the string.
        :raises FieldTypeError: if this is not a string value.
        """
        return self._get(ValueType.STRING)

    def as_int(self) -> int:
        """Return the payload of an integer value.

        :return: the integer.
        :raises FieldTypeError: if this is not an integer value.
        """
        return self._get(ValueType.INTEGER)

    def as_float(self) -> float:
        """Return the payload of a float value.

        :return: the float.
        :raises FieldTypeError: if this is not a float value.
        """
        return self._get(ValueType.FLOAT)

    def as_bool(self) -> bool:
        """Return the payload of a boolean value.

        :return: the boolean.
        :raises FieldTypeError: if this is not a boolean value.
        """
        return self._get(ValueType.BOOLEAN)

    def as_entity_reference(self) -> str:
        """Return the ID of the entity referred to.

        :return: the referenced entity ID.
        :raises FieldTypeError: if this is not an entity reference.
        """
        return self._get(ValueType.ENTITY_REFERENCE)

    def as_timestamp(self) -> datetime:
        """Return the payload of a timestamp value.

        :return: the timestamp.
        :raises FieldTypeError: if this is not a timestamp value.
        """
        return self._get(ValueType.TIMESTAMP)

    def as_connection_state(self) -> str:
        """Return the payload of a connection state value.

        :return: the connection state.
        :raises FieldTypeError: if this is not a connection state value.
        """
        return self._get(ValueType.CONNECTION_STATE)

    def as_garage_door_state(self) -> str:
        """Return the payload of a garage door state value.

        :return: the garage door state.
        :raises FieldTypeError: if this is not a garage door state value.
        """
        return self._get(ValueType.GARAGE_DOOR_STATE)

    # In-place updates, which keep the variant

    def update_str(self, value: str) -> None:
        self._update(ValueType.STRING, value)

    def update_int(self, value: int) -> None:
        self._update(ValueType.INTEGER, value)

    def update_float(self, value: float) -> None:
        self._update(ValueType.FLOAT, value)

    def update_bool(self, value: bool) -> None:
        self._update(ValueType.BOOLEAN, value)

    def update_entity_reference(self, value: str) -> None:
        self._update(ValueType.ENTITY_REFERENCE, value)

    def update_timestamp(self, value: datetime) -> None:
        self._update(ValueType.TIMESTAMP, value)

    def update_connection_state(self, value: str) -> None:
        self._update(ValueType.CONNECTION_STATE, value)

    def update_garage_door_state(self, value: str) -> None:
        self._update(ValueType.GARAGE_DOOR_STATE, value)

    # Replacement, which may change the variant

    def set_str(self, value: str) -> None:
        self._set(ValueType.STRING, value)

    def set_int(self, value: int) -> None:
        self._set(ValueType.INTEGER, value)

    def set_float(self, value: float) -> None:
        self._set(ValueType.FLOAT, value)

    def set_bool(self, value: bool) -> None:
        self._set(ValueType.BOOLEAN, value)

    def set_entity_reference(self, value: str) -> None:
        self._set(ValueType.ENTITY_REFERENCE, value)

    def set_timestamp(self, value: datetime) -> None:
        self._set(ValueType.TIMESTAMP, value)

    def set_connection_state(self, value: str) -> None:
        self._set(ValueType.CONNECTION_STATE, value)

    def set_garage_door_state(self, value: str) -> None:
        self._set(ValueType.GARAGE_DOOR_STATE, value)

    def set_unspecified(self) -> None:
        self._set(ValueType.UNSPECIFIED, None)
