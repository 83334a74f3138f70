"""Fields: named, timestamped values attached to an entity."""

from __future__ import annotations
from dataclasses import dataclass, field as dataclass_field
from datetime import datetime, timezone
from typing import Any
from typing_extensions import Self

from .value import Value, ValueType


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass
class Field:
    """A read/write unit addressed by ``(entity_id, name)``.

    Fields are filled in place: `.Transport.read` updates ``value``,
    ``write_time`` and ``writer_id`` on the objects it is given, and
    notifications carry fields with the current and previous values.

    :param entity_id: the ID of the entity that owns the field.
    :param name: the name of the field.
    :param value: the value of the field. Unspecified until it is read.
    :param write_time: when the value was last written.
    :param writer_id: the ID of the client that last wrote the value.
    """

    entity_id: str
    name: str
    value: Value = dataclass_field(default_factory=Value)
    write_time: datetime = dataclass_field(default_factory=utc_now)
    writer_id: str = ""

    @classmethod
    def with_value(
        cls, entity_id: str, name: str, value_type: ValueType, raw: Any
    ) -> Self:
        """Create a field holding a particular value.

        :param entity_id: the ID of the entity that owns the field.
        :param name: the name of the field.
        :param value_type: the variant of the value.
        :param raw: the payload of the value.

        :return: a new field.
        """
        return cls(entity_id, name, Value(value_type, raw))

    def set_str(self, value: str) -> Self:
        self.value = Value(ValueType.STRING, value)
        return self

    def set_int(self, value: int) -> Self:
        self.value = Value(ValueType.INTEGER, value)
        return self

    def set_float(self, value: float) -> Self:
        self.value = Value(ValueType.FLOAT, value)
        return self

    def set_bool(self, value: bool) -> Self:
        self.value = Value(ValueType.BOOLEAN, value)
        return self

    def set_entity_reference(self, value: str) -> Self:
        self.value = Value(ValueType.ENTITY_REFERENCE, value)
        return self

    def set_timestamp(self, value: datetime) -> Self:
        self.value = Value(ValueType.TIMESTAMP, value)
        return self

    def set_connection_state(self, value: str) -> Self:
        self.value = Value(ValueType.CONNECTION_STATE, value)
        return self

    def set_garage_door_state(self, value: str) -> Self:
        self.value = Value(ValueType.GARAGE_DOOR_STATE, value)
        return self

    def set_unspecified(self) -> Self:
        self.value = Value()
        return self
