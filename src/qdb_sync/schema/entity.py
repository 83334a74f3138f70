"""Entities: named, typed objects in the remote database."""

from __future__ import annotations
from dataclasses import dataclass

from .field import Field


@dataclass
class Entity:
    """An addressable object in the database.

    The ``id`` identifies the entity and should not change. ``type`` and
    ``name`` are refreshed whenever the entity is fetched again.
    """

    id: str
    type: str
    name: str

    def field(self, name: str) -> Field:
        """Return an unread field of this entity.

        :param name: the name of the field.

        :return: a `.Field` addressed at this entity, with an unspecified value.
        """
        return Field(self.id, name)
