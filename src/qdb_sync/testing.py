r"""Test harnesses to help with writing tests for code that uses qdb-sync.

`.MockTransport` simulates the database service in memory. It stores
entities and field values, hands out notification tokens, and queues
notifications when a write matches a subscription, so a `.Database` and
`.DatabaseWorker` can be exercised without a server.

It also records every call, and can be told to fail specific methods or
to lose its connection, which is useful for testing error handling.
"""

from __future__ import annotations
from collections.abc import Iterable, Sequence
import copy
from itertools import count
from typing import Optional

from .exceptions import TransportError
from .schema import (
    Entity,
    Field,
    Notification,
    NotificationConfig,
    NotificationToken,
)
from .transport import Transport


class MockTransport(Transport):
    r"""An in-memory stand-in for the database service.

    * ``calls`` lists the name of every method called, in order.
    * Add a method name to ``failing`` to make that method raise
      `.TransportError`\ .
    * `.drop_connection` simulates the service going away. The next
      `.connect` starts a new session, in which the service has
      forgotten all subscriptions, as the real service does.
    * `.push_notification` queues a notification without checking its token,
      to simulate a service that disagrees with the registry.
    """

    def __init__(
        self, entities: Iterable[Entity] = (), connected: bool = False
    ) -> None:
        """Create a mock service.

        :param entities: entities that exist in the mock database.
        :param connected: whether to start off connected.
        """
        self.entities: dict[str, Entity] = {e.id: e for e in entities}
        self.fields: dict[tuple[str, str], Field] = {}
        self.subscriptions: dict[NotificationToken, NotificationConfig] = {}
        self.pending: list[Notification] = []
        self.calls: list[str] = []
        self.failing: set[str] = set()
        self.sessions = 0
        self._connected = connected
        self._token_ids = count(1)

    def call_count(self, name: str) -> int:
        """Count the calls made to a method.

        :param name: the method name, e.g. ``"register_notification"``.
        :return: how many times it has been called.
        """
        return self.calls.count(name)

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failing:
            raise TransportError(f"Mock failure in {name}")

    def _require_connection(self) -> None:
        if not self._connected:
            raise TransportError("Not connected")

    def drop_connection(self) -> None:
        """Simulate the service disconnecting us."""
        self._connected = False

    def add_entity(self, entity: Entity, **values: Field) -> None:
        r"""Add an entity, optionally with some stored field values.

        :param entity: the entity to add.
        :param \**values: fields to store, keyed by field name.
        """
        self.entities[entity.id] = entity
        for name, field in values.items():
            self.fields[(entity.id, name)] = copy.deepcopy(field)

    def push_notification(self, notification: Notification) -> None:
        """Queue a notification for the next `.get_notifications` call.

        :param notification: the notification. Its token is not checked.
        """
        self.pending.append(notification)

    def connect(self) -> None:
        self._call("connect")
        self._connected = True
        self.sessions += 1
        self.subscriptions.clear()
        self.pending.clear()

    def connected(self) -> bool:
        return self._connected

    def disconnect(self) -> bool:
        self.calls.append("disconnect")
        was_connected = self._connected
        self._connected = False
        return was_connected

    def get_entity(self, entity_id: str) -> Entity:
        self._call("get_entity")
        self._require_connection()
        try:
            return copy.deepcopy(self.entities[entity_id])
        except KeyError:
            raise TransportError(f"No entity with ID {entity_id}") from None

    def get_entities(self, entity_type: str) -> list[Entity]:
        self._call("get_entities")
        self._require_connection()
        return [
            copy.deepcopy(e) for e in self.entities.values() if e.type == entity_type
        ]

    def read(self, fields: Sequence[Field]) -> None:
        self._call("read")
        self._require_connection()
        for field in fields:
            stored = self.fields.get((field.entity_id, field.name))
            if stored is None:
                raise TransportError(
                    f"Failed to read {field.name} of entity {field.entity_id}"
                )
            field.value = copy.deepcopy(stored.value)
            field.write_time = stored.write_time
            field.writer_id = stored.writer_id

    def write(self, fields: Sequence[Field]) -> None:
        """Store field values, queueing notifications for matching subscriptions.

        :param fields: the fields to write.
        """
        self._call("write")
        self._require_connection()
        for field in fields:
            key = (field.entity_id, field.name)
            previous = self.fields.get(key) or Field(field.entity_id, field.name)
            current = copy.deepcopy(field)
            self.fields[key] = current
            self._notify(previous, current)

    def _notify(self, previous: Field, current: Field) -> None:
        entity = self.entities.get(current.entity_id)
        for token, config in self.subscriptions.items():
            if config.field != current.name:
                continue
            if config.entity_id and config.entity_id != current.entity_id:
                continue
            if config.entity_type and (
                entity is None or entity.type != config.entity_type
            ):
                continue
            if config.notify_on_change and previous.value == current.value:
                continue
            context = [
                copy.deepcopy(self.fields.get((current.entity_id, name)))
                or Field(current.entity_id, name)
                for name in config.context
            ]
            self.pending.append(
                Notification(
                    token=token,
                    current=copy.deepcopy(current),
                    previous=copy.deepcopy(previous),
                    context=context,
                )
            )

    def register_notification(self, config: NotificationConfig) -> NotificationToken:
        self._call("register_notification")
        self._require_connection()
        token = NotificationToken(f"token-{next(self._token_ids)}")
        self.subscriptions[token] = config
        return token

    def unregister_notification(self, token: NotificationToken) -> None:
        self._call("unregister_notification")
        self._require_connection()
        self.subscriptions.pop(token, None)

    def get_notifications(self) -> list[Notification]:
        self._call("get_notifications")
        self._require_connection()
        notifications, self.pending = self.pending, []
        return notifications

    def token_for(self, config: NotificationConfig) -> Optional[NotificationToken]:
        """Find the token the mock service assigned to a filter.

        :param config: the filter.
        :return: the token, or ``None`` if it's not subscribed.
        """
        for token, c in self.subscriptions.items():
            if c == config:
                return token
        return None
