r"""The application's view of the remote database.

`.Database` combines a `.Transport` with a `.SubscriptionRegistry`\ , so that
application code has one object to read, write and subscribe through. Workers
get hold of it from the `.ApplicationContext`.
"""

from __future__ import annotations
from collections.abc import Callable, Iterable, Mapping, Sequence

from anyio.streams.memory import MemoryObjectReceiveStream

from .registry import SubscriptionRegistry
from .schema import Entity, Field, Notification, NotificationConfig, NotificationToken
from .transport import Transport


class Database:
    """Entity lookup, field access and subscriptions for one service."""

    def __init__(
        self, transport: Transport, registry: SubscriptionRegistry | None = None
    ) -> None:
        """Wrap a transport.

        :param transport: the connection to the database service.
        :param registry: the subscription registry. By default a new one is
            created for ``transport``.
        """
        self._transport = transport
        if registry is None:
            registry = SubscriptionRegistry(transport)
        self._registry = registry

    @property
    def transport(self) -> Transport:
        """The connection to the database service."""
        return self._transport

    @property
    def registry(self) -> SubscriptionRegistry:
        """The registry that owns our notification subscriptions."""
        return self._registry

    def connect(self) -> None:
        self._transport.connect()

    def connected(self) -> bool:
        return self._transport.connected()

    def disconnect(self) -> bool:
        return self._transport.disconnect()

    def get_entity(self, entity_id: str) -> Entity:
        return self._transport.get_entity(entity_id)

    def get_entities(self, entity_type: str) -> list[Entity]:
        return self._transport.get_entities(entity_type)

    def find(
        self,
        entity_type: str,
        fields: Iterable[str],
        predicate: Callable[[Mapping[str, Field]], bool],
    ) -> list[Entity]:
        """Find the entities of a type whose fields satisfy a predicate.

        Each entity's ``fields`` are read in a single request, and passed to
        ``predicate`` as a dictionary keyed by field name.

        :param entity_type: the type of entity to search.
        :param fields: the names of the fields ``predicate`` needs.
        :param predicate: a function that returns ``True`` for entities that
            should be included.

        :return: the matching entities.

        :raises TransportError: if any lookup or read fails.
        """
        names = list(fields)
        result = []
        for entity in self.get_entities(entity_type):
            requests = [entity.field(name) for name in names]
            self.read(requests)
            if predicate({field.name: field for field in requests}):
                result.append(entity)
        return result

    def read(self, fields: Sequence[Field]) -> None:
        self._transport.read(fields)

    def write(self, fields: Sequence[Field]) -> None:
        self._transport.write(fields)

    def register_notification(
        self, config: NotificationConfig
    ) -> MemoryObjectReceiveStream[Notification]:
        """Listen for notifications. See `.SubscriptionRegistry.subscribe`.

        :param config: the filter.
        :return: a stream of matching notifications.
        """
        return self._registry.subscribe(config)

    def unregister_notification(self, token: NotificationToken) -> None:
        """Cancel a subscription. See `.SubscriptionRegistry.unsubscribe`.

        :param token: the token to cancel.
        """
        self._registry.unsubscribe(token)

    def process_notifications(self) -> int:
        """Poll for notifications and deliver them.

        :return: the number of notifications delivered.
        """
        return self._registry.dispatch()

    def clear_notifications(self) -> None:
        """Forget all subscriptions locally, after losing the connection."""
        self._registry.clear()
