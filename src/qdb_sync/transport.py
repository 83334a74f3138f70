r"""The capabilities we need from a connection to the database service.

`.Transport` is the narrow interface the rest of qdb-sync consumes. The
REST implementation is `.RestTransport`\ ; `.MockTransport` in
`qdb_sync.testing` keeps everything in memory for tests.

Implementations should raise `.TransportError` (or a subclass) for any
failure, including malformed responses from the service.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from collections.abc import Sequence

from .schema import Entity, Field, Notification, NotificationConfig, NotificationToken


class Transport(ABC):
    """A connection to the database service.

    All methods block until the service has responded. qdb-sync does not
    impose timeouts of its own: a slow call simply makes the current
    scheduler tick take longer.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect (and authenticate) to the service.

        :raises TransportError: if the connection fails.
        """

    @abstractmethod
    def connected(self) -> bool:
        """Report whether the transport believes it is connected."""

    @abstractmethod
    def disconnect(self) -> bool:
        """Drop the connection, if there is one.

        :return: whether the transport was connected.
        """

    @abstractmethod
    def get_entity(self, entity_id: str) -> Entity:
        """Look up one entity by ID.

        :param entity_id: the ID of the entity.
        :return: the entity.
        """

    @abstractmethod
    def get_entities(self, entity_type: str) -> list[Entity]:
        """List all the entities of a type.

        :param entity_type: the type name.
        :return: the entities, possibly none.
        """

    @abstractmethod
    def read(self, fields: Sequence[Field]) -> None:
        """Read fields, updating their value, write time and writer in place.

        :param fields: the fields to read.
        """

    @abstractmethod
    def write(self, fields: Sequence[Field]) -> None:
        """Write the values of some fields.

        :param fields: the fields to write.
        """

    @abstractmethod
    def register_notification(self, config: NotificationConfig) -> NotificationToken:
        """Ask the service to notify us of changes matching a filter.

        :param config: the filter.
        :return: the token identifying the new subscription.
        """

    @abstractmethod
    def unregister_notification(self, token: NotificationToken) -> None:
        """Cancel a subscription.

        :param token: the token returned by `.register_notification`.
        """

    @abstractmethod
    def get_notifications(self) -> list[Notification]:
        """Collect the notifications that have fired since the last call.

        :return: the pending notifications, possibly none.
        """
