"""Keep the connection to the database alive and deliver notifications.

The `.DatabaseWorker` tracks two things: whether the network is reachable
(supplied from outside, usually by a stream of `bool` from a network monitor)
and whether the database service is connected. Each tick it either repairs
the connection or, once connected, polls for notifications.

Losing the network does not invalidate our subscriptions, so the registry is
left alone and we wait for the network to return. Losing the database
connection does: the service will have forgotten our client, so the registry
is cleared before reconnecting and subscribers must subscribe again when they
see the connectivity event.
"""

from __future__ import annotations
import logging
from typing import TYPE_CHECKING

from anyio import ClosedResourceError, EndOfStream, WouldBlock
from anyio.abc import ObjectReceiveStream

from ..events import Emitter
from .base import Worker

if TYPE_CHECKING:
    from ..application import ApplicationContext

_LOGGER = logging.getLogger(__name__)


class DatabaseWorker(Worker):
    """Supervise the database connection.

    Subscribe to `.DatabaseWorker.connectivity_changed` to be told when the
    connection is lost (``False``) or established (``True``).
    """

    def __init__(
        self,
        network_status: ObjectReceiveStream[bool] | None = None,
        network_connected: bool = True,
    ) -> None:
        """Initialise the worker in the disconnected state.

        :param network_status: a stream of network reachability updates. It is
            read without blocking once per tick, and the latest value wins.
        :param network_connected: whether the network is reachable before any
            update arrives. If nothing supplies ``network_status``, the network
            is assumed to be reachable.
        """
        self.connectivity_changed: Emitter[bool] = Emitter()
        self.network_status = network_status
        self._nw_connected = network_connected
        self._db_connected = False

    @property
    def db_connected(self) -> bool:
        """Whether we consider the database connected."""
        return self._db_connected

    @property
    def network_connected(self) -> bool:
        """Whether we consider the network reachable."""
        return self._nw_connected

    def set_network_connected(self, connected: bool) -> None:
        """Update network reachability directly.

        :param connected: whether the network is reachable.
        """
        self._nw_connected = connected

    def initialize(self, ctx: ApplicationContext) -> None:
        _LOGGER.info("Initializing database worker")

    def deinitialize(self, ctx: ApplicationContext) -> None:
        _LOGGER.info("Deinitializing database worker")

    def process_events(self) -> None:
        """Read any pending network reachability updates."""
        if self.network_status is None:
            return
        while True:
            try:
                self._nw_connected = self.network_status.receive_nowait()
            except WouldBlock:
                return
            except (EndOfStream, ClosedResourceError):
                _LOGGER.debug("Network status stream has closed")
                self.network_status = None
                return

    def tick(self, ctx: ApplicationContext) -> None:
        """Check the connection, repairing it or polling for notifications.

        :param ctx: the application context, which holds the `.Database`.

        :raises TransportError: if reconnecting or polling fails. The next tick
            will try again.
        :raises NotificationError: if the service sends notifications for
            tokens we don't know about.
        """
        self.process_events()
        database = ctx.database

        if not self._nw_connected:
            if self._db_connected:
                _LOGGER.warning(
                    "Network connection loss has disrupted database connection"
                )
                self._set_db_connected(False)
            return

        if not database.connected():
            if self._db_connected:
                _LOGGER.warning("Disconnected from database")
                database.clear_notifications()
                self._set_db_connected(False)

            _LOGGER.debug("Attempting to connect to the database...")
            database.disconnect()
            database.connect()

            if database.connected():
                _LOGGER.info("Connected to the database")
                self._set_db_connected(True)
            return

        if not self._db_connected:
            # Someone else connected the transport before our first tick.
            _LOGGER.info("Connected to the database")
            self._set_db_connected(True)

        database.process_notifications()

    def _set_db_connected(self, connected: bool) -> None:
        self._db_connected = connected
        self.connectivity_changed.emit(connected)
