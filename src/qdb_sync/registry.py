r"""Deduplicate notification subscriptions and route notifications.

Many parts of an application may want to hear about the same field. The
database service only needs to know about each distinct filter once, so the
`.SubscriptionRegistry` keeps three mappings:

* the set of `.NotificationConfig` filters registered with the service,
* the token the service assigned to each filter,
* an `.Emitter` for each token, which fans notifications out to listeners.

Subscribing to a filter that is already registered just adds a listener to
the existing `.Emitter`\ . Polling the service (`.SubscriptionRegistry.dispatch`)
routes each notification to the `.Emitter` for its token.

Listeners detach by closing their stream, or by dropping it. Once a token
has no listeners left, the next `.SubscriptionRegistry.dispatch` cancels the
subscription with the service.
"""

from __future__ import annotations
import logging
from threading import RLock

from anyio.streams.memory import MemoryObjectReceiveStream

from .events import Emitter
from .exceptions import NotificationError, NotificationNotFoundError, TransportError
from .schema import Notification, NotificationConfig, NotificationToken
from .transport import Transport

_LOGGER = logging.getLogger(__name__)


class SubscriptionRegistry:
    """Keep one remote subscription per filter, shared by many listeners.

    Every method takes the registry's lock for its whole duration, including
    any call to the transport, so the registry may be used from more than one
    thread. Operations either succeed or leave the registry unchanged.
    """

    def __init__(self, transport: Transport) -> None:
        """Initialise an empty registry.

        :param transport: the connection used to register, unregister and
            poll for notifications.
        """
        self._transport = transport
        self._lock = RLock()
        self._registered_configs: set[NotificationConfig] = set()
        self._config_to_token: dict[NotificationConfig, NotificationToken] = {}
        self._token_to_emitter: dict[NotificationToken, Emitter[Notification]] = {}

    def __len__(self) -> int:
        """Return the number of tokens registered."""
        return len(self._token_to_emitter)

    def __contains__(self, token: object) -> bool:
        return token in self._token_to_emitter

    @property
    def tokens(self) -> list[NotificationToken]:
        """The tokens currently registered."""
        with self._lock:
            return list(self._token_to_emitter)

    @property
    def configs(self) -> list[NotificationConfig]:
        """The filters currently registered."""
        with self._lock:
            return list(self._registered_configs)

    def token_for(self, config: NotificationConfig) -> NotificationToken | None:
        """Look up the token for a filter.

        :param config: the filter.
        :return: its token, or ``None`` if it's not registered.
        """
        with self._lock:
            return self._config_to_token.get(config)

    def listener_count(self, token: NotificationToken) -> int:
        """Count the live listeners for a token.

        :param token: a registered token.
        :return: the number of listeners whose stream is still open.
        :raises NotificationNotFoundError: if the token is not registered.
        """
        with self._lock:
            try:
                return self._token_to_emitter[token].prune()
            except KeyError:
                raise NotificationNotFoundError(f"Unknown token {token}") from None

    def subscribe(
        self, config: NotificationConfig
    ) -> MemoryObjectReceiveStream[Notification]:
        """Add a listener for notifications matching a filter.

        If the filter is already registered, no request is made to the
        service: the new listener shares the existing subscription.

        :param config: the filter.
        :return: a stream on which matching notifications will arrive. Close
            it, or drop every reference to it, to stop listening.

        :raises NotificationError: if the registry's mappings are inconsistent.
        :raises TransportError: if the service rejects the subscription. The
            registry is unchanged in that case.
        """
        with self._lock:
            if config in self._registered_configs:
                token = self._config_to_token.get(config)
                emitter = self._token_to_emitter.get(token) if token else None
                if emitter is None:
                    raise NotificationError(
                        "Inconsistent notification state during registration"
                    )
                _LOGGER.debug("Adding listener to existing token %s", token)
                return emitter.new_receiver()

            token = self._transport.register_notification(config)
            emitter = self._token_to_emitter.get(token)
            if emitter is None:
                emitter = Emitter[Notification]()
            receiver = emitter.new_receiver()
            self._registered_configs.add(config)
            self._config_to_token[config] = token
            self._token_to_emitter[token] = emitter
            _LOGGER.debug("Registered notification %s as token %s", config, token)
            return receiver

    def unsubscribe(self, token: NotificationToken) -> None:
        """Cancel a subscription with the service and drop its listeners.

        All listeners on the token see the end of their stream, and every
        filter that maps to the token is forgotten.

        :param token: the token to cancel.

        :raises NotificationNotFoundError: if the token is not registered.
        :raises TransportError: if the service fails to unregister the token.
            The registry is unchanged in that case.
        """
        with self._lock:
            if token not in self._token_to_emitter:
                raise NotificationNotFoundError(
                    f"Token {token} not found during unregistration"
                )
            self._transport.unregister_notification(token)
            self._forget(token)
            _LOGGER.debug("Unregistered notification token %s", token)

    def dispatch(self) -> int:
        """Poll the service and deliver notifications to listeners.

        Every notification for a known token is delivered, even if some
        in the same batch have unknown tokens. Tokens left with no listeners
        are then released (see `.release_abandoned`).

        :return: the number of notifications delivered.

        :raises TransportError: if polling the service fails.
        :raises NotificationError: after the whole batch has been handled,
            if any notification had a token we don't know about.
        """
        with self._lock:
            notifications = self._transport.get_notifications()
            delivered = 0
            unknown: list[NotificationToken] = []
            for notification in notifications:
                emitter = self._token_to_emitter.get(notification.token)
                if emitter is None:
                    _LOGGER.error(
                        "Cannot process notification: no listeners exist for token %s",
                        notification.token,
                    )
                    unknown.append(notification.token)
                    continue
                emitter.emit(notification)
                delivered += 1
            self.release_abandoned()
        if unknown:
            raise NotificationError(
                f"Received notifications for unknown tokens: {', '.join(unknown)}"
            )
        return delivered

    def release_abandoned(self) -> list[NotificationToken]:
        """Unregister tokens whose listeners have all gone.

        A listener has gone once it has closed its stream, or dropped it.

        If the service fails to unregister a token, the failure is logged and
        the token is kept, so a later call will try again.

        :return: the tokens that were released.
        """
        released = []
        with self._lock:
            for token, emitter in list(self._token_to_emitter.items()):
                if emitter.prune() > 0:
                    continue
                try:
                    self._transport.unregister_notification(token)
                except TransportError as e:
                    _LOGGER.warning("Failed to release unused token %s: %s", token, e)
                    continue
                self._forget(token)
                released.append(token)
                _LOGGER.debug("Released token %s, which has no listeners", token)
        return released

    def clear(self) -> None:
        """Forget every subscription without contacting the service.

        This is used when the connection has been lost, after which the
        service's subscriptions are presumed invalid. Listeners see the end
        of their streams.
        """
        with self._lock:
            for emitter in self._token_to_emitter.values():
                emitter.close()
            self._token_to_emitter.clear()
            self._config_to_token.clear()
            self._registered_configs.clear()
        _LOGGER.debug("Cleared all notification subscriptions")

    def _forget(self, token: NotificationToken) -> None:
        """Remove a token and every filter that maps to it."""
        emitter = self._token_to_emitter.pop(token)
        emitter.close()
        for config, t in list(self._config_to_token.items()):
            if t == token:
                del self._config_to_token[config]
                self._registered_configs.discard(config)
