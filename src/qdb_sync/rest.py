r"""A `.Transport` that talks to the database service's REST API.

The service identifies clients by an ID handed out from ``/make-client-id``.
The response to that request is a JSON object (containing a ``header``) that
we use as a template for every subsequent request: each request is the
template plus a ``payload``, POSTed to ``/api``.

Every response carries ``header.authenticationStatus``. If it's anything other
than ``AUTHENTICATED`` (for example because the service has restarted and
forgotten us), we fetch a new client ID and try again, a limited number of
times. That is the only retry this module does: other failures are raised
straight away as `.TransportError`\ , and the transport then reports itself
disconnected so the `.DatabaseWorker` can reconnect.
"""

from __future__ import annotations
from collections.abc import Mapping, Sequence
import copy
import logging
from typing import Any, Optional

import httpx

from .exceptions import AuthenticationError, TransportError
from .schema import Entity, Field, Notification, NotificationConfig, NotificationToken
from .schema import wire
from .transport import Transport

_LOGGER = logging.getLogger(__name__)

AUTHENTICATED = "AUTHENTICATED"


def has_authenticated(response: Any) -> bool:
    """Check whether a response says our client ID was accepted.

    :param response: the decoded JSON response.
    :return: ``True`` if ``header.authenticationStatus`` is ``AUTHENTICATED``.
    """
    if not isinstance(response, Mapping):
        return False
    header = response.get("header")
    if not isinstance(header, Mapping):
        return False
    return header.get("authenticationStatus") == AUTHENTICATED


def response_payload(response: Mapping[str, Any], key: str) -> Any:
    """Extract an item from the payload of a response.

    :param response: the decoded JSON response.
    :param key: the key to look up in ``response["payload"]``.
    :return: the item.
    :raises TransportError: if the payload or the key is missing.
    """
    payload = response.get("payload")
    if not isinstance(payload, Mapping):
        raise TransportError("Invalid response from server: no payload")
    if key not in payload:
        raise TransportError(f"Invalid response from server: no {key} key")
    return payload[key]


class RestTransport(Transport):
    """Connect to the database service over HTTP."""

    def __init__(
        self,
        url: str,
        client: Optional[httpx.Client] = None,
        auth_attempts: int = 3,
        timeout: float = 10.0,
    ) -> None:
        """Set up the transport. No requests are made until `.connect`.

        :param url: the base URL of the service, e.g. ``http://localhost:8080``.
        :param client: the `httpx.Client` to send requests with. This is
            useful for testing. By default a new client is created.
        :param auth_attempts: how many times to send a request before giving
            up, if the service keeps rejecting our client ID.
        :param timeout: the timeout for each HTTP request, in seconds. Only
            used if ``client`` is not supplied.
        """
        self.url = url.rstrip("/")
        self.client = client or httpx.Client(timeout=timeout)
        self.auth_attempts = auth_attempts
        self._request_template: Optional[dict[str, Any]] = None

    def _request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        r"""Make a request and decode the JSON response.

        Any failure marks the transport as disconnected.

        :param method: the HTTP method.
        :param path: the path, relative to the service URL.
        :param \**kwargs: passed to `httpx.Client.request`.

        :return: the decoded JSON.
        :raises TransportError: if the request fails or the response is not JSON.
        """
        try:
            r = self.client.request(method, f"{self.url}{path}", **kwargs)
            r.raise_for_status()
            return r.json()
        except httpx.HTTPError as e:
            self._request_template = None
            raise TransportError(f"Request to {path} failed: {e}") from e
        except ValueError as e:
            self._request_template = None
            raise TransportError(f"Invalid JSON from server: {e}") from e

    def authenticate(self) -> None:
        """Obtain a new client ID, which will be sent with every request.

        :raises TransportError: if the request fails, or the response isn't
            a JSON object.
        """
        response = self._request_json("GET", "/make-client-id")
        if not isinstance(response, Mapping):
            self._request_template = None
            raise TransportError("Invalid response from server")
        self._request_template = dict(response)
        _LOGGER.debug("Obtained a new client ID")

    def send(self, payload: Mapping[str, Any]) -> Mapping[str, Any]:
        """Send a request to the API, re-authenticating if necessary.

        :param payload: the request payload, including its ``@type``.
        :return: the decoded response.

        :raises AuthenticationError: if the service still rejects us after
            ``auth_attempts`` attempts.
        :raises TransportError: if any request fails.
        """
        for attempt in range(self.auth_attempts):
            if self._request_template is None:
                self.authenticate()
            request = copy.deepcopy(self._request_template)
            request["payload"] = dict(payload)
            response = self._request_json("POST", "/api", json=request)
            if has_authenticated(response):
                return response
            _LOGGER.debug(
                "Request was not authenticated (attempt %s of %s)",
                attempt + 1,
                self.auth_attempts,
            )
            self._request_template = None
        raise AuthenticationError("Failed to authenticate")

    def connect(self) -> None:
        self.authenticate()

    def connected(self) -> bool:
        return self._request_template is not None

    def disconnect(self) -> bool:
        was_connected = self.connected()
        self._request_template = None
        return was_connected

    def get_entity(self, entity_id: str) -> Entity:
        response = self.send(
            {
                "@type": wire.type_url("WebRuntimeGetEntityRequest"),
                "entityId": entity_id,
            }
        )
        return wire.entity_from_wire(response_payload(response, "entity"))

    def get_entities(self, entity_type: str) -> list[Entity]:
        response = self.send(
            {
                "@type": wire.type_url("WebRuntimeGetEntitiesRequest"),
                "entityType": entity_type,
            }
        )
        entities = response_payload(response, "entity")
        if not isinstance(entities, list):
            raise TransportError("Invalid response from server: entity is not a list")
        return [wire.entity_from_wire(e) for e in entities]

    def read(self, fields: Sequence[Field]) -> None:
        """Read fields, filling in their values.

        The service answers with one item per requested field, in order.

        :param fields: the fields to read.
        :raises TransportError: if the request fails, the response doesn't
            match the request, or the service couldn't read a field.
        """
        response = self.send(
            {
                "@type": wire.type_url("WebRuntimeDatabaseRequest"),
                "requestType": "READ",
                "requests": [{"id": f.entity_id, "field": f.name} for f in fields],
            }
        )
        items = response_payload(response, "response")
        if not isinstance(items, list) or len(items) != len(fields):
            raise TransportError(
                "Invalid response from server: expected one item per field read"
            )
        for field, item in zip(fields, items):
            if isinstance(item, Mapping) and item.get("success") is False:
                raise TransportError(
                    f"Failed to read {field.name} of entity {field.entity_id}"
                )
            wire.update_field_from_wire(field, item)

    def write(self, fields: Sequence[Field]) -> None:
        self.send(
            {
                "@type": wire.type_url("WebRuntimeDatabaseRequest"),
                "requestType": "WRITE",
                "requests": [wire.field_to_wire(f) for f in fields],
            }
        )

    def register_notification(self, config: NotificationConfig) -> NotificationToken:
        response = self.send(
            {
                "@type": wire.type_url("WebRuntimeRegisterNotificationRequest"),
                "requests": [wire.config_to_wire(config)],
            }
        )
        tokens = response_payload(response, "tokens")
        if not isinstance(tokens, list) or len(tokens) != 1:
            raise TransportError("Invalid response from server: expected one token")
        if not isinstance(tokens[0], str) or not tokens[0]:
            raise TransportError(f"Invalid token from server: {tokens[0]!r}")
        return NotificationToken(tokens[0])

    def unregister_notification(self, token: NotificationToken) -> None:
        self.send(
            {
                "@type": wire.type_url("WebRuntimeUnregisterNotificationRequest"),
                "tokens": [token],
            }
        )

    def get_notifications(self) -> list[Notification]:
        response = self.send(
            {"@type": wire.type_url("WebRuntimeGetNotificationsRequest")}
        )
        notifications = response_payload(response, "notifications")
        if not isinstance(notifications, list):
            raise TransportError(
                "Invalid response from server: notifications is not a list"
            )
        return [wire.notification_from_wire(n) for n in notifications]
