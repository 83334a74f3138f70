"""Test the REST transport against a fake service, using httpx.MockTransport."""

import json

import httpx
import pytest

from qdb_sync import Field, NotificationConfig, RestTransport
from qdb_sync.exceptions import AuthenticationError, TransportError
from qdb_sync.schema.wire import type_url


class FakeService:
    """Answer requests the way the database service does.

    ``responses`` maps a request type name to the payload to send back.
    Set ``reject`` to the number of requests whose client ID should be refused.
    """

    def __init__(self):
        self.requests = []
        self.client_ids = 0
        self.reject = 0
        self.responses = {}
        self.status = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/make-client-id":
            self.client_ids += 1
            return httpx.Response(
                200, json={"header": {"id": f"client-{self.client_ids}"}}
            )
        assert request.url.path == "/api"
        body = json.loads(request.content)
        self.requests.append(body)
        if self.status != 200:
            return httpx.Response(self.status)
        if self.reject > 0:
            self.reject -= 1
            status = "UNAUTHENTICATED"
        else:
            status = "AUTHENTICATED"
        name = body["payload"]["@type"].rsplit(".", 1)[-1]
        return httpx.Response(
            200,
            json={
                "header": {**body["header"], "authenticationStatus": status},
                "payload": self.responses.get(name, {}),
            },
        )


@pytest.fixture
def service():
    return FakeService()


@pytest.fixture
def rest(service):
    client = httpx.Client(transport=httpx.MockTransport(service))
    return RestTransport("http://qdb.test/", client=client)


def test_connect(rest, service):
    """Connecting fetches a client ID, which is sent with every request."""
    assert not rest.connected()
    rest.connect()
    assert rest.connected()
    rest.write([Field("door-1", "State").set_garage_door_state("Open")])
    [request] = service.requests
    assert request["header"]["id"] == "client-1"
    assert request["payload"]["@type"] == type_url("WebRuntimeDatabaseRequest")
    assert request["payload"]["requestType"] == "WRITE"
    [item] = request["payload"]["requests"]
    assert item["value"] == {
        "@type": "type.googleapis.com/qdb.GarageDoorState",
        "raw": "Open",
    }
    assert rest.disconnect()
    assert not rest.connected()


def test_reauthenticates(rest, service):
    """A rejected client ID is replaced, and the request retried."""
    rest.connect()
    service.reject = 1
    service.responses["WebRuntimeGetEntityRequest"] = {
        "entity": {"id": "door-1", "type": "GarageDoor", "name": "Front door"}
    }
    entity = rest.get_entity("door-1")
    assert entity.name == "Front door"
    assert service.client_ids == 2
    assert [r["header"]["id"] for r in service.requests] == ["client-1", "client-2"]


def test_gives_up_authenticating(rest, service):
    """After auth_attempts rejections, AuthenticationError is raised."""
    rest.connect()
    service.reject = 10
    with pytest.raises(AuthenticationError):
        rest.get_notifications()
    assert len(service.requests) == rest.auth_attempts
    assert not rest.connected()


def test_connects_on_demand(rest, service):
    """Requests made before connecting authenticate first."""
    service.responses["WebRuntimeGetNotificationsRequest"] = {"notifications": []}
    assert rest.get_notifications() == []
    assert rest.connected()


def test_http_error(rest, service):
    """HTTP errors become TransportError, and we are then disconnected."""
    rest.connect()
    service.status = 500
    with pytest.raises(TransportError):
        rest.get_entities("GarageDoor")
    assert not rest.connected()


def test_not_json():
    """A response that isn't JSON is a TransportError."""
    client = httpx.Client(
        transport=httpx.MockTransport(lambda r: httpx.Response(200, text="nope"))
    )
    rest = RestTransport("http://qdb.test", client=client)
    with pytest.raises(TransportError):
        rest.connect()
    assert not rest.connected()


def test_malformed_payload(rest, service):
    """Missing or malformed payload items become TransportError."""
    service.responses["WebRuntimeGetEntitiesRequest"] = {"entity": "door-1"}
    with pytest.raises(TransportError, match="not a list"):
        rest.get_entities("GarageDoor")
    service.responses["WebRuntimeGetEntitiesRequest"] = {"entity": [{"id": "door-1"}]}
    with pytest.raises(TransportError, match="no type key"):
        rest.get_entities("GarageDoor")
    with pytest.raises(TransportError, match="no entity key"):
        rest.get_entity("door-1")


def test_read(rest, service):
    """Read fills in fields in place, matching response items by position."""
    service.responses["WebRuntimeDatabaseRequest"] = {
        "response": [
            {
                "id": "door-1",
                "field": "Count",
                "value": {"@type": type_url("Integer"), "raw": "42"},
                "writeTime": "2024-05-01T12:00:00Z",
                "writerId": "client-9",
            },
            {
                "id": "door-1",
                "field": "Name",
                "value": {"@type": type_url("String"), "raw": "Front door"},
            },
        ]
    }
    count, name = Field("door-1", "Count"), Field("door-1", "Name")
    rest.read([count, name])
    assert count.value.as_int() == 42
    assert count.writer_id == "client-9"
    assert count.write_time.year == 2024
    assert name.value.as_str() == "Front door"
    payload = service.requests[-1]["payload"]
    assert payload["requestType"] == "READ"
    assert payload["requests"] == [
        {"id": "door-1", "field": "Count"},
        {"id": "door-1", "field": "Name"},
    ]


def test_read_failure(rest, service):
    service.responses["WebRuntimeDatabaseRequest"] = {"response": [{"success": False}]}
    with pytest.raises(TransportError, match="Failed to read Count"):
        rest.read([Field("door-1", "Count")])
    service.responses["WebRuntimeDatabaseRequest"] = {"response": []}
    with pytest.raises(TransportError, match="one item per field"):
        rest.read([Field("door-1", "Count")])


def test_notifications(rest, service):
    """Registering returns the service's token, and notifications are decoded."""
    service.responses["WebRuntimeRegisterNotificationRequest"] = {"tokens": ["t-1"]}
    config = NotificationConfig(entity_id="door-1", field="State", context=["Name"])
    assert rest.register_notification(config) == "t-1"
    assert service.requests[-1]["payload"]["requests"] == [
        {
            "id": "door-1",
            "type": "",
            "field": "State",
            "notifyOnChange": True,
            "context": ["Name"],
        }
    ]

    service.responses["WebRuntimeGetNotificationsRequest"] = {
        "notifications": [
            {
                "token": "t-1",
                "current": {
                    "id": "door-1",
                    "field": "State",
                    "value": {"@type": type_url("GarageDoorState"), "raw": "Open"},
                },
                "previous": {"id": "door-1", "field": "State"},
                "context": [
                    {
                        "id": "door-1",
                        "field": "Name",
                        "value": {"@type": type_url("String"), "raw": "Front door"},
                    }
                ],
            }
        ]
    }
    [notification] = rest.get_notifications()
    assert notification.token == "t-1"
    assert notification.current.value.as_garage_door_state() == "Open"
    assert notification.previous.value.is_unspecified()
    assert notification.context[0].value.as_str() == "Front door"

    rest.unregister_notification("t-1")
    assert service.requests[-1]["payload"]["tokens"] == ["t-1"]


def test_bad_tokens(rest, service):
    config = NotificationConfig(entity_id="door-1", field="State")
    service.responses["WebRuntimeRegisterNotificationRequest"] = {"tokens": []}
    with pytest.raises(TransportError, match="expected one token"):
        rest.register_notification(config)
    service.responses["WebRuntimeRegisterNotificationRequest"] = {"tokens": [""]}
    with pytest.raises(TransportError, match="Invalid token"):
        rest.register_notification(config)
