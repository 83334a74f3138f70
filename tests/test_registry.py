"""Test the subscription registry.

These tests use `.MockTransport`, which queues a notification whenever a
write matches a subscription.
"""

import gc

from anyio import EndOfStream, WouldBlock
import pytest

from qdb_sync import Field, Notification, NotificationConfig
from qdb_sync.exceptions import (
    NotificationError,
    NotificationNotFoundError,
    TransportError,
)

STATE = NotificationConfig(entity_id="door-1", field="State")


def drain(stream):
    items = []
    while True:
        try:
            items.append(stream.receive_nowait())
        except WouldBlock:
            return items


def open_door(database, state="Open"):
    database.write([Field("door-1", "State").set_garage_door_state(state)])


def test_subscribe_is_idempotent(database, registry, transport):
    """Identical filters share one subscription, and all listeners hear it."""
    a = registry.subscribe(STATE)
    b = registry.subscribe(NotificationConfig(entity_id="door-1", field="State"))
    assert transport.call_count("register_notification") == 1
    assert len(registry) == 1
    token = registry.token_for(STATE)
    assert token in registry
    assert registry.listener_count(token) == 2

    open_door(database)
    assert registry.dispatch() == 1
    for stream in (a, b):
        [n] = drain(stream)
        assert n.token == token
        assert n.current.value.as_garage_door_state() == "Open"
        assert n.previous.value.is_unspecified()


def test_different_filters_get_different_tokens(registry, transport):
    """Filters that differ in any field are registered separately."""
    registry.subscribe(STATE)
    registry.subscribe(
        NotificationConfig(entity_id="door-1", field="State", notify_on_change=False)
    )
    registry.subscribe(
        NotificationConfig(entity_id="door-1", field="State", context=["Opened"])
    )
    assert transport.call_count("register_notification") == 3
    assert len(set(registry.tokens)) == 3
    assert len(registry.configs) == 3


def test_listener_isolation(database, registry):
    """Closing one listener's stream doesn't affect its siblings."""
    a = registry.subscribe(STATE)
    b = registry.subscribe(STATE)
    a.close()
    open_door(database)
    registry.dispatch()
    assert len(drain(b)) == 1
    assert registry.listener_count(registry.token_for(STATE)) == 1


def test_clear_then_dispatch(registry, transport):
    """After clear, dispatch delivers nothing and doesn't raise."""
    registry.subscribe(STATE)
    registry.clear()
    assert len(registry) == 0
    assert registry.token_for(STATE) is None
    assert registry.dispatch() == 0
    assert transport.call_count("unregister_notification") == 0


def test_clear_ends_streams(registry):
    """Listeners see the end of their stream when the registry is cleared."""
    stream = registry.subscribe(STATE)
    registry.clear()
    with pytest.raises(EndOfStream):
        stream.receive_nowait()


def test_unsubscribe_round_trip(registry, transport):
    """Unsubscribing cancels the subscription and forgets the filter."""
    stream = registry.subscribe(STATE)
    token = registry.token_for(STATE)
    registry.unsubscribe(token)
    assert transport.call_count("unregister_notification") == 1
    assert token not in transport.subscriptions
    assert registry.token_for(STATE) is None
    assert STATE not in registry.configs
    with pytest.raises(EndOfStream):
        stream.receive_nowait()

    # A notification for the old token is now an error
    transport.push_notification(_notification(token))
    with pytest.raises(NotificationError, match=token):
        registry.dispatch()


def test_unsubscribe_unknown_token(registry):
    """Unknown tokens can't be unsubscribed."""
    with pytest.raises(NotificationNotFoundError, match="not found"):
        registry.unsubscribe("no-such-token")
    with pytest.raises(KeyError):
        registry.listener_count("no-such-token")


def test_failed_subscribe_leaves_registry_unchanged(registry, transport):
    """If the service rejects a subscription, nothing is recorded."""
    transport.failing.add("register_notification")
    with pytest.raises(TransportError):
        registry.subscribe(STATE)
    assert len(registry) == 0
    assert registry.configs == []


def test_failed_unsubscribe_leaves_registry_unchanged(registry, transport):
    """If the service fails to unregister, the token is kept."""
    stream = registry.subscribe(STATE)
    token = registry.token_for(STATE)
    transport.failing.add("unregister_notification")
    with pytest.raises(TransportError):
        registry.unsubscribe(token)
    assert registry.token_for(STATE) == token
    assert registry.listener_count(token) == 1
    stream.close()


def test_unknown_tokens_dont_stop_the_batch(database, registry, transport):
    """Known notifications are delivered even if others in the batch are unknown."""
    stream = registry.subscribe(STATE)
    transport.push_notification(_notification("stale-token"))
    open_door(database)
    with pytest.raises(NotificationError, match="stale-token"):
        registry.dispatch()
    assert len(drain(stream)) == 1


def test_abandoned_tokens_are_released(database, registry, transport):
    """Once every listener has gone, the next dispatch unregisters the token."""
    a = registry.subscribe(STATE)
    b = registry.subscribe(STATE)
    token = registry.token_for(STATE)
    a.close()
    registry.dispatch()
    assert token in registry
    b.close()
    assert registry.dispatch() == 0
    assert token not in registry
    assert transport.call_count("unregister_notification") == 1
    assert token not in transport.subscriptions

    # Subscribing again registers a fresh subscription
    c = registry.subscribe(STATE)
    assert registry.token_for(STATE) != token
    assert transport.call_count("register_notification") == 2
    c.close()


@pytest.mark.filterwarnings("ignore::ResourceWarning")
def test_dropped_stream_releases_token(registry, transport):
    """Dropping the only reference to a stream is enough to unsubscribe."""
    registry.subscribe(STATE)
    token = registry.token_for(STATE)
    gc.collect()
    assert registry.dispatch() == 0
    assert len(registry) == 0
    assert token not in transport.subscriptions
    assert transport.call_count("unregister_notification") == 1


@pytest.mark.filterwarnings("ignore::ResourceWarning")
def test_dropped_stream_leaves_siblings(database, registry):
    """Dropping one of several streams keeps the subscription for the others."""
    kept = registry.subscribe(STATE)
    registry.subscribe(STATE)
    gc.collect()
    token = registry.token_for(STATE)
    assert registry.listener_count(token) == 1
    open_door(database)
    assert registry.dispatch() == 1
    assert token in registry
    assert len(drain(kept)) == 1


def test_failed_release_is_retried(registry, transport):
    """A token that can't be released is kept, and released next time."""
    stream = registry.subscribe(STATE)
    token = registry.token_for(STATE)
    stream.close()
    transport.failing.add("unregister_notification")
    registry.dispatch()
    assert token in registry
    transport.failing.clear()
    registry.dispatch()
    assert token not in registry
    assert transport.call_count("unregister_notification") == 2


def test_dispatch_failure_propagates(registry, transport):
    """A failure to poll the service is raised from dispatch."""
    transport.failing.add("get_notifications")
    with pytest.raises(TransportError):
        registry.dispatch()


def _notification(token):
    return Notification(
        token=token,
        current=Field("door-1", "State").set_garage_door_state("Closed"),
        previous=Field("door-1", "State"),
    )
