import pytest

from qdb_sync import Database, Entity, SubscriptionRegistry, logs
from qdb_sync.testing import MockTransport


@pytest.fixture
def transport():
    """A connected mock service holding a single garage door."""
    mock = MockTransport(connected=True)
    mock.add_entity(Entity("door-1", "GarageDoor", "Front door"))
    return mock


@pytest.fixture
def registry(transport):
    return SubscriptionRegistry(transport)


@pytest.fixture
def database(transport, registry):
    """A database using the same mock service and registry as the other fixtures."""
    return Database(transport, registry)


@pytest.fixture
def clean_logger():
    """Give the test a qdb_sync logger with no handlers, then restore it."""
    handlers = logs.LOGGER.handlers[:]
    level = logs.LOGGER.level
    for handler in handlers:
        logs.LOGGER.removeHandler(handler)
    yield logs.LOGGER
    for handler in logs.LOGGER.handlers[:]:
        logs.LOGGER.removeHandler(handler)
    for handler in handlers:
        logs.LOGGER.addHandler(handler)
    logs.LOGGER.setLevel(level)
