r"""qdb-sync.

A client-side synchronization layer for the qdb database service. It keeps a
connection to the service alive, reads and writes entity fields, and fans
out change notifications to any number of listeners.

This module contains a number of convenience imports and is intended to be
imported using:

.. code-block:: python

    import qdb_sync as qs

Symbols in the top-level module mostly exist elsewhere in the package, but
should be imported from here as a preference, to ensure code does not break
if modules are rearranged.
"""

from .schema import (
    Entity,
    Field,
    Notification,
    NotificationConfig,
    NotificationToken,
    Value,
    ValueType,
)
from .events import Emitter
from .transport import Transport
from .rest import RestTransport
from .registry import SubscriptionRegistry
from .database import Database
from .workers import Worker, DatabaseWorker
from .application import Application, ApplicationContext
from .config import ClientConfig
from .logs import configure_logger
from . import cli
from . import exceptions

# The symbols in __all__ are part of our public API.
# They are imported when using `import qdb_sync as qs`.
__all__ = [
    "Entity",
    "Field",
    "Notification",
    "NotificationConfig",
    "NotificationToken",
    "Value",
    "ValueType",
    "Emitter",
    "Transport",
    "RestTransport",
    "SubscriptionRegistry",
    "Database",
    "Worker",
    "DatabaseWorker",
    "Application",
    "ApplicationContext",
    "ClientConfig",
    "configure_logger",
    "cli",
    "exceptions",
]
