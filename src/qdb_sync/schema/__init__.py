"""The data model shared with the database service.

Entities own fields, fields hold values, and notifications report changes to
fields that match a `.NotificationConfig`.
"""

from .value import Value, ValueType
from .field import Field
from .entity import Entity
from .notification import Notification, NotificationConfig, NotificationToken

__all__ = [
    "Value",
    "ValueType",
    "Field",
    "Entity",
    "Notification",
    "NotificationConfig",
    "NotificationToken",
]
