"""Notification filters, tokens and the notifications themselves."""

from __future__ import annotations
from collections.abc import Iterable
from dataclasses import dataclass, field as dataclass_field
from typing import NewType

from .field import Field


NotificationToken = NewType("NotificationToken", str)
"""An opaque handle, assigned by the database service, for one subscription."""


@dataclass(frozen=True)
class NotificationConfig:
    r"""A filter describing which field changes we want to hear about.

    Configs are compared by value and are hashable, so they may be used as
    dictionary keys: two configs with the same fields are the same filter.
    ``context`` may be given as any iterable of field names, and is stored
    as a `tuple`\ .

    :param entity_id: the entity to watch. May be empty if ``entity_type``
        is given.
    :param entity_type: the type of entity to watch. May be empty if
        ``entity_id`` is given.
    :param field: the name of the field to watch.
    :param notify_on_change: if ``True``, only notify when the value changes,
        rather than on every write.
    :param context: names of other fields of the entity whose values should be
        sent along with the notification.
    """

    entity_id: str = ""
    entity_type: str = ""
    field: str = ""
    notify_on_change: bool = True
    context: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.context, tuple):
            context: Iterable[str] = self.context
            object.__setattr__(self, "context", tuple(context))


@dataclass
class Notification:
    """A change event delivered by the database service.

    :param token: the token of the subscription that fired.
    :param current: the field after the change.
    :param previous: the field before the change.
    :param context: the context fields requested in the `.NotificationConfig`.
    """

    token: NotificationToken
    current: Field
    previous: Field
    context: list[Field] = dataclass_field(default_factory=list)
