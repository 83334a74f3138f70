r"""The interface between the `.Application` and the work it schedules.

Subclass `.Worker` and implement `.Worker.tick`\ . The other hooks are
optional: by default they do nothing.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..application import ApplicationContext


class Worker(ABC):
    """A unit of work run once per tick by the `.Application`.

    Workers run one after another on the scheduler's thread, so a worker
    never runs concurrently with another worker. Exceptions raised by any
    hook are logged by the `.Application` and do not stop the loop.
    """

    @property
    def name(self) -> str:
        """A name for the worker, used in log messages."""
        return type(self).__name__

    def initialize(self, ctx: ApplicationContext) -> None:
        """Prepare to run. Called once, before the first tick.

        :param ctx: the shared application context.
        """

    @abstractmethod
    def tick(self, ctx: ApplicationContext) -> None:
        """Do one iteration of work.

        :param ctx: the shared application context.
        """

    def deinitialize(self, ctx: ApplicationContext) -> None:
        """Clean up. Called once, after the loop has finished.

        :param ctx: the shared application context.
        """

    def process_events(self) -> None:
        """Handle any events that arrived since the last call.

        This is called for every worker after each worker's tick, so a
        worker can react to events emitted by the workers before it.
        """
