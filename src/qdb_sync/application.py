r"""A fixed-interval loop that runs workers.

The `.Application` owns an ordered list of `.Worker` instances. `.Application.run`
initialises them, ticks each one in turn at a fixed interval until a quit is
requested, then deinitialises them.

Failures are contained: an exception from any worker hook is logged, and the
loop carries on with the next worker. This makes the loop suitable for a
long-running process that must keep retrying a flaky connection.

Quitting is cooperative. `.Application.request_quit` sets a flag that is
checked between iterations, so a tick in progress always completes. It does
wake the loop if it is waiting for the next tick.
"""

from __future__ import annotations
from collections.abc import Sequence
from dataclasses import dataclass, field
import logging
from threading import Event
import time

from .database import Database
from .workers import Worker

_LOGGER = logging.getLogger(__name__)


@dataclass
class ApplicationContext:
    """State shared by the `.Application` and its workers.

    :param database: the database the workers operate on.
    :param quit: set this to stop the application after the current tick.
    """

    database: Database
    quit: Event = field(default_factory=Event)


class Application:
    """Run workers at a fixed interval."""

    def __init__(self, ctx: ApplicationContext, loop_interval: float = 0.5) -> None:
        """Set up the scheduler.

        :param ctx: the context passed to every worker hook.
        :param loop_interval: the target time between the starts of successive
            ticks, in seconds. If a tick takes longer than this, the next one
            starts immediately.
        """
        self.ctx = ctx
        self.loop_interval = loop_interval
        self._workers: list[Worker] = []

    @property
    def workers(self) -> Sequence[Worker]:
        """The workers, in the order they run."""
        return tuple(self._workers)

    def add_worker(self, worker: Worker) -> None:
        """Add a worker. Workers run in the order they are added.

        :param worker: the worker to add.
        """
        self._workers.append(worker)

    def request_quit(self) -> None:
        """Ask the loop to stop after the current iteration.

        This is safe to call from another thread or a signal handler.
        """
        self.ctx.quit.set()

    def run(self) -> None:
        """Initialise the workers, run until asked to quit, then deinitialise."""
        self.initialize()
        try:
            self.do_work()
        finally:
            self.deinitialize()

    def initialize(self) -> None:
        _LOGGER.info("Initializing application")
        for worker in self._workers:
            try:
                worker.initialize(self.ctx)
            except Exception:
                _LOGGER.exception("Error while initializing worker %s", worker.name)

    def deinitialize(self) -> None:
        _LOGGER.info("Deinitializing application")
        for worker in self._workers:
            try:
                worker.deinitialize(self.ctx)
            except Exception:
                _LOGGER.exception("Error while deinitializing worker %s", worker.name)
        _LOGGER.info("Shutting down now")

    def do_work(self) -> None:
        """Tick every worker at a fixed interval until quit is requested.

        The quit flag is checked once per iteration, after every worker has
        ticked, so at least one iteration always runs.
        """
        _LOGGER.info("Application has started")
        while True:
            start = time.monotonic()
            self.tick()
            if self.ctx.quit.is_set():
                break
            remaining = self.loop_interval - (time.monotonic() - start)
            if remaining > 0:
                _LOGGER.debug("Idle for %.0f ms", remaining * 1000)
                # Waiting on the flag means a quit request ends the wait early.
                if self.ctx.quit.wait(remaining):
                    break

    def tick(self) -> None:
        """Run one iteration: tick each worker in order."""
        for worker in self._workers:
            worker_start = time.monotonic()
            try:
                worker.tick(self.ctx)
            except Exception:
                _LOGGER.exception("Error while executing worker %s", worker.name)
            _LOGGER.debug(
                "Worker '%s' took %.0f ms to complete tick",
                worker.name,
                (time.monotonic() - worker_start) * 1000,
            )
            self.process_events()

    def process_events(self) -> None:
        """Let every worker handle events raised so far."""
        for worker in self._workers:
            try:
                worker.process_events()
            except Exception:
                _LOGGER.exception(
                    "Error while processing events for worker %s", worker.name
                )
