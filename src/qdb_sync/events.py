"""Fan out events to any number of listeners.

An `.Emitter` decouples the code producing an event from the code consuming
it. Each listener gets its own `anyio` memory object stream: the emitter keeps
the sending end, and the listener receives from the other end, either with
``receive_nowait()`` from synchronous code or ``await receive()`` from an
event loop.

Listeners don't need to unregister explicitly. Closing the receive stream, or
just dropping every reference to it, is enough: the next `.Emitter.emit` (or
`.Emitter.prune`) notices the stream has no receiver and drops it. Use
`.Emitter.disconnect` where the listener should be removed at a known point.
"""

from __future__ import annotations
import copy
from itertools import count
import logging
import math
from threading import Lock
from typing import Generic, NewType, TypeVar
import weakref

from anyio import BrokenResourceError, ClosedResourceError, create_memory_object_stream
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

ListenerId = NewType("ListenerId", int)
"""Identifies one listener of one `.Emitter`."""


class _Listener(Generic[T]):
    """One listener: the sending end of its stream, and its receiving end."""

    def __init__(
        self,
        send_stream: MemoryObjectSendStream[T],
        receive_stream: MemoryObjectReceiveStream[T],
    ) -> None:
        self.send_stream = send_stream
        # Note that we only hold a weak reference to the receiving end, so that
        # a listener that drops its stream without closing it is still removed.
        # There's no callback: it could run during garbage collection while
        # the emitter's lock is held.
        self.receiver = weakref.ref(receive_stream)

    def abandoned(self) -> bool:
        """Check whether nobody can receive from this listener's stream any more.

        :return: ``True`` if the receive stream has been closed, or garbage
            collected.
        """
        if self.receiver() is None:
            return True
        return self.send_stream.statistics().open_receive_streams == 0

    def close(self) -> None:
        self.send_stream.close()


class Emitter(Generic[T]):
    """Deliver a copy of each event to every connected listener.

    Events sent to one listener arrive in the order they were emitted.
    There is no guarantee about the order in which different listeners
    receive the same event.

    Streams are unbounded. A listener that never reads its stream will
    accumulate events indefinitely, so listeners that lose interest should
    close their stream, or stop referring to it.
    """

    def __init__(self) -> None:
        """Initialise an emitter with no listeners."""
        self._listeners: dict[ListenerId, _Listener[T]] = {}
        self._ids = count()
        self._lock = Lock()

    @property
    def listener_count(self) -> int:
        """The number of listeners currently connected.

        This may include listeners that have closed or dropped their stream
        but have not yet been pruned. Call `.Emitter.prune` for an exact count.
        """
        return len(self._listeners)

    def connect(self) -> tuple[ListenerId, MemoryObjectReceiveStream[T]]:
        """Add a listener.

        The emitter doesn't keep the receive stream alive: the caller must
        hold on to it for as long as they want to listen.

        :return: an ID that may be passed to `.Emitter.disconnect`, and the
            stream on which events will arrive.
        """
        send_stream, receive_stream = create_memory_object_stream[T](
            max_buffer_size=math.inf
        )
        with self._lock:
            listener_id = ListenerId(next(self._ids))
            self._listeners[listener_id] = _Listener(send_stream, receive_stream)
        return listener_id, receive_stream

    def new_receiver(self) -> MemoryObjectReceiveStream[T]:
        """Add a listener that is removed when its stream is closed or dropped.

        :return: the stream on which events will arrive.
        """
        _, receive_stream = self.connect()
        return receive_stream

    def disconnect(self, listener_id: ListenerId) -> None:
        """Remove a listener.

        The listener's stream is closed at the sending end, so anything
        waiting on it will see the end of the stream once it has received
        the events already sent. Unknown IDs are ignored.

        :param listener_id: the ID returned by `.Emitter.connect`.
        """
        with self._lock:
            listener = self._listeners.pop(listener_id, None)
        if listener is not None:
            listener.close()

    def emit(self, value: T) -> None:
        """Send a copy of ``value`` to every listener.

        Listeners whose stream has been closed or dropped are removed.

        :param value: the event. Each listener receives its own deep copy,
            so listeners may modify what they receive.
        """
        with self._lock:
            for listener_id, listener in list(self._listeners.items()):
                if listener.abandoned():
                    self._drop(listener_id)
                    continue
                try:
                    listener.send_stream.send_nowait(copy.deepcopy(value))
                except (BrokenResourceError, ClosedResourceError):
                    self._drop(listener_id)

    def prune(self) -> int:
        """Remove listeners whose stream has been closed or dropped, without emitting.

        :return: the number of listeners remaining.
        """
        with self._lock:
            for listener_id, listener in list(self._listeners.items()):
                if listener.abandoned():
                    self._drop(listener_id)
            return len(self._listeners)

    def close(self) -> None:
        """Remove every listener, closing their streams at the sending end."""
        with self._lock:
            listeners = list(self._listeners.values())
            self._listeners.clear()
        for listener in listeners:
            listener.close()

    def _drop(self, listener_id: ListenerId) -> None:
        """Remove a listener. The lock must be held."""
        _LOGGER.debug("Dropping closed listener %s", listener_id)
        self._listeners.pop(listener_id).close()
