from abc import ABC, abstractmethod
import typing as ty


__all__ = [
    "Stream",
    "FusedStream",
    "Sink",
]


T = ty.TypeVar("T")


def _has_attrs(C: type, *names: str) -> bool:
    mro = C.__mro__
    return all(any(name in B.__dict__ for B in mro) for name in names)


class Stream(ty.AsyncIterator[T]):
    """Interface for asynchronous pull-based sequence producers.

    A stream is polled with ``await stream.__anext__()``. It may suspend
    any number of times before producing an element, and signals the
    end of the sequence by raising ``StopAsyncIteration``.
    """


class FusedStream(Stream[T]):
    """A stream which can report that it will never produce another
    element.

    Any async iterator whose class defines ``is_terminated``, usually
    as a property, is treated as a virtual subclass. The check is made
    on the class, so an ``is_terminated`` set only on instances does
    not count.
    """

    @property
    @abstractmethod
    def is_terminated(self) -> bool:
        """``True`` once the stream has finished for good. Once true,
        it stays true.
        """

    @classmethod
    def __subclasshook__(cls, C):
        if cls is FusedStream:
            return _has_attrs(C, "__aiter__", "__anext__", "is_terminated")
        return NotImplemented


class Sink(ABC, ty.Generic[T]):
    """Interface for push consumers with backpressure.

    Items are handed over in three steps: ``await ready()`` until the
    sink can accept one item, ``start_send(item)`` to pass it on, and
    ``await flush()`` to make sure it has been processed. ``close()``
    flushes and stops the sink accepting further items.

    Any object defining all four operations is treated as a virtual
    subclass.
    """

    @abstractmethod
    async def ready(self) -> None:
        """Waits until the sink can accept a single item."""

    @abstractmethod
    def start_send(self, item: T) -> None:
        """Begins sending ``item``. Only valid after ``ready()``."""

    @abstractmethod
    async def flush(self) -> None:
        """Waits until every item sent so far has been processed."""

    @abstractmethod
    async def close(self) -> None:
        """Flushes, then closes the sink."""

    async def send(self, item: T) -> None:
        """Sends a single item, waiting for readiness and flushing."""
        await self.ready()
        self.start_send(item)
        await self.flush()

    @classmethod
    def __subclasshook__(cls, C):
        if cls is Sink:
            return _has_attrs(C, "ready", "start_send", "flush", "close")
        return NotImplemented
