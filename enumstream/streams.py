"""
``enumstream.streams``
======================

Concrete streams for building enumeration pipelines: an adapter turning
any iterable into a fused stream, and a bounded in-memory channel which
is both a stream and a sink.
"""
import asyncio
import collections as cl
import collections.abc as cabc
import logging
import typing as ty

from enumstream import base

__all__ = ["IterSource", "Channel", "ClosedChannelError"]


logger = logging.getLogger(__name__)

T = ty.TypeVar("T")


class ClosedChannelError(RuntimeError):
    """Raised when sending to a channel which has been closed."""


class IterSource(base.FusedStream[T]):
    """Fused stream over a synchronous or asynchronous iterable.

    :group: Streams

    Parameters
    ----------
    iterable : iterable or async iterable
        Source of the elements. Synchronous iterables are consumed
        without suspending.

    Raises
    ------
    TypeError
        If ``iterable`` is neither an iterable nor an async iterable.
    """

    def __init__(
        self, iterable: ty.Union[ty.Iterable[T], ty.AsyncIterable[T]]
    ) -> None:
        self._len: ty.Optional[int] = None
        if isinstance(iterable, cabc.Sized):
            self._len = len(iterable)
        if isinstance(iterable, cabc.AsyncIterable):
            self._aiter: ty.Optional[ty.AsyncIterator[T]] = (
                iterable.__aiter__()
            )
            self._iter: ty.Optional[ty.Iterator[T]] = None
        elif isinstance(iterable, cabc.Iterable):
            self._aiter = None
            self._iter = iter(iterable)
        else:
            raise TypeError(
                f"{type(iterable).__name__} object is not iterable."
            )
        self._terminated = False

    @property
    def is_terminated(self) -> bool:
        return self._terminated

    def __len__(self) -> int:
        if self._len is None:
            raise NotImplementedError(
                "Length only defined when initialised with a sized iterable."
            )
        return self._len

    async def __anext__(self) -> T:
        if self._terminated:
            raise StopAsyncIteration
        try:
            if self._aiter is not None:
                return await self._aiter.__anext__()
            return next(self._iter)  # type: ignore
        except (StopIteration, StopAsyncIteration):
            self._terminated = True
            raise StopAsyncIteration from None

    async def aclose(self) -> None:
        """Terminates the source, closing the underlying iterator if it
        supports it.
        """
        self._terminated = True
        if self._aiter is not None:
            aclose = getattr(self._aiter, "aclose", None)
            if aclose is not None:
                await aclose()
        else:
            close = getattr(self._iter, "close", None)
            if close is not None:
                close()


class Channel(base.FusedStream[T], base.Sink[T]):
    """Bounded first-in first-out channel. Items sent into the channel
    are pulled out of it, in order, by iterating it.

    :group: Streams

    Parameters
    ----------
    capacity : int
        Maximum number of items held before ``ready()`` suspends the
        sender. Default is 1.

    Raises
    ------
    ValueError
        If ``capacity`` is less than 1.

    Notes
    -----
    Items are visible to the reader as soon as ``start_send()`` returns,
    so ``flush()`` only checks that the channel is still open. Once the
    channel is closed, the reader drains any remaining items, after
    which the channel is terminated.
    """

    def __init__(self, capacity: int = 1) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1.")
        self.capacity = capacity
        self._buffer: ty.Deque[T] = cl.deque()
        self._closed = False
        self._terminated = False
        self._readable = asyncio.Event()
        self._writable = asyncio.Event()

    def __len__(self) -> int:
        """The number of items waiting to be read."""
        return len(self._buffer)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_terminated(self) -> bool:
        return self._terminated

    def _check_open(self) -> None:
        if self._closed:
            raise ClosedChannelError("Channel is closed.")

    async def ready(self) -> None:
        while True:
            self._check_open()
            if len(self._buffer) < self.capacity:
                return
            self._writable.clear()
            await self._writable.wait()

    def start_send(self, item: T) -> None:
        self._check_open()
        if len(self._buffer) >= self.capacity:
            raise RuntimeError(
                "Channel is full, await ready() before start_send()."
            )
        self._buffer.append(item)
        self._readable.set()

    async def flush(self) -> None:
        self._check_open()

    async def close(self) -> None:
        if not self._closed:
            logger.debug("Channel closed with %d items pending.", len(self))
        self._closed = True
        self._readable.set()
        self._writable.set()

    async def __anext__(self) -> T:
        while True:
            if self._buffer:
                item = self._buffer.popleft()
                self._writable.set()
                return item
            if self._closed:
                self._terminated = True
                raise StopAsyncIteration
            self._readable.clear()
            await self._readable.wait()
