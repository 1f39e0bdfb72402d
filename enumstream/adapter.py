"""
``enumstream.adapter``
======================

Counting adapter for asynchronous streams. Wraps a stream, and pairs
each element it produces with a zero-based index, in the manner of the
built-in ``enumerate()`` for async iterators.

The adapter forwards the optional capabilities of the wrapped stream:
if the stream can report permanent termination, so can the adapter,
and if the stream is also a sink, the adapter may be sent items too.
Use ``enumerate_stream()`` to construct the variant matching the
capabilities of a given stream.
"""
import collections.abc as cabc
import logging
import typing as ty

from rich.console import Console
from rich.markup import escape
from rich.tree import Tree

from enumstream import base

__all__ = [
    "Enumerate",
    "FusedEnumerate",
    "SinkEnumerate",
    "FusedSinkEnumerate",
    "SourceView",
    "enumerate_stream",
]


logger = logging.getLogger(__name__)

T = ty.TypeVar("T")


class SourceView:
    """Read-only view of a stream owned by an adapter.

    Attribute lookups pass through to the stream, except for the
    operations which drive it: pulling elements, sending items,
    flushing, and closing. Assigning or deleting attributes is refused.

    Parameters
    ----------
    target : object
        The stream to view.
    """

    __slots__ = ("__target",)

    _driving = frozenset(
        {
            "__anext__",
            "asend",
            "athrow",
            "aclose",
            "ready",
            "start_send",
            "flush",
            "close",
            "send",
        }
    )

    def __init__(self, target: ty.Any) -> None:
        object.__setattr__(self, "_SourceView__target", target)

    def __getattr__(self, name: str) -> ty.Any:
        if name in self._driving:
            raise AttributeError(
                f"'{name}' cannot be used through a read-only view of "
                f"{type(self.__target).__name__}."
            )
        return getattr(self.__target, name)

    def __setattr__(self, name: str, value: ty.Any) -> None:
        raise AttributeError("Cannot assign attributes on a read-only view.")

    def __delattr__(self, name: str) -> None:
        raise AttributeError("Cannot delete attributes on a read-only view.")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.__target!r})"


class Enumerate(base.Stream[ty.Tuple[int, T]]):
    """Stream yielding ``(index, element)`` tuples from a wrapped
    stream, with the index counting up from zero.

    :group: Adapters

    Parameters
    ----------
    stream : async iterator
        The stream to enumerate. Ownership passes to the adapter: the
        stream should not be pulled from directly once wrapped.

    Raises
    ------
    TypeError
        If ``stream`` is not an async iterator.

    Notes
    -----
    The adapter only suspends while awaiting the wrapped stream, and
    keeps no wake-up state of its own. Cancelling the awaiting task
    leaves the count untouched.

    Every pull is delegated to the wrapped stream, so a stream which
    resumes after raising ``StopAsyncIteration`` keeps being counted.
    Only a fused stream which reports ``is_terminated`` is left alone.
    """

    def __init__(self, stream: ty.AsyncIterator[T]) -> None:
        if not isinstance(stream, cabc.AsyncIterator):
            raise TypeError(
                f"{type(stream).__name__} object is not an async iterator."
            )
        self._stream: ty.Optional[ty.AsyncIterator[T]] = stream
        self._count = 0
        self._exhausted = False

    def _source(self) -> ty.Any:
        if self._stream is None:
            raise RuntimeError(
                f"{self.__class__.__name__} has been consumed by into_inner()."
            )
        return self._stream

    @property
    def count(self) -> int:
        """Number of elements yielded so far, which is also the index
        the next element will receive.
        """
        return self._count

    @property
    def exhausted(self) -> bool:
        """Whether the wrapped stream has signalled the end of the
        sequence to this adapter at least once.
        """
        return self._exhausted

    def _exhaust(self) -> None:
        if not self._exhausted:
            logger.debug(
                "%s exhausted after %d elements.",
                self.__class__.__name__,
                self._count,
            )
        self._exhausted = True

    def __aiter__(self) -> "Enumerate[T]":
        return self

    async def __anext__(self) -> ty.Tuple[int, T]:
        stream = self._source()
        try:
            item = await stream.__anext__()
        except StopAsyncIteration:
            self._exhaust()
            raise
        index = self._count
        self._count += 1
        return index, item

    def get_ref(self) -> SourceView:
        """Returns a read-only view of the wrapped stream."""
        return SourceView(self._source())

    def get_mut(self) -> ty.AsyncIterator[T]:
        """Returns the wrapped stream.

        Care must be taken not to pull elements from the stream, or
        otherwise tamper with its state, as the indices yielded by this
        adapter would no longer match the elements.
        """
        return self._source()

    def get_pin_mut(self) -> ty.AsyncIterator[T]:
        """Returns the wrapped stream, and may be called while a pull
        on this adapter is suspended.

        Python objects never move in memory, so this is the same object
        returned by ``get_mut()``, with the same caveats.
        """
        return self._source()

    def into_inner(self) -> ty.AsyncIterator[T]:
        """Consumes this adapter, returning the wrapped stream.

        The count is discarded. Any further use of the adapter raises
        a ``RuntimeError``.
        """
        stream = self._source()
        self._stream = None
        logger.debug(
            "%s released its stream at count %d.",
            self.__class__.__name__,
            self._count,
        )
        return stream

    async def aclose(self) -> None:
        """Closes the wrapped stream, if it supports ``aclose()``."""
        stream = self._source()
        aclose = getattr(stream, "aclose", None)
        if aclose is not None:
            await aclose()

    async def __aenter__(self) -> "Enumerate[T]":
        return self

    async def __aexit__(self, *exc_info: ty.Any) -> None:
        if self._stream is not None:
            await self.aclose()

    def __rich__(self) -> Tree:
        name = self.__class__.__name__
        tree = Tree(f"{name}(count=[green]{self._count}[default])")
        if self._stream is None:
            tree.add("[red]<consumed>")
        else:
            tree.add(f"[blue]{escape(repr(self._stream))}")
        return tree

    def __repr__(self) -> str:
        console = Console(color_system=None)
        with console.capture() as capture:
            console.print(self)
        return capture.get().rstrip("\n")


class FusedEnumerate(Enumerate[T], base.FusedStream[ty.Tuple[int, T]]):
    """Enumerating adapter over a ``FusedStream``, forwarding its
    termination status.

    :group: Adapters
    """

    @property
    def is_terminated(self) -> bool:
        return self._source().is_terminated

    async def __anext__(self) -> ty.Tuple[int, T]:
        if self.is_terminated:
            self._exhaust()
            raise StopAsyncIteration
        return await super().__anext__()


class SinkEnumerate(Enumerate[T], base.Sink[ty.Any]):
    """Enumerating adapter over a stream which is also a ``Sink``.

    The sink operations are forwarded to the wrapped stream unchanged,
    and any exceptions they raise propagate unchanged.

    :group: Adapters
    """

    async def ready(self) -> None:
        await self._source().ready()

    def start_send(self, item: ty.Any) -> None:
        self._source().start_send(item)

    async def flush(self) -> None:
        await self._source().flush()

    async def close(self) -> None:
        await self._source().close()


class FusedSinkEnumerate(FusedEnumerate[T], SinkEnumerate[T]):
    """Enumerating adapter over a fused stream which is also a sink.

    :group: Adapters
    """


_VARIANTS: ty.Dict[ty.Tuple[bool, bool], ty.Type[Enumerate]] = {
    (False, False): Enumerate,
    (True, False): FusedEnumerate,
    (False, True): SinkEnumerate,
    (True, True): FusedSinkEnumerate,
}


def enumerate_stream(stream: ty.AsyncIterator[T]) -> Enumerate[T]:
    """Wraps ``stream`` in an enumerating adapter which forwards exactly
    the capabilities ``stream`` supports.

    :group: Adapters

    Parameters
    ----------
    stream : async iterator
        The stream to enumerate.

    Returns
    -------
    adapter : Enumerate
        A ``FusedStream`` if ``stream`` is one, and a ``Sink`` if
        ``stream`` is one.

    Raises
    ------
    TypeError
        If ``stream`` is not an async iterator.

    Examples
    --------
    >>> async def letters():
    ...     for letter in "abc":
    ...         yield letter
    >>> async def collect():
    ...     return [pair async for pair in enumerate_stream(letters())]
    >>> asyncio.run(collect())  # doctest: +SKIP
    [(0, 'a'), (1, 'b'), (2, 'c')]
    """
    fused = isinstance(stream, base.FusedStream)
    sink = isinstance(stream, base.Sink)
    return _VARIANTS[fused, sink](stream)
