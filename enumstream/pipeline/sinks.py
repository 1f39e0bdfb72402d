import json
from contextlib import AsyncExitStack, ExitStack
from pathlib import Path
from typing import Any, List, Optional, Tuple, Union

from rich.console import Console
from rich.markup import escape

from enumstream.base import Sink


IndexedItem = Tuple[int, Any]


class _BufferedSink(Sink[IndexedItem]):
    """Holds items between ``start_send()`` and ``flush()``."""

    def __init__(self):
        self._pending: List[IndexedItem] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError(f'{self.__class__.__name__} is closed.')

    async def ready(self) -> None:
        self._check_open()

    def start_send(self, item: IndexedItem) -> None:
        self._check_open()
        self._pending.append(item)

    async def flush(self) -> None:
        pending, self._pending = self._pending, []
        for index, item in pending:
            self._write(index, item)

    async def close(self) -> None:
        if self._closed:
            return
        await self.flush()
        self._closed = True
        self._release()

    def _write(self, index: int, item: Any) -> None:
        raise NotImplementedError

    def _release(self) -> None:
        pass


class ConsoleSink(_BufferedSink):
    """Prints each indexed item on its own line."""

    def __init__(self, console: Optional[Console] = None):
        super().__init__()
        self.console = console or Console()

    def _write(self, index: int, item: Any) -> None:
        self.console.print(f'[cyan]{index}[default]: {escape(str(item))}')


class JsonLinesSink(_BufferedSink):
    """Writes each indexed item to a file as a JSON object, with the
    keys ``index`` and ``item``.
    """

    def __init__(self, path: Union[str, Path], encoding: str = 'utf-8'):
        super().__init__()
        self.path = Path(path)
        self.__stack = ExitStack()
        self.__file_obj = self.__stack.enter_context(
                open(self.path, 'w', encoding=encoding))

    def _write(self, index: int, item: Any) -> None:
        record = json.dumps({'index': index, 'item': item}, default=str)
        self.__file_obj.write(record + '\n')

    async def flush(self) -> None:
        await super().flush()
        if not self._closed:
            self.__file_obj.flush()

    def _release(self) -> None:
        self.__stack.close()


class PipeJunction(Sink[IndexedItem]):
    """Fan-out sink, forwarding every item to each of its branches."""

    def __init__(self):
        self.__branches: List[Sink] = []

    @property
    def branches(self) -> Tuple[Sink, ...]:
        return tuple(self.__branches)

    def add(self, branch: Sink) -> None:
        self.__branches.append(branch)

    def remove(self, branch: Sink) -> None:
        self.__branches.remove(branch)

    async def ready(self) -> None:
        for branch in self.__branches:
            await branch.ready()

    def start_send(self, item: IndexedItem) -> None:
        for branch in self.__branches:
            branch.start_send(item)

    async def flush(self) -> None:
        for branch in self.__branches:
            await branch.flush()

    async def close(self) -> None:
        """Closes every branch, in order, even if some of them fail.
        Failures are raised once all branches have been closed.
        """
        async with AsyncExitStack() as stack:
            for branch in reversed(self.__branches):
                stack.push_async_callback(branch.close)
