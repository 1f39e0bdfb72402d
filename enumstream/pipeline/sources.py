from pathlib import Path
from typing import Iterator, Union

from enumstream.streams import IterSource


def _read_lines(path: Path, encoding: str) -> Iterator[str]:
    with open(path, encoding=encoding) as f:
        for line in f:
            yield line.rstrip('\n')


def lines_source(
        path: Union[str, Path], encoding: str = 'utf-8'
) -> IterSource[str]:
    """Stream over the lines of a text file, without line endings."""
    path = Path(path)
    if not path.is_file():
        raise ValueError(f'No file found at {path}.')
    return IterSource(_read_lines(path, encoding))


def range_source(
        stop: int, start: int = 0, step: int = 1
) -> IterSource[int]:
    """Stream over a range of integers."""
    return IterSource(range(start, stop, step))
