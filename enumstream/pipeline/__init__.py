import logging
from typing import Any, AsyncIterator, Dict, List

from enumstream.adapter import enumerate_stream
from enumstream.base import Sink
from . import factory
from .sinks import ConsoleSink, JsonLinesSink, PipeJunction
from .sources import lines_source, range_source

logger = logging.getLogger(__name__)


def register_defaults() -> None:
    """Registers the built-in sources and sinks with the factory."""
    factory.register('lines', lines_source)
    factory.register('range', range_source)
    factory.register('console', ConsoleSink)
    factory.register('jsonl', JsonLinesSink)


async def construct_pipeline(sink_list: List[Dict[str, Any]]) -> PipeJunction:
    """Builds a fan-out junction from a list of sink arguments. If any
    sink cannot be built, the sinks already built are closed.
    """
    junction = PipeJunction()
    try:
        for arguments in sink_list:
            node = factory.create(arguments)
            if not isinstance(node, Sink):
                raise ValueError(f"Unknown pipe piece type: {arguments}.")
            junction.add(node)
    except BaseException:
        await junction.close()
        raise
    return junction


async def run_pipeline(source: AsyncIterator[Any], sink: Sink) -> int:
    """Enumerates ``source``, sending each ``(index, item)`` pair into
    ``sink``. The sink is closed once the source is exhausted, or if
    anything fails. Returns the number of items sent.
    """
    try:
        stream = enumerate_stream(source)
        async with stream:
            async for pair in stream:
                await sink.send(pair)
    finally:
        await sink.close()
    logger.info("Pipeline finished after %d items.", stream.count)
    return stream.count
