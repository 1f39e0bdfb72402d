"""
``enumstream``
==============

Provides a counting adapter for asynchronous streams, pairing each
element with its zero-based index, along with the stream and sink
interfaces it composes with, and a small configurable pipeline for
enumerating sources into sinks.
"""
from ._version import __version__
from . import base
from . import streams
from .adapter import (
    Enumerate,
    FusedEnumerate,
    SinkEnumerate,
    FusedSinkEnumerate,
    SourceView,
    enumerate_stream,
)


__all__ = [
    "__version__",
    "base",
    "streams",
    "Enumerate",
    "FusedEnumerate",
    "SinkEnumerate",
    "FusedSinkEnumerate",
    "SourceView",
    "enumerate_stream",
]
