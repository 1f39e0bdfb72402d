"""Loads plugin modules which register extra sources and sinks."""

from typing import Callable, Iterable
import importlib
import logging

logger = logging.getLogger(__name__)


def plugin_initialiser(name: str) -> Callable[[], None]:
    """Imports the plugin module ``name`` and returns its
    ``initialise()`` function.

    Raises
    ------
    ValueError
        If the module cannot be imported, or has no callable
        ``initialise``.
    """
    try:
        module = importlib.import_module(name)
    except ImportError as e:
        raise ValueError(f'Cannot import plugin {name}: {e}') from e
    initialise = getattr(module, 'initialise', None)
    if not callable(initialise):
        raise ValueError(f'Plugin {name} has no initialise() function.')
    return initialise


def load_plugins(plugins: Iterable[str]) -> None:
    """Initialises each plugin in turn, so it can register its sources
    and sinks with the factory.
    """
    for name in plugins:
        initialise = plugin_initialiser(name)
        logger.info("Initialising plugin %s.", name)
        initialise()
