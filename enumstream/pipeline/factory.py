import logging
from typing import Dict, Callable, Any

logger = logging.getLogger(__name__)

create_funcs: Dict[str, Callable[..., Any]] = {}


def register(name: str, creation_func: Callable[..., Any]):
    """Register a new source or sink."""
    logger.debug("Registered pipe piece %r.", name)
    create_funcs[name] = creation_func


def unregister(name: str):
    """Unregister a source or sink."""
    create_funcs.pop(name, None)


def create(arguments: Dict[str, Any]) -> Any:
    """Create a source or sink of a specific type, given a dictionary
    of arguments. The ``type`` key names the registered creation
    function, and the remaining keys are passed to it.
    """
    args_copy = dict(arguments)
    try:
        name = args_copy.pop('type')
    except KeyError:
        raise ValueError(f'Pipe piece {arguments} has no type.') from None
    try:
        creation_func = create_funcs[name]
    except KeyError:
        raise ValueError(f'Unknown source or sink of name {name}.') from None
    return creation_func(**args_copy)
