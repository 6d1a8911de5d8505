"""
Failure reporting utilities for the hooks registry.

Subscribers are not isolated from each other: the first exception raised by an
event subscriber or filter aborts the dispatch and reaches the caller of
do_event() / do_filter() unchanged. The functions here only log the failure
with enough context to find the offending callback before it is re-raised.
"""

import logging
from types import ModuleType
from typing import Callable


logger = logging.getLogger(__name__)


def get_callable_name(callable_: Callable) -> str:
    """
    Returns the name of the callable, using class name for items with __self__,
    __qualname__ for anything with one, or str(callable_) if neither are found.
    """
    if isinstance(callable_, str):
        return callable_

    owner = getattr(callable_, "__self__", None)
    if owner is not None and not isinstance(owner, ModuleType):
        # Class methods are bound to the class itself.
        cls = owner if isinstance(owner, type) else owner.__class__
        return f"{cls.__name__}.{callable_.__name__}"
    elif hasattr(callable_, "__qualname__"):
        module = getattr(callable_, "__module__", None)
        if module:
            return f"{module}.{callable_.__qualname__}"
        return callable_.__qualname__
    else:
        return str(callable_)


def log_event_exception(callback: Callable, name: str, exception: Exception) -> None:
    """Log an event subscriber failure before it propagates."""
    logger.error(
        f"Exception in event subscriber:\n"
        f"  Event:     {name}\n"
        f"  Callback:  {get_callable_name(callback)}\n"
        f"  Exception: {exception.__class__.__name__}: {exception}",
        exc_info=True,
    )


def log_filter_exception(callback: Callable, name: str, exception: Exception) -> None:
    """Log a filter failure before it propagates."""
    logger.error(
        f"Exception in filter:\n"
        f"  Filter:    {name}\n"
        f"  Callback:  {get_callable_name(callback)}\n"
        f"  Exception: {exception.__class__.__name__}: {exception}",
        exc_info=True,
    )
