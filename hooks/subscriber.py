"""
Subscriber data structures and type definitions for event hooks.

Defines the Subscriber dataclass which wraps an event callback with the
metadata the registry needs to address and order it: the derived identifier,
the priority and the event name. Also defines the CALLBACK type alias used
throughout the hooks package for type hints.
"""

import pkgutil
from dataclasses import dataclass
from typing import Any
from typing import Callable
from typing import Union

CALLBACK = Union[Callable[..., Any], str]
"""
The end point that event arguments are forwarded to. Either a callable or a
dotted import path (e.g. 'package.module.function' or 'package.module:func')
that is resolved when the event is dispatched.

Return values are discarded. If you want data back, use a filter.
"""


def resolve(function: CALLBACK) -> Callable[..., Any]:
    """
    Returns the invocable behind a registered callback, importing dotted path
    strings on demand.

    Raises:
        ImportError, AttributeError, ValueError: If a path cannot be resolved.
    """
    if isinstance(function, str):
        return pkgutil.resolve_name(function)
    return function


@dataclass(frozen=True)
class Subscriber(object):
    """A subscriber with a callback and priority."""

    identifier: str
    """The id the subscriber is stored under. See Hooks._make_id()."""

    function: CALLBACK
    """
    The end point that data is forwarded to, as it was registered.
    The registry holds a strong reference so anonymous callables stay alive.
    """

    priority: int
    """
    Where in the execution order the callback should take place.
    Higher numbers are executed before lower numbers.
    """

    name: str
    """The event name the subscriber is listening to."""

    @property
    def callback(self) -> Callable[..., Any]:
        """Get the invocable, importing it first if registered by path."""
        return resolve(self.function)
