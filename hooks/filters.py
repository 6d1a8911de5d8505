"""
Filter entries for the hooks registry.

Filters are a value pipeline: every filter registered to a name receives the
current value and returns the next one. Filters execute in priority order.
"""

from dataclasses import dataclass
from typing import Any
from typing import Callable
from typing import Union

from hooks import subscriber


FILTER = Union[Callable[[Any], Any], str]
"""
A filter function that receives the current value and returns the value
handed to the next filter. May also be a dotted import path string.
"""


@dataclass(frozen=True)
class Filter(object):
    """
    A filter with callback and priority.
    Filters alter a value on its way back to the caller of do_filter().
    """

    identifier: str
    """The id the filter is stored under. See Hooks._make_id()."""

    function: FILTER
    """The transform as it was registered, callable or dotted path."""

    priority: int
    """Execution order - higher priorities run first."""

    name: str
    """The filter name this entry applies to."""

    @property
    def callback(self) -> Callable[[Any], Any]:
        """Get the invocable, importing it first if registered by path."""
        return subscriber.resolve(self.function)
