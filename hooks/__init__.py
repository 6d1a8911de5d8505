"""
# Hooks Registry

Herein is the hooks registry itself: a class owning two independent tables of
prioritized callbacks.

Events are fire-and-forget notifications, every subscriber registered to a
name is called with the dispatched arguments and return values are discarded.
Filters are a value pipeline, every filter registered to a name receives the
current value and returns the next one.

Each Hooks instance owns its tables. Use get_hooks() when the application
wants one registry shared across modules.

Two event names are reserved:
    always:   subscribers run on every do_event() call, whatever the name.
    destruct: subscribers run once, when the registry is closed.
"""

import atexit
import hashlib
import json
import logging
import os
import sys
import threading
import weakref
from types import ModuleType
from typing import Any
from typing import Callable
from typing import Optional
from typing import Union

from hooks import filters
from hooks import handlers
from hooks import subscriber
from hooks import tables


version_major = 1
version_minor = 0
version_patch = 0
__version__ = f"{version_major}.{version_minor}.{version_patch}"

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 5
"""Priority given to callbacks registered without one."""

EVENT_ALWAYS = "always"
EVENT_DESTRUCT = "destruct"


# -----Exceptions--------------------------------------------------------------
class HookError(Exception):
    """Raised for hook problems, e.g. a callback path that cannot be imported."""


# -----------------------------------------------------------------------------


def _hash(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest()


def _importable_path(callback: Callable) -> Optional[str]:
    """
    Returns 'module.qualname' for callables that can be found again by that
    path, or None for closures, lambdas and objects without a qualified name.
    """
    qualname = getattr(callback, "__qualname__", None)
    module = getattr(callback, "__module__", None)
    if not isinstance(qualname, str) or not module:
        return None

    # '<locals>' and '<lambda>' mark functions that are not module attributes.
    if "<" in qualname:
        return None

    # Wrappers made with functools.wraps or lru_cache copy the qualname of the
    # function they wrap, so the path must lead back to this very object.
    target = sys.modules.get(module)
    for part in qualname.split("."):
        target = getattr(target, part, None)
        if target is None:
            return None

    if target is not callback:
        return None

    return f"{module}.{qualname}"


def _resolve(entry: Union[subscriber.Subscriber, filters.Filter]) -> Callable:
    """
    Returns the invocable for an entry.

    Raises:
        HookError: If the entry was registered by a path that does not import.
    """
    try:
        return entry.callback
    except (ImportError, AttributeError, ValueError) as e:
        raise HookError(
            f"Unable to resolve callback '{entry.function}' "
            f"for '{entry.name}': {e}"
        ) from e


def _call_subscriber(sub: subscriber.Subscriber, name: str, args: tuple) -> None:
    callback = _resolve(sub)
    try:
        callback(*args)
    except Exception as e:
        handlers.log_event_exception(callback, name, e)
        raise


def _dispatch_event(
    events: tables.HookTable[subscriber.Subscriber], name: str, args: tuple
) -> None:
    """
    Runs the 'always' subscribers with args as one value, then the subscribers
    of name with args spread.

    Takes the events table rather than the registry so the finalizer of a
    Hooks instance can dispatch 'destruct' without keeping it alive.
    """
    for sub in events.ordered(EVENT_ALWAYS):
        _call_subscriber(sub, name, (args,))

    for sub in events.ordered(name):
        _call_subscriber(sub, name, args)


class Hooks(object):
    """
    Primary hook coordinator.

    Use do_event() to notify every subscriber of an event.
    Use do_filter() to pass a value through every filter of a name.

    To manage event subscribers use
    add_event(), remove_event() and remove_events(),
    or decorate with @registry.event.

    To manage filters use
    add_filter(), remove_filter() and remove_filters(),
    or decorate with @registry.filter.

    Call close() when the registry is no longer needed, or use it as a context
    manager, to run the 'destruct' subscribers. A registry that is never closed
    still runs them once, when it is garbage collected or at interpreter exit,
    but that timing is up to the interpreter.
    """

    # ---Exceptions---
    HookError = HookError

    def __init__(self) -> None:
        self._events: tables.HookTable[subscriber.Subscriber] = tables.HookTable()
        self._filters: tables.HookTable[filters.Filter] = tables.HookTable()

        self._closed = False
        self._close_lock = threading.Lock()

        # Dispatches 'destruct' if the registry is collected, or still alive at
        # interpreter exit, without close() having been called.
        self._finalizer = weakref.finalize(
            self, _dispatch_event, self._events, EVENT_DESTRUCT, ()
        )

    def __enter__(self) -> "Hooks":
        return self

    def __exit__(self, *_: Any) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        """True once close() has been called."""
        return self._closed

    def close(self) -> None:
        """
        Dispatch the 'destruct' event and stop dispatching anything else.

        Only the first call does anything. Calls made while the 'destruct'
        subscribers are running, including from those subscribers, return
        immediately.

        Notes:
            The 'always' subscribers also run, as with any do_event() call.
            Registration and introspection keep working after close().
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
            self._finalizer.detach()

        logger.debug("Closing hooks registry, dispatching '%s'.", EVENT_DESTRUCT)
        _dispatch_event(self._events, EVENT_DESTRUCT, ())

    def clear(self) -> None:
        """Remove every event subscriber and filter."""
        self._events.clear()
        self._filters.clear()
        logger.debug("Cleared all events and filters.")

    # -----Identifiers---------------------------------------------------------

    @staticmethod
    def _make_id(
        name: str, callback: subscriber.CALLBACK, key: Optional[str] = None
    ) -> str:
        """
        Returns the id a callback is stored under for a name.

        This is what lets add_event() replace an earlier registration of the
        same callback and lets remove_event() find it again.

        Args:
            name (str): The event or filter name.
            callback (CALLBACK): The callback being registered or removed.
            key (Optional[str]): Explicit handle. When given it is the only
                thing that addresses the entry, whatever the callback is. Keys
                are hashed apart from paths, so a key never matches a callback.
        Returns:
            str: The identifier.
        Notes:
            - Bound methods combine the owner's identity with the method name,
            so 'obj.method' addresses the same entry each time it is accessed.
            - Dotted path strings, and functions that their 'module.qualname'
            path leads back to, hash the name with the path, so a function and
            'module.function' are the same entry. Wrappers copying another
            function's qualname fall through to object identity.
            - Anything else (lambdas, closures, partials, callable instances)
            uses its object identity and can only be removed by passing the
            same object back, or by registering it with a key.
        """
        if key is not None:
            return _hash(name + "\0key:" + key)

        if isinstance(callback, str):
            return _hash(name + callback)

        owner = getattr(callback, "__self__", None)
        if owner is not None and not isinstance(owner, ModuleType):
            return f"{id(owner):x}{getattr(callback, '__name__', '')}"

        path = _importable_path(callback)
        if path is not None:
            return _hash(name + path)

        return f"{id(callback):x}"

    @staticmethod
    def _validate_callback(callback: subscriber.CALLBACK) -> None:
        if not isinstance(callback, str) and not callable(callback):
            raise TypeError(
                f"Hook callbacks must be callable or a dotted import path, "
                f"got {type(callback).__name__}"
            )

    # -----Events--------------------------------------------------------------

    def add_event(
        self,
        name: str,
        callback: subscriber.CALLBACK,
        priority: int = DEFAULT_PRIORITY,
        *,
        key: Optional[str] = None,
    ) -> None:
        """
        Register a callback to an event name.

        Registering a callback that is already registered to the name replaces
        the earlier entry, including its priority.

        Args:
            name (str): Event name. 'always' and 'destruct' are reserved.
            callback (CALLBACK): Function to call when the event is dispatched,
                or a dotted import path to one.
            priority (int): Higher priorities are ran before lower priorities.
                Defaults to 5.
            key (Optional[str]): Explicit handle used to remove the subscriber
                later. Use one to make lambdas and closures removable.
        Raises:
            TypeError: If callback is neither callable nor a string.
        """
        self._validate_callback(callback)
        sub = subscriber.Subscriber(
            identifier=self._make_id(name, callback, key),
            function=callback,
            priority=priority,
            name=name,
        )

        replaced = self._events.add(sub)
        logger.debug(
            "%s event subscriber %s on '%s' [priority=%s]",
            "Replaced" if replaced else "Added",
            handlers.get_callable_name(callback),
            name,
            priority,
        )

    def event(
        self,
        name: str,
        priority: int = DEFAULT_PRIORITY,
        key: Optional[str] = None,
    ) -> Callable[[subscriber.CALLBACK], subscriber.CALLBACK]:
        """
        Decorator to register a function as an event subscriber.

        Usage:
            @registry.event('app.startup', 10)
            def on_startup(config: dict) -> None:
                ...
        Args:
            name (str): The event name to subscribe to.
            priority (int): The execution priority. Defaults to 5.
            key (Optional[str]): Explicit handle for later removal.
        """

        def decorator(func: subscriber.CALLBACK) -> subscriber.CALLBACK:
            self.add_event(name, func, priority, key=key)
            return func

        return decorator

    def has_event(self, name: str) -> bool:
        """Check if at least one subscriber is registered to an event name."""
        return name in self._events

    def get_events(
        self, name: Optional[str] = None
    ) -> Union[list[subscriber.Subscriber], dict[str, list[subscriber.Subscriber]]]:
        """
        Get the subscribers of an event name, or of every event name.

        Args:
            name (Optional[str]): Event name, or None for all of them.
        Returns:
            The list of Subscriber entries for name, empty if there are none.
            Without a name, a dict mapping each event name to its list.
        Notes:
            Entries come back in registration order, not in dispatch order.
        """
        if name is None:
            return self._events.get_all()
        return self._events.get(name)

    def get_event_names(self) -> list[str]:
        """Get all event names with at least one subscriber."""
        return self._events.names()

    def remove_event(
        self,
        name: str,
        callback: Optional[subscriber.CALLBACK] = None,
        *,
        key: Optional[str] = None,
    ) -> bool:
        """
        Remove one subscriber from an event name.

        Args:
            name (str): Event name.
            callback (Optional[CALLBACK]): The callback to remove.
            key (Optional[str]): The handle it was registered with, if any.
        Returns:
            bool: True if the subscriber existed.
        Raises:
            TypeError: If neither a callback nor a key is given.
        Notes:
            Lambdas and closures can only be removed with the object that was
            registered or with the key they were registered with.
        """
        identifier = self._removal_id(name, callback, key)
        removed = self._events.remove(name, identifier)
        if removed:
            logger.debug("Removed event subscriber %s from '%s'", identifier, name)
        return removed

    def remove_events(self, name: str) -> bool:
        """
        Remove every subscriber from an event name.

        Returns:
            bool: True if the name had subscribers.
        """
        removed = self._events.remove_all(name)
        if removed:
            logger.debug("Removed all event subscribers from '%s'", name)
        return removed

    def do_event(self, name: str, *args: Any) -> None:
        """
        Dispatch an event to its subscribers in priority order.

        The 'always' subscribers run first, each receiving the whole args tuple
        as a single argument. Then the subscribers of name run, each receiving
        args spread as positional arguments.

        Args:
            name (str): Event name.
            *args (Any): Arguments passed to the subscribers.
        Raises:
            HookError: If a subscriber registered by path cannot be imported.
            Exception: Whatever a subscriber raises. Remaining subscribers are
                not called.
        Notes:
            Does nothing once the registry is closed.
        """
        if self._closed:
            logger.debug("Registry closed, skipping event '%s'", name)
            return

        _dispatch_event(self._events, name, args)

    # -----Filters-------------------------------------------------------------

    def add_filter(
        self,
        name: str,
        callback: filters.FILTER,
        priority: int = DEFAULT_PRIORITY,
        *,
        key: Optional[str] = None,
    ) -> None:
        """
        Register a filter to a name.

        Registering a callback that is already registered to the name replaces
        the earlier entry, including its priority.

        Args:
            name (str): Filter name.
            callback (FILTER): Function receiving the current value and
                returning the next one, or a dotted import path to one.
            priority (int): Execution order (higher = earlier, default 5).
            key (Optional[str]): Explicit handle used to remove the filter
                later.
        Raises:
            TypeError: If callback is neither callable nor a string.
        """
        self._validate_callback(callback)
        filter_obj = filters.Filter(
            identifier=self._make_id(name, callback, key),
            function=callback,
            priority=priority,
            name=name,
        )

        replaced = self._filters.add(filter_obj)
        logger.debug(
            "%s filter %s on '%s' [priority=%s]",
            "Replaced" if replaced else "Added",
            handlers.get_callable_name(callback),
            name,
            priority,
        )

    def filter(
        self,
        name: str,
        priority: int = DEFAULT_PRIORITY,
        key: Optional[str] = None,
    ) -> Callable[[filters.FILTER], filters.FILTER]:
        """
        Decorator to register a function as a filter.

        Usage:
            @registry.filter('page.title', 1)
            def add_suffix(title: str) -> str:
                return f'{title} | Site'
        Args:
            name (str): The filter name.
            priority (int): The execution priority. Defaults to 5.
            key (Optional[str]): Explicit handle for later removal.
        """

        def decorator(func: filters.FILTER) -> filters.FILTER:
            self.add_filter(name, func, priority, key=key)
            return func

        return decorator

    def has_filter(self, name: str) -> bool:
        """Check if at least one filter is registered to a name."""
        return name in self._filters

    def get_filters(
        self, name: Optional[str] = None
    ) -> Union[list[filters.Filter], dict[str, list[filters.Filter]]]:
        """
        Get the filters of a name, or of every filter name.

        Args:
            name (Optional[str]): Filter name, or None for all of them.
        Returns:
            The list of Filter entries for name, empty if there are none.
            Without a name, a dict mapping each filter name to its list.
        """
        if name is None:
            return self._filters.get_all()
        return self._filters.get(name)

    def get_filter_names(self) -> list[str]:
        """Get all filter names with at least one filter."""
        return self._filters.names()

    def remove_filter(
        self,
        name: str,
        callback: Optional[filters.FILTER] = None,
        *,
        key: Optional[str] = None,
    ) -> bool:
        """
        Remove one filter from a name.

        Args:
            name (str): Filter name.
            callback (Optional[FILTER]): The filter function to remove.
            key (Optional[str]): The handle it was registered with, if any.
        Returns:
            bool: True if the filter existed.
        Raises:
            TypeError: If neither a callback nor a key is given.
        """
        identifier = self._removal_id(name, callback, key)
        removed = self._filters.remove(name, identifier)
        if removed:
            logger.debug("Removed filter %s from '%s'", identifier, name)
        return removed

    def remove_filters(self, name: str) -> bool:
        """
        Remove every filter from a name.

        Returns:
            bool: True if the name had filters.
        """
        removed = self._filters.remove_all(name)
        if removed:
            logger.debug("Removed all filters from '%s'", name)
        return removed

    def do_filter(self, name: str, value: Any) -> Any:
        """
        Pass a value through the filters of a name in priority order.

        Args:
            name (str): Filter name.
            value (Any): The original value.
        Returns:
            The value returned by the last filter, or value itself if the name
            has no filters or the registry is closed.
        Raises:
            HookError: If a filter registered by path cannot be imported.
            Exception: Whatever a filter raises. The chain stops there.
        """
        if self._closed:
            logger.debug("Registry closed, skipping filter '%s'", name)
            return value

        for filter_obj in self._filters.ordered(name):
            callback = _resolve(filter_obj)
            try:
                value = callback(value)
            except Exception as e:
                handlers.log_filter_exception(callback, name, e)
                raise

        return value

    def _removal_id(
        self, name: str, callback: Optional[subscriber.CALLBACK], key: Optional[str]
    ) -> str:
        if callback is None and key is None:
            raise TypeError("A callback or a key is required to remove a hook.")
        return self._make_id(name, callback, key)

    # -----Introspection-------------------------------------------------------

    @staticmethod
    def _table_to_dict(table: tables.HookTable) -> dict[str, list[str]]:
        data = {}
        for name in table.names():
            entries_info = []
            for entry in table.ordered(name):
                info = handlers.get_callable_name(entry.function)
                priority_str = (
                    f" [priority={entry.priority}]"
                    if entry.priority != DEFAULT_PRIORITY
                    else ""
                )
                entries_info.append(f"{info}{priority_str}")

            data[name] = entries_info

        return data

    def to_dict(self) -> dict:
        """
        Convert the registry structure to a dictionary.

        Example:
            {
                'events': {
                    'always': ['app.log.record_all'],
                    'app.startup': ['app.db.connect [priority=10]'],
                },
                'filters': {
                    'page.title': ['app.pages.add_suffix [priority=1]'],
                },
            }
        """
        return {
            "events": self._table_to_dict(self._events),
            "filters": self._table_to_dict(self._filters),
        }

    def to_string(self) -> str:
        """Returns a string representation of the registry."""
        return json.dumps(self.to_dict(), indent=4)

    def export(self, filepath: Union[str, os.PathLike]) -> None:
        """Export registry structure to filepath."""
        with open(filepath, "w") as outfile:
            json.dump(self.to_dict(), outfile, indent=4)


# -----Shared Registry---------------------------------------------------------

_shared: Optional[Hooks] = None
_shared_lock = threading.Lock()


def get_hooks() -> Hooks:
    """
    Returns the process wide registry, creating it on first use.

    The shared registry is closed at interpreter exit, so its 'destruct'
    subscribers run exactly once.
    """
    global _shared

    with _shared_lock:
        if _shared is None:
            _shared = Hooks()
            atexit.register(_shared.close)

        return _shared
