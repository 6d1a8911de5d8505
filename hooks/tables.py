"""
Subscription table data structures for the hooks registry.

Defines the HookTable that backs both the events and the filters side of a
registry. A table maps a hook name to the entries registered under it, keyed
by their identifier, so re-registering the same identifier replaces the old
entry in place.

A name exists in the table while it has at least one entry. Removing the last
entry drops the name.

Every read and write happens under the table's lock. Callers receive copies
and invoke callbacks outside the lock.
"""

import threading
from typing import Generic
from typing import TypeVar

from hooks import filters
from hooks import subscriber


ENTRY = TypeVar("ENTRY", subscriber.Subscriber, filters.Filter)


class HookTable(Generic[ENTRY]):
    """Name -> identifier -> entry mapping for one kind of hook."""

    def __init__(self) -> None:
        self._entries: dict[str, dict[str, ENTRY]] = {}
        self._lock = threading.RLock()

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._entries

    def add(self, entry: ENTRY) -> bool:
        """
        Store an entry under its name, replacing any entry with the same
        identifier.

        Returns:
            bool: True if an existing entry was replaced.
        """
        with self._lock:
            entries = self._entries.setdefault(entry.name, {})
            replaced = entry.identifier in entries
            entries[entry.identifier] = entry
            return replaced

    def remove(self, name: str, identifier: str) -> bool:
        """Remove one entry, returning whether it existed."""
        with self._lock:
            entries = self._entries.get(name)
            if entries is None or identifier not in entries:
                return False

            del entries[identifier]
            if not entries:
                del self._entries[name]
            return True

    def remove_all(self, name: str) -> bool:
        """Remove every entry for name, returning whether the name existed."""
        with self._lock:
            return self._entries.pop(name, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get(self, name: str) -> list[ENTRY]:
        """Entries for name in table order, or an empty list."""
        with self._lock:
            return list(self._entries.get(name, {}).values())

    def get_all(self) -> dict[str, list[ENTRY]]:
        with self._lock:
            return {
                name: list(entries.values())
                for name, entries in self._entries.items()
            }

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._entries.keys())

    def ordered(self, name: str) -> list[ENTRY]:
        """
        Snapshot of the entries for name in dispatch order.

        Higher priorities come first. The sort is stable, so entries sharing a
        priority keep the order they were first registered in.
        """
        return sorted(self.get(name), key=lambda e: e.priority, reverse=True)
