"""Shared list of application names to watch."""

import threading
from collections.abc import Iterable


class WatchList:
    """
    Thread-safe, swap-on-write list of application names.

    The names are held as an immutable tuple. Writers build the new tuple
    before taking the lock and only swap the reference while holding it;
    readers get the current tuple itself, which no one can modify. A reader
    therefore always sees either the complete old list or the complete new one.
    """

    def __init__(self, names: Iterable[str] = ()) -> None:
        self._lock = threading.Lock()
        self._names: tuple[str, ...] = tuple(names)

    def replace(self, names: Iterable[str]) -> None:
        """Replace the whole list with ``names``."""
        new_names = tuple(names)
        with self._lock:
            self._names = new_names

    def snapshot(self) -> tuple[str, ...]:
        """Get a consistent copy of the current names."""
        with self._lock:
            return self._names

    def __len__(self) -> int:
        return len(self.snapshot())

    def __repr__(self) -> str:
        return f"WatchList({list(self.snapshot())!r})"
