# barbershop/engine/locks.py
"""
Per-key mutual exclusion for the booking allocator.

Keys are (salon_id, barber_id, date). Several keys are always taken in
sorted order so two "any barber" requests over overlapping rosters cannot
deadlock. Entries are reference counted and dropped once idle.

Locks live in process memory: run a single worker process, or replace this
with a database advisory lock when scaling out.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, List


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class KeyedLocks:
    def __init__(self):
        self._guard = threading.Lock()
        self._entries: Dict[Hashable, _Entry] = {}

    def _checkout(self, key) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry()
                self._entries[key] = entry
            entry.users += 1
            return entry

    def _checkin(self, key, entry: _Entry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                self._entries.pop(key, None)

    @contextmanager
    def acquire(self, *keys) -> Iterator[None]:
        ordered = sorted(set(keys), key=repr)
        held: List = []
        try:
            for key in ordered:
                entry = self._checkout(key)
                entry.lock.acquire()
                held.append((key, entry))
            yield
        finally:
            for key, entry in reversed(held):
                entry.lock.release()
                self._checkin(key, entry)

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


booking_locks = KeyedLocks()
