"""
Per-VIN lock registry

Serializes validate-then-commit for a single vehicle inside one process.
Different VINs never contend. Locks are reference counted and discarded when
no mover holds or waits on them, so the registry does not grow with the fleet.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List


class _Entry:
    __slots__ = ('lock', 'users')

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class VinLockRegistry:
    """Hands out one mutex per VIN"""

    def __init__(self):
        self._guard = threading.Lock()
        self._entries: Dict[str, _Entry] = {}

    @contextmanager
    def hold(self, vin: str) -> Iterator[None]:
        """Context manager that holds the VIN's lock for the duration of the block"""
        key = (vin or '').strip().upper()
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.users += 1

        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    self._entries.pop(key, None)

    def active_vins(self) -> List[str]:
        """VINs currently held or waited on"""
        with self._guard:
            return sorted(self._entries)
