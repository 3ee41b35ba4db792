"""Per-key mutual exclusion."""
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from taskminder.exceptions import SchedulerBusyError


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class KeyedLock:
    """A mutex per key, created on demand and dropped when nobody holds or waits on it.

    Work for different keys proceeds in parallel; work for the same key is
    serialised.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._timeout = timeout
        self._guard = threading.Lock()
        self._entries: Dict[str, _Entry] = {}

    @contextmanager
    def hold(self, key: str, timeout: Optional[float] = None) -> Iterator[None]:
        """Enter the critical section for ``key``.

        Raises:
            SchedulerBusyError: if the lock is not acquired within ``timeout``
        """
        if timeout is None:
            timeout = self._timeout
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.users += 1

        acquired = entry.lock.acquire(timeout=-1 if timeout is None else timeout)
        try:
            if not acquired:
                raise SchedulerBusyError(key, timeout)
            yield
        finally:
            if acquired:
                entry.lock.release()
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
