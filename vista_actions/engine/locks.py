import asyncio
import threading
from contextlib import asynccontextmanager
from typing import Dict


class PathLockTable:
    """One asyncio mutex per file path, shared by every engine writing to a workspace.

    Held only around read-baseline + reconcile + write. Idle entries are dropped.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, path: str):
        with self._guard:
            lock = self._locks.get(path)
            if lock is None:
                lock = self._locks[path] = asyncio.Lock()
            self._users[path] = self._users.get(path, 0) + 1
        try:
            async with lock:
                yield
        finally:
            with self._guard:
                self._users[path] -= 1
                if not self._users[path]:
                    del self._users[path]
                    del self._locks[path]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
