"""
Cooperative cancellation.

A token is scoped to one artifact run. The engine checks it before starting
each action and shell collaborators await it alongside their process.
"""
import asyncio
from typing import Optional


class CancellationToken:
    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def cancel_threadsafe(self, loop: asyncio.AbstractEventLoop, reason: str = "cancelled") -> None:
        """Cancel from a thread that does not own the running loop."""
        loop.call_soon_threadsafe(self.cancel, reason)

    async def wait(self) -> None:
        await self._event.wait()
