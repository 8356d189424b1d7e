"""
Per-account locks shared across threads and event loops.

Streamlit runs each session in its own script thread, and the dashboard
drives every call through a fresh event loop. Components are cached
across sessions, so an asyncio.Lock would be contended from several
loops at once. These locks are plain threading locks that a coroutine
acquires without blocking its loop.
"""

import asyncio
import threading
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator


class AccountLocks:
    """One lock per user id, usable from any thread or loop."""

    def __init__(self, poll_interval: float = 0.01):
        self._poll_interval = poll_interval
        self._guard = threading.Lock()
        self._locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)

    def lock_for(self, user_id: str) -> threading.Lock:
        with self._guard:
            return self._locks[user_id]

    @asynccontextmanager
    async def hold(self, user_id: str) -> AsyncIterator[None]:
        """Hold the account lock for the body of an `async with`."""
        lock = self.lock_for(user_id)
        while not lock.acquire(blocking=False):
            await asyncio.sleep(self._poll_interval)
        try:
            yield
        finally:
            lock.release()
