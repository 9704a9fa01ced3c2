"""FIFO counting gate for serializing request/response cycles."""

import asyncio
from collections import deque
from contextlib import suppress
from typing import Self


class Gate:
    """Counting gate that admits ``capacity`` holders at a time.

    Waiters are admitted strictly in arrival order. A released slot is
    handed directly to the oldest waiter, so a caller arriving later can
    never overtake one already queued.

    Example:
        gate = Gate()
        async with gate:
            ...  # exactly one holder at a time
    """

    def __init__(self, capacity: int = 1) -> None:
        """Initialize the gate.

        Args:
            capacity: Number of concurrent holders allowed (at least 1).
        """
        if capacity < 1:
            raise ValueError(f"Gate capacity must be at least 1, got {capacity}")
        self._capacity = capacity
        self._available = capacity
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def capacity(self) -> int:
        """Return the fixed capacity."""
        return self._capacity

    @property
    def available(self) -> int:
        """Return the number of free slots."""
        return self._available

    @property
    def waiting(self) -> int:
        """Return the number of callers queued for a slot."""
        return sum(1 for waiter in self._waiters if not waiter.done())

    def locked(self) -> bool:
        """Return True if acquire() would suspend."""
        return self._available == 0 or bool(self.waiting)

    async def acquire(self) -> None:
        """Suspend until a slot is available, then take it."""
        if self._available > 0 and not self.waiting:
            self._available -= 1
            return

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.cancelled():
                with suppress(ValueError):
                    self._waiters.remove(waiter)
            else:
                # Slot was handed over before the cancellation landed
                self.release()
            raise

    def release(self) -> None:
        """Hand the slot to the oldest waiter, or return it to the pool.

        Raises:
            RuntimeError: If released more times than acquired.
        """
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        if self._available >= self._capacity:
            raise RuntimeError("Gate released more times than acquired")
        self._available += 1

    async def __aenter__(self) -> Self:
        """Acquire on entry."""
        await self.acquire()
        return self

    async def __aexit__(self, *_: object) -> None:
        """Release on every exit path."""
        self.release()
