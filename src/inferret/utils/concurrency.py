"""Async admission gate used to bound concurrent oracle work."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


class BoundedSemaphore:
    """Admission gate over ``asyncio.Semaphore`` that records who holds a permit.

    Each admitted holder is tracked by label so a stalled run can be diagnosed
    from ``snapshot()``. ``peak`` and ``admitted`` describe the whole lifetime of
    the gate, which makes the concurrency bound observable in tests.
    """

    def __init__(self, limit: int) -> None:
        if limit <= 0:
            raise ValueError("limit must be > 0")
        self._limit = limit
        self._gate = asyncio.Semaphore(limit)
        self._holders: list[str] = []
        self._peak = 0
        self._admitted = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def in_use(self) -> int:
        return len(self._holders)

    @property
    def available(self) -> int:
        return self._limit - len(self._holders)

    @property
    def peak(self) -> int:
        return self._peak

    @property
    def admitted(self) -> int:
        """Total number of permits granted since creation."""
        return self._admitted

    @property
    def holders(self) -> tuple[str, ...]:
        return tuple(self._holders)

    async def acquire(self, holder: str = "anonymous") -> None:
        # Cancellation while waiting leaves the holder list untouched.
        await self._gate.acquire()
        self._holders.append(holder)
        self._admitted += 1
        if len(self._holders) > self._peak:
            self._peak = len(self._holders)

    def release(self, holder: str = "anonymous") -> None:
        try:
            self._holders.remove(holder)
        except ValueError:
            raise RuntimeError(f"release without matching acquire: {holder!r}") from None
        self._gate.release()

    @asynccontextmanager
    async def permit(self, holder: str = "anonymous") -> AsyncIterator[None]:
        await self.acquire(holder)
        try:
            yield
        finally:
            self.release(holder)

    def snapshot(self) -> dict[str, object]:
        return {
            "limit": self._limit,
            "in_use": self.in_use,
            "peak": self._peak,
            "admitted": self._admitted,
            "holders": list(self._holders),
        }


__all__ = ["BoundedSemaphore"]
