"""Single-value cache with a fixed time-to-live."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

FOLDER_CONTEXT_TTL_SECONDS = 300.0


@dataclass(slots=True)
class _CacheEntry(Generic[T]):
    expires_at: float
    value: T


class TTLValue(Generic[T]):
    """A value that is recomputed once it is older than ``ttl_seconds``.

    Writes elsewhere never invalidate it; callers that need fresh state after a
    mutation call :meth:`invalidate` or :meth:`refresh` explicitly.
    """

    def __init__(
        self,
        ttl_seconds: float = FOLDER_CONTEXT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            msg = "ttl_seconds must be positive"
            raise ValueError(msg)
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entry: _CacheEntry[T] | None = None
        self._lock = asyncio.Lock()

    def peek(self) -> T | None:
        entry = self._entry
        if entry is None or self._clock() >= entry.expires_at:
            return None
        return entry.value

    def set(self, value: T) -> None:
        self._entry = _CacheEntry(expires_at=self._clock() + self.ttl_seconds, value=value)

    def invalidate(self) -> None:
        self._entry = None

    async def get_or_load(self, loader: Callable[[], Awaitable[T]]) -> T:
        cached = self.peek()
        if cached is not None:
            return cached
        async with self._lock:
            cached = self.peek()
            if cached is not None:
                return cached
            value = await loader()
            self.set(value)
            return value

    async def refresh(self, loader: Callable[[], Awaitable[T]]) -> T:
        async with self._lock:
            value = await loader()
            self.set(value)
            return value
