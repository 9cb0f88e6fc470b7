"""Injectable time-bounded cache used by the retriever."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Hashable
from typing import Any, Protocol


class Cache(Protocol):
    def get(self, key: Hashable) -> Any | None: ...

    def set(self, key: Hashable, value: Any, ttl: float) -> None: ...


class TTLCache:
    """Thread-safe in-memory map whose entries expire after their TTL.

    Values are stored as given; callers store immutable values (tuples of
    frozen dataclasses), so concurrent readers never observe a partial write.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, max_entries: int = 1024) -> None:
        self._clock = clock
        self._max_entries = max_entries
        self._lock = threading.Lock()
        self._entries: dict[Hashable, tuple[float, Any]] = {}

    def get(self, key: Hashable) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def set(self, key: Hashable, value: Any, ttl: float) -> None:
        with self._lock:
            if len(self._entries) >= self._max_entries:
                self._evict_expired()
            if len(self._entries) >= self._max_entries:
                # oldest insertion goes first
                self._entries.pop(next(iter(self._entries)))
            self._entries[key] = (self._clock() + ttl, value)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _evict_expired(self) -> None:
        now = self._clock()
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]


class NullCache:
    """Cache that never stores anything."""

    def get(self, key: Hashable) -> Any | None:
        return None

    def set(self, key: Hashable, value: Any, ttl: float) -> None:
        return None
