"""In-process cache with time-based expiry.

Instances are created by the caller and injected where needed; nothing here
is a module-level singleton, so each engine owns its own cache lifetime.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple


class ChapterCache(Protocol):
    """Minimal cache interface used by the chapter catalog."""

    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...

    def invalidate(self) -> None: ...


class TTLCache:
    """Thread-safe dictionary cache whose entries expire after ``ttl_seconds``.

    ``version`` is folded into every key; calling :meth:`invalidate` bumps it,
    which orphans all existing entries at once.
    """

    def __init__(
        self,
        ttl_seconds: float = 3600.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._version = 0

    @property
    def version(self) -> int:
        return self._version

    def _key(self, key: str) -> str:
        return f"v{self._version}:{key}"

    def get(self, key: str) -> Optional[Any]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(self._key(key))
            if entry is None:
                return None
            expires_at, value = entry
            if now >= expires_at:
                del self._entries[self._key(key)]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        expires_at = self._clock() + self.ttl_seconds
        with self._lock:
            self._entries[self._key(key)] = (expires_at, value)

    def invalidate(self) -> None:
        with self._lock:
            self._version += 1
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
