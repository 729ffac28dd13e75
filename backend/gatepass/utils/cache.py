"""In-process TTL cache used by directory lookups"""
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Hashable, Optional, Tuple


class TTLCache:
    """
    Small thread-safe TTL cache with oldest-first eviction
    
    Args:
        ttl_seconds: How long an entry stays valid
        max_entries: Size bound; inserting beyond it evicts the oldest entry
        clock: Monotonic time source, replaceable in tests
    """
    
    def __init__(
        self,
        ttl_seconds: float = 300,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[Hashable, Tuple[float, Any]]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0
    
    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return default
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                self.misses += 1
                return default
            self.hits += 1
            return value
    
    def set(self, key: Hashable, value: Any, ttl_seconds: Optional[float] = None) -> None:
        expires_at = self._clock() + (ttl_seconds or self.ttl_seconds)
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            self._entries[key] = (expires_at, value)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
    
    def __contains__(self, key: Hashable) -> bool:
        return self.get(key, _MISSING) is not _MISSING
    
    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
    
    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)
    
    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
    
    def purge_expired(self) -> int:
        """Drop expired entries; returns how many were removed"""
        now = self._clock()
        with self._lock:
            expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
            for key in expired:
                del self._entries[key]
            return len(expired)


_MISSING = object()
