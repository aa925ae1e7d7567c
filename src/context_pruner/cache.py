"""Bounded in-memory cache shared by the segmenter and analyzer."""

from typing import Any, Dict, Hashable, Optional


class BoundedCache:
    """
    Small key→value table with a hard size cap.

    When full, the oldest half of the entries (insertion order) is
    evicted in one step. This is cheaper than true LRU and good enough
    for per-session caches. Entries are always reproducible from
    scratch, so a miss only costs recomputation.

    Not thread-safe: each session owns its own instance.
    """

    def __init__(self, max_size: int = 1000, enabled: bool = True):
        """
        Args:
            max_size: Maximum number of entries before eviction
            enabled: When False, get() always misses and set() is a no-op
        """
        self.max_size = max(1, int(max_size))
        self.enabled = enabled
        self._data: Dict[Hashable, Any] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[Any]:
        if not self.enabled:
            return None
        if key in self._data:
            self.hits += 1
            return self._data[key]
        self.misses += 1
        return None

    def set(self, key: Hashable, value: Any) -> None:
        if not self.enabled:
            return
        if key not in self._data and len(self._data) >= self.max_size:
            self._evict_half()
        self._data[key] = value

    def _evict_half(self) -> None:
        keys = list(self._data.keys())
        for k in keys[:max(1, len(keys) // 2)]:
            del self._data[k]

    def configure(self, max_size: int, enabled: bool) -> None:
        """Apply new settings, dropping the oldest entries over the new cap."""
        self.max_size = max(1, int(max_size))
        self.enabled = enabled
        if not enabled:
            self._data.clear()
        for k in list(self._data.keys())[:max(0, len(self._data) - self.max_size)]:
            del self._data[k]

    def clear(self) -> None:
        self._data.clear()

    def __contains__(self, key: Hashable) -> bool:
        return self.enabled and key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def stats(self) -> Dict[str, int]:
        return {
            "size": len(self._data),
            "max_size": self.max_size,
            "hits": self.hits,
            "misses": self.misses,
        }
