"""Optionally bounded LRU map used by the transposition table and result cache."""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Any, Dict, Hashable, Optional


class BoundedCache:
    """LRU-evicting mapping; ``max_entries=None`` keeps every entry until cleared."""

    def __init__(self, max_entries: Optional[int] = None) -> None:
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be positive or None")
        self._table: "OrderedDict[Hashable, Any]" = OrderedDict()
        self.max_entries = max_entries
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def get(self, key: Hashable) -> Optional[Any]:
        if key in self._table:
            self._table.move_to_end(key)
            self.hits += 1
            return self._table[key]
        self.misses += 1
        return None

    def put(self, key: Hashable, value: Any) -> None:
        if key in self._table:
            self._table.move_to_end(key)
        self._table[key] = value
        if self.max_entries is not None:
            while len(self._table) > self.max_entries:
                self._table.popitem(last=False)
                self.evictions += 1

    def clear(self) -> None:
        self._table.clear()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def stats(self) -> Dict[str, Optional[int]]:
        return {
            "size": len(self._table),
            "maxEntries": self.max_entries,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
        }

    def __len__(self) -> int:
        return len(self._table)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._table


class LockedCache(BoundedCache):
    """:class:`BoundedCache` guarded by a single lock for multi-threaded hosts."""

    def __init__(self, max_entries: Optional[int] = None) -> None:
        super().__init__(max_entries)
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            return super().get(key)

    def put(self, key: Hashable, value: Any) -> None:
        with self._lock:
            super().put(key, value)

    def clear(self) -> None:
        with self._lock:
            super().clear()

    def stats(self) -> Dict[str, Optional[int]]:
        with self._lock:
            return super().stats()
