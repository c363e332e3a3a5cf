"""
Memoization Cache
=================

Two-level mapping ``function -> (argument -> result)`` shared by every
compiled pure function.

Guarantees
----------
- At most one stored result per (function, argument); the first store
  wins and is never overwritten.
- Reads take no lock. Registering a function's sub-mapping and storing a
  result are serialized per level, so concurrent first calls on distinct
  keys cannot corrupt each other.
- Concurrent first calls for the *same* key may both compute; only one
  result is kept and both callers return that one.
- ``reset()`` swaps the whole store for an empty one in a single
  assignment. A computation already running against the old store writes
  into that store, so its result is never visible after the reset.

Functions are keyed by identity (Python callables hash by ``id``), so two
compiled functions, or two curried partial applications, never share
entries even when their argument domains overlap.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    """Hit/miss counters for a memo cache."""
    hits: int = 0
    misses: int = 0
    stores: int = 0
    bypassed: int = 0
    resets: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


class _Store:
    """One generation of cached results; replaced wholesale on reset."""

    __slots__ = ('tables', 'locks', 'registry_lock')

    def __init__(self):
        self.tables: Dict[Any, Dict[Any, Any]] = {}
        self.locks: Dict[Any, threading.Lock] = {}
        self.registry_lock = threading.Lock()

    def table_for(self, function: Any) -> Dict[Any, Any]:
        table = self.tables.get(function)
        if table is None:
            with self.registry_lock:
                table = self.tables.get(function)
                if table is None:
                    self.locks[function] = threading.Lock()
                    table = self.tables[function] = {}
        return table


class MemoCache:
    """
    Process-wide memo table for pure functions.

    Usage:
        >>> cache = MemoCache()
        >>> cache.lookup_or_compute(f, 10)                 # computes f(10)
        >>> cache.lookup_or_compute(f, 10, lambda: f(10))  # cached
        >>> cache.reset()
    """

    _MISSING = object()

    def __init__(self):
        self._store = _Store()
        self.stats = CacheStats()
        self._stats_lock = threading.Lock()

    def _count(self, name: str):
        with self._stats_lock:
            setattr(self.stats, name, getattr(self.stats, name) + 1)

    def lookup_or_compute(self, function: Any, argument: Any,
                          compute: Optional[Callable[[], Any]] = None) -> Any:
        """
        Return the stored result for (function, argument), computing it once if absent.

        ``compute`` defaults to ``function(argument)``; compiled functions
        call without it so a recursion level costs no extra frame.
        """
        if function is None or argument is None:
            self._count('bypassed')
            return compute() if compute is not None else function(argument)

        # Bind the generation once so a concurrent reset cannot split this call.
        store = self._store
        table = store.tables.get(function)
        if table is not None:
            result = table.get(argument, self._MISSING)
            if result is not self._MISSING:
                self._count('hits')
                return result
        else:
            table = store.table_for(function)

        self._count('misses')
        result = compute() if compute is not None else function(argument)
        with store.locks[function]:
            stored = table.setdefault(argument, result)
            if stored is result:
                self._count('stores')
        return stored

    def lookup(self, function: Any, argument: Any, default: Any = None) -> Any:
        """Peek at a stored result without computing."""
        table = self._store.tables.get(function)
        if table is None:
            return default
        return table.get(argument, default)

    def reset(self):
        """Atomically replace every stored result with an empty store."""
        self._store = _Store()
        self._count('resets')
        logger.debug("Memo cache reset")

    def functions(self) -> int:
        """Number of distinct functions with a sub-mapping."""
        return len(self._store.tables)

    def __contains__(self, key) -> bool:
        function, argument = key
        table = self._store.tables.get(function)
        return table is not None and argument in table

    def __len__(self) -> int:
        return sum(len(t) for t in list(self._store.tables.values()))


_default_cache: Optional[MemoCache] = None
_default_lock = threading.Lock()


def default_cache() -> MemoCache:
    """The process-wide cache used when a builder is not given one."""
    global _default_cache
    if _default_cache is None:
        with _default_lock:
            if _default_cache is None:
                _default_cache = MemoCache()
    return _default_cache


def reset_cache():
    """Clear every memoized result in the process-wide cache."""
    default_cache().reset()
