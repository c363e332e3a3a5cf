"""
Tests for the memoization cache.

Validates:
  - Compute-once behavior and hit/miss accounting
  - Isolation between functions sharing argument values
  - Bypass for missing function or argument
  - First store wins under concurrent computation
  - Reset discards every entry, including in-flight computations
  - Statistics stay exact under concurrent callers
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from purepy.runtime.memo_cache import CacheStats, MemoCache, default_cache, reset_cache


def square(x):
    return x * x


def cube(x):
    return x * x * x


class TestMemoCache:
    def setup_method(self):
        self.cache = MemoCache()
        self.calls = 0

    def _counted(self, fn, arg):
        def compute():
            self.calls += 1
            return fn(arg)
        return compute

    def test_computes_once(self):
        assert self.cache.lookup_or_compute(square, 4, self._counted(square, 4)) == 16
        assert self.cache.lookup_or_compute(square, 4, self._counted(square, 4)) == 16
        assert self.calls == 1
        assert self.cache.stats.hits == 1
        assert self.cache.stats.misses == 1
        assert self.cache.stats.stores == 1

    def test_functions_are_isolated(self):
        self.cache.lookup_or_compute(square, 3, lambda: square(3))
        assert self.cache.lookup_or_compute(cube, 3, lambda: cube(3)) == 27
        assert self.cache.functions() == 2
        assert len(self.cache) == 2

    def test_lookup_and_contains(self):
        assert self.cache.lookup(square, 2, 'missing') == 'missing'
        self.cache.lookup_or_compute(square, 2, lambda: 4)
        assert self.cache.lookup(square, 2) == 4
        assert (square, 2) in self.cache
        assert (square, 3) not in self.cache
        assert (cube, 2) not in self.cache

    def test_none_argument_bypasses(self):
        assert self.cache.lookup_or_compute(square, None, self._counted(lambda x: 'x', None)) == 'x'
        self.cache.lookup_or_compute(square, None, self._counted(lambda x: 'x', None))
        assert self.calls == 2
        assert self.cache.stats.bypassed == 2
        assert len(self.cache) == 0

    def test_none_function_bypasses(self):
        self.cache.lookup_or_compute(None, 1, lambda: 1)
        assert self.cache.stats.bypassed == 1
        assert self.cache.functions() == 0

    def test_reset(self):
        self.cache.lookup_or_compute(square, 5, lambda: 25)
        self.cache.reset()
        assert len(self.cache) == 0
        assert (square, 5) not in self.cache
        self.cache.lookup_or_compute(square, 5, self._counted(square, 5))
        assert self.calls == 1
        assert self.cache.stats.resets == 1

    def test_first_store_wins(self):
        barrier = threading.Barrier(4)
        results = []

        def compute():
            barrier.wait()
            return object()

        def worker():
            results.append(self.cache.lookup_or_compute(square, 1, compute))

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 4
        assert all(r is results[0] for r in results)
        assert self.cache.lookup(square, 1) is results[0]

    def test_concurrent_distinct_keys(self):
        with ThreadPoolExecutor(max_workers=8) as pool:
            values = list(pool.map(
                lambda i: self.cache.lookup_or_compute(square, i, lambda: square(i)),
                range(200),
            ))
        assert values == [i * i for i in range(200)]
        assert len(self.cache) == 200

    def test_reset_during_computation_discards_result(self):
        started = threading.Event()
        release = threading.Event()

        def slow():
            started.set()
            release.wait(timeout=5)
            return 'stale'

        t = threading.Thread(target=lambda: self.cache.lookup_or_compute(square, 9, slow))
        t.start()
        assert started.wait(timeout=5)
        self.cache.reset()
        release.set()
        t.join(timeout=5)

        assert (square, 9) not in self.cache
        assert self.cache.lookup_or_compute(square, 9, lambda: 81) == 81


class TestCacheStats:
    def test_hit_rate(self):
        stats = CacheStats(hits=3, misses=1)
        assert stats.hit_rate == pytest.approx(0.75)

    def test_empty_hit_rate(self):
        assert CacheStats().hit_rate == 0.0


class TestDefaultCache:
    def test_singleton(self):
        assert default_cache() is default_cache()

    def test_reset_cache(self):
        default_cache().lookup_or_compute(cube, 2, lambda: 8)
        reset_cache()
        assert (cube, 2) not in default_cache()


class TestConcurrentStats:
    def test_every_call_is_counted_once(self):
        cache = MemoCache()
        keys = [i % 50 for i in range(4000)] + [None] * 400

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda k: cache.lookup_or_compute(square, k, lambda: [k]), keys))

        stats = cache.stats
        assert stats.hits + stats.misses + stats.bypassed == len(keys)
        assert stats.bypassed == 400
        assert stats.stores == 50
        assert stats.misses >= stats.stores


class TestDefaultCompute:
    def test_calls_function_with_argument(self):
        cache = MemoCache()
        assert cache.lookup_or_compute(square, 6) == 36
        assert cache.lookup_or_compute(square, 6) == 36
        assert cache.stats.misses == 1
        assert cache.stats.hits == 1

    def test_none_argument_still_calls(self):
        cache = MemoCache()
        assert cache.lookup_or_compute(lambda x: 'none', None) == 'none'
        assert cache.stats.bypassed == 1
