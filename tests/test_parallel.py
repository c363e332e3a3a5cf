"""
Tests for the worker pool and the parallel binary evaluator.

Validates:
  - Slot reservation only succeeds while more than two slots are free
  - Split evaluation runs the right operand on a worker thread
  - Sequential fallback when capacity is exhausted
  - Operator support and loss of short-circuiting
  - Exceptions from either side propagate after both sides finish
  - Statistics stay exact under concurrent callers
  - The default pool follows the configured worker count
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from purepy import config
from purepy.compiler.nodes import BinaryOp
from purepy.errors import UnsupportedOperatorError
from purepy.runtime.parallel import (
    SPLIT_SLOTS, WorkerPool, default_pool, evaluate_binary, shutdown_default_pool,
)


class TestWorkerPool:
    def test_reserve_needs_more_than_requested(self):
        pool = WorkerPool(workers=3)
        assert pool.try_reserve(2)
        assert pool.available == 1
        assert not pool.try_reserve(2)

    def test_two_workers_never_split(self):
        pool = WorkerPool(workers=2)
        assert not pool.try_reserve(SPLIT_SLOTS)
        assert pool.available == 2

    def test_release(self):
        pool = WorkerPool(workers=4)
        assert pool.try_reserve(2)
        pool.release(2)
        assert pool.available == 4

    def test_submit_and_shutdown(self):
        with WorkerPool(workers=2) as pool:
            future = pool.submit(lambda: 42)
            assert future.result() == 42
            assert pool.stats.tasks_submitted == 1


class TestEvaluateBinary:
    def setup_method(self):
        self.pool = WorkerPool(workers=4)

    def teardown_method(self):
        self.pool.shutdown()

    def test_parallel_add(self):
        result = evaluate_binary(BinaryOp.ADD, lambda: np.uint64(2), lambda: np.uint64(3), self.pool)
        assert result == 5
        assert self.pool.stats.parallel_calls == 1
        assert self.pool.available == 4

    def test_right_side_runs_on_worker(self):
        seen = {}

        def left():
            seen['left'] = threading.current_thread().name
            return np.int32(1)

        def right():
            seen['right'] = threading.current_thread().name
            return np.int32(1)

        evaluate_binary(BinaryOp.ADD, left, right, self.pool)
        assert seen['left'] == threading.current_thread().name
        assert seen['right'].startswith('purepy-worker')

    def test_sequential_when_no_capacity(self):
        pool = WorkerPool(workers=2)
        order = []

        def side(name, value):
            def run():
                order.append(name)
                return np.int32(value)
            return run

        assert evaluate_binary(BinaryOp.SUBTRACT, side('l', 5), side('r', 3), pool) == 2
        assert order == ['l', 'r']
        assert pool.stats.sequential_calls == 1
        assert pool.stats.tasks_submitted == 0

    def test_comparison(self):
        result = evaluate_binary(BinaryOp.LESS_THAN, lambda: np.int32(1), lambda: np.int32(2), self.pool)
        assert result
        assert isinstance(result, np.bool_)

    def test_and_also_evaluates_both_sides(self):
        calls = []

        def left():
            calls.append('left')
            return np.bool_(False)

        def right():
            calls.append('right')
            return np.bool_(True)

        assert not evaluate_binary(BinaryOp.AND_ALSO, left, right, self.pool)
        assert sorted(calls) == ['left', 'right']

    def test_modulo_unsupported(self):
        with pytest.raises(UnsupportedOperatorError):
            evaluate_binary(BinaryOp.MODULO, lambda: np.int32(1), lambda: np.int32(1), self.pool)

    def test_shift_unsupported(self):
        with pytest.raises(UnsupportedOperatorError):
            evaluate_binary(BinaryOp.LEFT_SHIFT, lambda: np.int32(1), lambda: np.int32(1), self.pool)

    def test_left_exception_waits_for_right(self):
        finished = threading.Event()

        def left():
            raise ValueError("left failed")

        def right():
            finished.wait(timeout=0.05)
            finished.set()
            return np.int32(0)

        with pytest.raises(ValueError):
            evaluate_binary(BinaryOp.ADD, left, right, self.pool)
        assert finished.is_set()
        assert self.pool.available == 4

    def test_right_exception_propagates(self):
        def right():
            raise ValueError("right failed")

        with pytest.raises(ValueError):
            evaluate_binary(BinaryOp.ADD, lambda: np.int32(0), right, self.pool)
        assert self.pool.available == 4

    def test_nested_splits_do_not_deadlock(self):
        pool = WorkerPool(workers=4)

        def tree(depth):
            if depth == 0:
                return np.int64(1)
            return evaluate_binary(BinaryOp.ADD, lambda: tree(depth - 1), lambda: tree(depth - 1), pool)

        try:
            assert tree(8) == 256
        finally:
            pool.shutdown()


class TestDefaultPool:
    def test_singleton_and_shutdown(self):
        pool = default_pool()
        assert default_pool() is pool
        shutdown_default_pool()
        assert default_pool() is not pool


class TestConcurrentStats:
    def test_every_evaluation_is_counted_once(self):
        pool = WorkerPool(workers=6)
        evaluations = 600

        def run(i):
            return evaluate_binary(BinaryOp.ADD, lambda: np.int64(i), lambda: np.int64(1), pool)

        try:
            with ThreadPoolExecutor(max_workers=8) as callers:
                results = list(callers.map(run, range(evaluations)))
        finally:
            pool.shutdown()

        assert results == [i + 1 for i in range(evaluations)]
        stats = pool.stats
        assert stats.parallel_calls + stats.sequential_calls == evaluations
        assert stats.tasks_submitted == stats.parallel_calls
        assert pool.available == 6


class TestDefaultPoolSettings:
    def setup_method(self):
        config.reset_settings()
        shutdown_default_pool()

    def teardown_method(self):
        config.reset_settings()
        shutdown_default_pool()

    def test_follows_max_workers(self):
        config.configure(max_workers=3)
        assert default_pool().workers == 3
        config.configure(max_workers=5)
        assert default_pool().workers == 5

    def test_unchanged_setting_keeps_pool(self):
        config.configure(max_workers=3)
        pool = default_pool()
        config.configure(max_workers=3, max_reduction_passes=4)
        assert default_pool() is pool

    def test_reset_settings_restores_size(self):
        config.configure(max_workers=3)
        assert default_pool().workers == 3
        config.reset_settings()
        assert default_pool().workers == config.settings.resolved_workers()
