"""
Parallel Binary Evaluator
=========================

Fork-join evaluation of the two operands of a binary operation over a
bounded thread pool.

The pool hands out *slots* with a non-blocking ``try_reserve``. A split
needs two slots and only goes ahead while more than two are free; the
right operand is submitted to the pool, the left one runs on the calling
thread, then the right one is joined. Without capacity both operands run
sequentially on the calling thread (left, then right), so deep recursion
degrades to plain evaluation instead of exhausting the pool.

Because at most ``workers / 2`` splits hold slots at any moment, a
submitted task always finds an idle thread and joins cannot starve.

Evaluation order between the two sides of a split is unspecified, and
``AND_ALSO`` / ``OR_ELSE`` lose short-circuiting: both sides have already
run by the time they are combined.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..analysis.threadability import PARALLEL_OPS
from ..compiler.nodes import BinaryOp
from ..config import settings
from ..errors import UnsupportedOperatorError
from .operators import apply_binary

logger = logging.getLogger(__name__)

SPLIT_SLOTS = 2


@dataclass
class ParallelStats:
    """Statistics for parallel binary evaluation."""
    parallel_calls: int = 0
    sequential_calls: int = 0
    tasks_submitted: int = 0


class WorkerPool:
    """
    Bounded worker pool with slot reservation.

    Usage:
        >>> pool = WorkerPool(workers=8)
        >>> if pool.try_reserve(2):
        ...     try:
        ...         future = pool.submit(right)
        ...         ...
        ...     finally:
        ...         pool.release(2)
    """

    def __init__(self, workers: Optional[int] = None):
        self.workers = workers or settings.resolved_workers()
        self.stats = ParallelStats()
        self._available = self.workers
        self._lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def available(self) -> int:
        return self._available

    def try_reserve(self, slots: int = SPLIT_SLOTS) -> bool:
        """Reserve ``slots`` if more than that many are free; never blocks."""
        with self._lock:
            if self._available > slots:
                self._available -= slots
                return True
            return False

    def release(self, slots: int = SPLIT_SLOTS):
        with self._lock:
            self._available += slots

    def count(self, name: str):
        """Increment the ``stats`` counter ``name``."""
        with self._lock:
            setattr(self.stats, name, getattr(self.stats, name) + 1)

    def submit(self, fn: Callable[[], Any]):
        if self._executor is None:
            with self._lock:
                if self._executor is None:
                    self._executor = ThreadPoolExecutor(
                        max_workers=self.workers,
                        thread_name_prefix='purepy-worker',
                    )
        self.count('tasks_submitted')
        return self._executor.submit(fn)

    def shutdown(self):
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.shutdown()


def evaluate_binary(op: BinaryOp, left: Callable[[], Any], right: Callable[[], Any],
                    pool: Optional[WorkerPool] = None) -> Any:
    """Evaluate ``left`` and ``right`` (concurrently when capacity allows) and combine."""
    if op not in PARALLEL_OPS:
        raise UnsupportedOperatorError(f"{op.name} is not supported when running in parallel")
    if pool is None:
        pool = default_pool()

    if pool.try_reserve(SPLIT_SLOTS):
        pool.count('parallel_calls')
        try:
            future = pool.submit(right)
            try:
                left_value = left()
            finally:
                wait([future])
            right_value = future.result()
        finally:
            pool.release(SPLIT_SLOTS)
    else:
        pool.count('sequential_calls')
        left_value = left()
        right_value = right()

    return apply_binary(op, left_value, right_value)


_default_pool: Optional[WorkerPool] = None
_default_lock = threading.Lock()


def default_pool() -> WorkerPool:
    """The process-wide pool, sized from ``settings.max_workers``."""
    global _default_pool
    if _default_pool is None:
        with _default_lock:
            if _default_pool is None:
                _default_pool = WorkerPool()
                logger.debug(f"Created default worker pool with {_default_pool.workers} workers")
    return _default_pool


def shutdown_default_pool():
    """Stop the process-wide pool; the next use creates a fresh one."""
    global _default_pool
    with _default_lock:
        pool, _default_pool = _default_pool, None
    if pool is not None:
        pool.shutdown()
