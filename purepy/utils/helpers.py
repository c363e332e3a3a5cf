"""Timing and formatting helpers for benchmarks and debug output."""

import time
from typing import Any, Callable, Dict, List


def time_calls(fn: Callable[[], Any], repeat: int = 5,
               before: Callable[[], None] = None) -> Dict[str, Any]:
    """
    Call ``fn`` ``repeat`` times and summarize the timings.

    ``before`` runs ahead of every call outside the timed region, e.g. to
    clear the memo cache so each repetition starts cold.
    """
    times: List[int] = []
    result = None
    for _ in range(repeat):
        if before is not None:
            before()
        start = time.perf_counter_ns()
        result = fn()
        times.append(time.perf_counter_ns() - start)
    times.sort()
    return {
        'result': result,
        'median_ns': times[len(times) // 2],
        'min_ns': times[0],
        'repeat': repeat,
    }


def format_ns(ns: float) -> str:
    """Format nanoseconds into a human-readable string."""
    if ns < 1_000:
        return f"{ns:.0f} ns"
    elif ns < 1_000_000:
        return f"{ns / 1_000:.1f} us"
    elif ns < 1_000_000_000:
        return f"{ns / 1_000_000:.2f} ms"
    else:
        return f"{ns / 1_000_000_000:.3f} s"


def format_speedup(baseline_ns: float, measured_ns: float) -> str:
    if measured_ns <= 0:
        return "inf"
    ratio = baseline_ns / measured_ns
    if ratio >= 1:
        return f"{ratio:.2f}x faster"
    return f"{1 / ratio:.2f}x slower"
