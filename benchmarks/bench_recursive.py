"""
PurePy Recursive Benchmark
==========================

Times Fibonacci computed five ways:

    1. plain Python recursion
    2. recursive_lambda (no caching, no threading)
    3. build_recursive with threading only
    4. build_recursive with caching only
    5. build_recursive with caching and threading

The threaded variants only split calls for ``n`` above a cutoff; below it
each call is written as ``(fib(n-1) + 0) + (fib(n-2) + 0)``, which the
threadability analyzer rejects, so small subproblems stay on the calling
thread.

Usage:
    python -m benchmarks.bench_recursive [n] [--verbose]
"""

import sys
from pathlib import Path

from tabulate import tabulate

sys.path.insert(0, str(Path(__file__).parent.parent))

from purepy import build_recursive, config, recursive_lambda, reset_cache
from purepy.compiler.nodes import (
    add, condition, constant, invoke, lambda_, le, parameter, subtract,
)
from purepy.compiler.types import UINT64, curried, func
from purepy.utils.helpers import format_ns, format_speedup, time_calls

FIB_TO = 25
SPLIT_ABOVE = 20
REPEAT = 3


def fibonacci(n):
    return 1 if n <= 2 else fibonacci(n - 1) + fibonacci(n - 2)


def fib_definition(split_above=None):
    """(self) => (n) => n <= 2 ? 1 : self(n - 1) + self(n - 2)"""
    f = parameter('fib', func(UINT64, UINT64))
    n = parameter('n', UINT64)
    one, two, zero = constant(1, UINT64), constant(2, UINT64), constant(0, UINT64)
    split = add(invoke(f, subtract(n, one)), invoke(f, subtract(n, two)))
    if split_above is None:
        recurse = split
    else:
        unsplit = add(add(invoke(f, subtract(n, one)), zero),
                      add(invoke(f, subtract(n, two)), zero))
        recurse = condition(le(n, constant(split_above, UINT64)), unsplit, split)
    return lambda_([f], lambda_([n], condition(le(n, two), one, recurse)))


def curried_fib_definition(split_above):
    """(self) => (x) => (n) => n <= 2 ? x : self(x)(n - 1) + self(x)(n - 2)"""
    f = parameter('weird_fib', curried(UINT64, UINT64, UINT64))
    x = parameter('x', UINT64)
    n = parameter('n', UINT64)
    one, two, zero = constant(1, UINT64), constant(2, UINT64), constant(0, UINT64)

    def call(arg):
        return invoke(invoke(f, x), arg)

    split = add(call(subtract(n, one)), call(subtract(n, two)))
    unsplit = add(add(call(subtract(n, one)), zero), add(call(subtract(n, two)), zero))
    body = condition(
        le(n, two), x,
        condition(le(n, constant(split_above, UINT64)), unsplit, split),
    )
    return lambda_([f], lambda_([x], lambda_([n], body)))


def run(n: int = FIB_TO):
    variants = [
        ('plain Python', fibonacci),
        ('recursive_lambda', recursive_lambda(fib_definition())),
        ('threading only', build_recursive(fib_definition(SPLIT_ABOVE), caching=False, threading=True)),
        ('caching only', build_recursive(fib_definition(), caching=True, threading=False)),
        ('caching + threading', build_recursive(fib_definition(SPLIT_ABOVE))),
    ]

    rows = []
    baseline_ns = None
    for name, fn in variants:
        arg = n if fn is fibonacci else UINT64.coerce(n)
        timing = time_calls(lambda: fn(arg), repeat=REPEAT, before=reset_cache)
        if baseline_ns is None:
            baseline_ns = timing['median_ns']
        rows.append([
            name,
            int(timing['result']),
            format_ns(timing['median_ns']),
            format_speedup(baseline_ns, timing['median_ns']),
        ])

    print(f"\nFibonacci({n})")
    print(tabulate(rows, headers=['Variant', 'Result', 'Median', 'vs plain'], tablefmt='simple'))

    weird_fib = build_recursive(curried_fib_definition(SPLIT_ABOVE))
    reset_cache()
    print(f"\nCurried fib seeded with 1, n={n}: {int(weird_fib.fi(1, n))}")
    return rows


def main():
    args = [a for a in sys.argv[1:] if not a.startswith('--')]
    if '--verbose' in sys.argv:
        config.configure(enable_logging=True)
    run(int(args[0]) if args else FIB_TO)


if __name__ == '__main__':
    main()
