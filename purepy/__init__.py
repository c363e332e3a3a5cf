"""
PurePy: Recursive Pure Function Builder

Compiles self-referential expression trees into ordinary Python callables,
with optional transparent memoization and fork-join parallel evaluation of
independent recursive calls.

    >>> from purepy import build_recursive
    >>> from purepy.compiler.nodes import *
    >>> from purepy.compiler.types import UINT64, func
    >>> f = parameter('fib', func(UINT64, UINT64))
    >>> n = parameter('n', UINT64)
    >>> one, two = constant(1, UINT64), constant(2, UINT64)
    >>> fib = build_recursive(lambda_([f], lambda_([n], condition(
    ...     le(n, two), one,
    ...     add(invoke(f, subtract(n, one)), invoke(f, subtract(n, two)))))))
    >>> int(fib(50))
    12586269025
"""

__version__ = "1.0.0"

from purepy import config
from purepy.compiler.function_compiler import (
    PureFunction,
    build_constant,
    build_recursive,
    recursive_lambda,
)
from purepy.curry import apply1, apply2, apply3, apply4, apply_curried
from purepy.errors import (
    ArithmeticOverflowError,
    ExpressionTypeError,
    PureError,
    PurityViolationError,
    UnsupportedConstructError,
    UnsupportedOperatorError,
)
from purepy.runtime.memo_cache import MemoCache, default_cache, reset_cache
from purepy.runtime.parallel import WorkerPool, default_pool, shutdown_default_pool

__all__ = [
    'config',
    'PureFunction',
    'build_constant',
    'build_recursive',
    'recursive_lambda',
    'apply1',
    'apply2',
    'apply3',
    'apply4',
    'apply_curried',
    'MemoCache',
    'default_cache',
    'reset_cache',
    'WorkerPool',
    'default_pool',
    'shutdown_default_pool',
    'PureError',
    'ExpressionTypeError',
    'PurityViolationError',
    'UnsupportedConstructError',
    'UnsupportedOperatorError',
    'ArithmeticOverflowError',
]
