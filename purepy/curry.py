"""Application helpers for curried functions."""

from typing import Any, Callable


def apply_curried(f: Callable, *args: Any) -> Any:
    """Apply ``f`` to each argument in turn: ``f(a)(b)(c)``."""
    result = f
    for arg in args:
        result = result(arg)
    return result


def apply1(f: Callable, a: Any) -> Any:
    return f(a)


def apply2(f: Callable, a: Any, b: Any) -> Any:
    return f(a)(b)


def apply3(f: Callable, a: Any, b: Any, c: Any) -> Any:
    return f(a)(b)(c)


def apply4(f: Callable, a: Any, b: Any, c: Any, d: Any) -> Any:
    return f(a)(b)(c)(d)
