"""
Function Compiler
=================

Top-level entry points that turn a self-referential definition into a
callable.

A definition is a curried lambda whose first parameter stands for the
function being defined:

    (self) => (n) => n <= 2 ? 1 : self(n - 1) + self(n - 2)

``build_recursive`` binds a fresh variable ``self'`` of the same function
type, rewrites the inner lambda so every ``self`` becomes ``self'``, and
assembles

    { var self'; self' = rewrite((n) => ...); (n) => self'(n) }

That block is reduced to a fixed point, lowered to closures and evaluated
once, so ``self'`` is bound exactly once per compiled function and its
identity is a stable memoization key for every later call.
"""

import logging
import sys
from typing import Callable, Optional

from ..config import settings
from ..curry import apply_curried
from ..errors import ExpressionTypeError
from ..runtime.memo_cache import MemoCache, default_cache
from ..runtime.parallel import WorkerPool
from .lowering import Lowering
from .nodes import Expr, Lambda, Parameter, assign, block, format_expr, invoke, lambda_
from .reducer import Reducer
from .rewriter import ExpressionRewriter
from .types import FunctionType, PureFunctionType, ValueType

logger = logging.getLogger(__name__)


def _ensure_recursion_limit():
    """Raise the interpreter recursion limit to ``settings.recursion_limit``; never lower it."""
    limit = settings.recursion_limit
    if limit and sys.getrecursionlimit() < limit:
        sys.setrecursionlimit(limit)
        logger.debug(f"Raised recursion limit to {limit}")


class PureFunction:
    """
    Callable wrapper around a compiled pure function.

    Arguments are coerced to the declared parameter types on the way in;
    a curried result is wrapped again so the next application is coerced
    as well.

    Usage:
        >>> fib = build_recursive(definition)
        >>> fib(10)
        55
        >>> add.fi(300, 43)
        343
    """

    def __init__(
        self,
        fn: Callable,
        expression_type: PureFunctionType,
        *,
        name: str = '<pure>',
        expression: Optional[Expr] = None,
        caching: bool = False,
        threading: bool = False,
    ):
        self._fn = fn
        self.expression_type = expression_type
        self.name = name
        self.expression = expression
        self.caching = caching
        self.threading = threading

    def __call__(self, *args):
        params = self.expression_type.params
        if len(args) != len(params):
            raise TypeError(f"{self.name} expects {len(params)} argument(s), got {len(args)}")
        coerced = [
            ptype.coerce(arg) if isinstance(ptype, ValueType) else arg
            for ptype, arg in zip(params, args)
        ]
        _ensure_recursion_limit()
        result = self._fn(*coerced)
        rtype = self.expression_type.result
        if isinstance(rtype, FunctionType) and callable(result):
            return PureFunction(
                result, PureFunctionType(rtype.params, rtype.result),
                name=self.name, caching=self.caching, threading=self.threading,
            )
        return result

    def fi(self, *args):
        """Apply this curried function to ``args`` one at a time."""
        return apply_curried(self, *args)

    def __repr__(self):
        return f"<PureFunction {self.name}: {self.expression_type!r}>"


def _split_definition(definition: Expr):
    if not isinstance(definition, Lambda) or len(definition.parameters) != 1:
        raise ExpressionTypeError("A definition must be a lambda of exactly one self parameter")
    placeholder = definition.parameters[0]
    inner = definition.body
    if not isinstance(inner, Lambda) or len(inner.parameters) != 1:
        raise ExpressionTypeError("A definition must have the form (self) => (x) => body")
    if not isinstance(placeholder.type, FunctionType) or placeholder.type != inner.type:
        raise ExpressionTypeError(
            f"Self parameter type {placeholder.type!r} does not match the function {inner.type!r}"
        )
    return placeholder, inner


def _assemble(
    definition: Expr,
    *,
    caching: bool,
    threading: bool,
    purity: bool,
    cache: Optional[MemoCache],
    pool: Optional[WorkerPool],
):
    placeholder, inner = _split_definition(definition)
    self_var = Parameter(placeholder.name, placeholder.type)

    rewriter = ExpressionRewriter(
        placeholder, self_var,
        caching=caching, threading=threading, purity=purity,
        cache=cache, pool=pool,
    )
    body = rewriter.rewrite(inner)
    param = inner.parameters[0]
    call = rewriter.rewrite(invoke(self_var, param))

    tree = block(assign(self_var, body), lambda_([param], call), variables=[self_var])

    reducer = Reducer(max_passes=settings.max_reduction_passes)
    tree = reducer.reduce(tree)

    compiled = Lowering(cache=cache, pool=pool).evaluate(tree)
    logger.debug(
        f"Compiled {placeholder.name}: caching={caching} threading={threading} "
        f"rewrites={dict(rewriter.stats)} reduction={dict(reducer.stats)}"
    )
    logger.debug(f"  {format_expr(tree)}")
    return compiled, tree, inner


def build_recursive(
    definition: Expr,
    caching: bool = True,
    threading: bool = True,
    *,
    cache: Optional[MemoCache] = None,
    pool: Optional[WorkerPool] = None,
) -> PureFunction:
    """
    Compile a ``(self) => (x) => body`` definition into a PureFunction.

    Args:
        definition: Lambda whose single parameter is the self-reference.
        caching:    Memoize every single-argument invocation.
        threading:  Split eligible two-invocation binary nodes across the pool.
        cache:      Memo cache to use (default: the process-wide cache).
        pool:       Worker pool to use (default: the process-wide pool).
    """
    if caching and cache is None:
        cache = default_cache()
    compiled, tree, inner = _assemble(
        definition, caching=caching, threading=threading, purity=True,
        cache=cache, pool=pool,
    )
    return PureFunction(
        compiled,
        PureFunctionType(inner.type.params, inner.type.result),
        name=definition.parameters[0].name,
        expression=tree,
        caching=caching,
        threading=threading,
    )


def recursive_lambda(definition: Expr) -> Callable:
    """Plain recursive closure: no memoization, no parallelism, no purity checks."""
    compiled, _, _ = _assemble(
        definition, caching=False, threading=False, purity=False,
        cache=None, pool=None,
    )
    return compiled


def build_constant(value_expr: Expr) -> PureFunction:
    """Evaluate a closed expression once; return a zero-argument PureFunction yielding it."""
    value = Lowering().evaluate(value_expr)
    return PureFunction(
        lambda: value,
        PureFunctionType((), value_expr.type),
        name='constant',
        expression=value_expr,
    )
