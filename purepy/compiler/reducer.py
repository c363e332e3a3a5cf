"""
Reducer
=======

Normalization passes run on a rewritten tree before lowering. Each pass
applies every rule bottom-up once; passes repeat until one changes nothing
(a fixed point) or ``max_passes`` is reached.

Rules (representation only, never semantics):

1. Identity conversion      (T) x           -> x          when x : T
2. Constant condition       true ? a : b    -> a          when a : node type
3. Single-expression block  { e }           -> e          no variables, e not a label
4. Nested block flattening  { a; { b; c } } -> { a; b; c } inner block has no
                                                           variables or labels
"""

import logging
from collections import defaultdict
from dataclasses import replace
from typing import Callable, Optional, Tuple

from .nodes import (
    Binary, Block, CacheLookup, Conditional, Constant, Expr, Goto, HostCall,
    Invoke, Label, Lambda, Loop, Member, ParallelBinary, Unary, UnaryOp,
)

logger = logging.getLogger(__name__)


def map_children(node: Expr, fn: Callable[[Expr], Expr]) -> Expr:
    """Rebuild ``node`` with ``fn`` applied to each direct child expression."""
    if isinstance(node, Unary):
        return replace(node, operand=fn(node.operand))
    if isinstance(node, (Binary, ParallelBinary)):
        return replace(node, left=fn(node.left), right=fn(node.right))
    if isinstance(node, Conditional):
        return replace(node, test=fn(node.test), if_true=fn(node.if_true),
                       if_false=fn(node.if_false))
    if isinstance(node, Invoke):
        return replace(node, callee=fn(node.callee),
                       arguments=tuple(fn(a) for a in node.arguments))
    if isinstance(node, CacheLookup):
        return replace(node, callee=fn(node.callee), argument=fn(node.argument))
    if isinstance(node, Member):
        return replace(node, obj=fn(node.obj))
    if isinstance(node, HostCall):
        return replace(node, arguments=tuple(fn(a) for a in node.arguments))
    if isinstance(node, Block):
        return replace(node, expressions=tuple(fn(e) for e in node.expressions))
    if isinstance(node, Loop):
        return replace(node, body=fn(node.body))
    if isinstance(node, Label):
        return node if node.default is None else replace(node, default=fn(node.default))
    if isinstance(node, Goto):
        return node if node.value is None else replace(node, value=fn(node.value))
    if isinstance(node, Lambda):
        return replace(node, body=fn(node.body))
    return node


class Reducer:
    """
    Fixed-point driver for the normalization rules.

    Usage:
        >>> reducer = Reducer(max_passes=16)
        >>> reduced = reducer.reduce(tree)
        >>> reducer.stats['passes']
        2
    """

    def __init__(self, max_passes: int = 32):
        self.max_passes = max_passes
        self.stats = defaultdict(int)

    def reduce(self, node: Expr) -> Expr:
        for _ in range(self.max_passes):
            before = self.stats['rewrites']
            node = self._reduce_pass(node)
            self.stats['passes'] += 1
            if self.stats['rewrites'] == before:
                break
        else:
            logger.debug(f"Reduction stopped after {self.max_passes} passes without a fixed point")
        return node

    def _reduce_pass(self, node: Expr) -> Expr:
        node = map_children(node, self._reduce_pass)
        reduced = self._apply_rules(node)
        if reduced is not node:
            self.stats['rewrites'] += 1
        return reduced

    def _apply_rules(self, node: Expr) -> Expr:
        if isinstance(node, Unary):
            return self._identity_conversion(node) or node
        if isinstance(node, Conditional):
            return self._constant_condition(node) or node
        if isinstance(node, Block):
            return self._single_expression(node) or self._flatten(node) or node
        return node

    def _identity_conversion(self, node: Unary) -> Optional[Expr]:
        if node.op in (UnaryOp.CONVERT, UnaryOp.CONVERT_CHECKED) and node.operand.type == node.type:
            self.stats['identity_conversions'] += 1
            return node.operand
        return None

    def _constant_condition(self, node: Conditional) -> Optional[Expr]:
        if not isinstance(node.test, Constant):
            return None
        branch = node.if_true if node.test.value else node.if_false
        if branch.type != node.type:
            return None
        self.stats['constant_conditions'] += 1
        return branch

    def _single_expression(self, node: Block) -> Optional[Expr]:
        if node.variables or len(node.expressions) != 1:
            return None
        only = node.expressions[0]
        if isinstance(only, Label) or only.type != node.type:
            return None
        self.stats['single_blocks'] += 1
        return only

    def _flatten(self, node: Block) -> Optional[Expr]:
        flattened: Tuple[Expr, ...] = ()
        changed = False
        last = len(node.expressions) - 1
        for index, expr in enumerate(node.expressions):
            if (isinstance(expr, Block)
                    and not expr.variables
                    and expr.expressions
                    and not any(isinstance(e, Label) for e in expr.expressions)
                    and (index != last or expr.type == node.type)):
                flattened += expr.expressions
                changed = True
            else:
                flattened += (expr,)
        if not changed:
            return None
        self.stats['flattened_blocks'] += 1
        return replace(node, expressions=flattened)
