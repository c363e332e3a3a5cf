"""
Expression Rewriter
===================

Recursive tree transform that turns the body of an anonymous
``(self) => (x) => body`` definition into a genuinely recursive,
optionally memoized and parallelized function body.

Rewrites, applied to every subtree:

1. Self-reference substitution - the placeholder parameter is replaced by
   the bound variable that will hold the compiled function.
2. Memoization - with caching on, every single-argument invocation
   ``f(a)`` becomes ``CacheLookup(f', a')``.
3. Parallel split - with threading on, a binary node whose operands are
   both invocations, which the threadability analyzer accepts, and whose
   rewritten operands are still invocation-shaped becomes
   ``ParallelBinary(op, f'(a'), g'(b'))``. Only that literal
   two-invocation pattern is split; deeper eligible chains are handled at
   the nodes where the pattern occurs.
4. Purity checking - member reads on reference-typed objects are rejected
   unless the member is a PureFunction.

Everything else is rebuilt with the same shape and static type.
"""

from collections import defaultdict
from dataclasses import replace
from typing import Any, Optional

from ..analysis.purity import check_member_access
from ..analysis.threadability import can_binary_be_threaded
from ..config import settings
from ..errors import UnsupportedConstructError
from .nodes import (
    INVOCATION_NODES, Binary, Block, CacheLookup, Conditional, Constant, Expr,
    Goto, HostCall, Invoke, Label, Lambda, Loop, Member, ParallelBinary,
    Parameter, Unary,
)


class ExpressionRewriter:
    """
    Rewrites an expression tree for recursion, memoization and parallelism.

    Usage:
        >>> rewriter = ExpressionRewriter(self_param, self_var, caching=True, cache=cache)
        >>> new_body = rewriter.rewrite(body)
        >>> rewriter.stats['cached_invocations']
        2
    """

    def __init__(
        self,
        placeholder: Expr,
        replacement: Expr,
        *,
        caching: bool = False,
        threading: bool = False,
        purity: bool = False,
        cache: Any = None,
        pool: Any = None,
        allow_impure: Optional[bool] = None,
    ):
        self.placeholder = placeholder
        self.replacement = replacement
        self.caching = caching
        self.threading = threading
        self.purity = purity
        self.cache = cache
        self.pool = pool
        if allow_impure is None:
            allow_impure = settings.allow_impure_without_caching
        self.allow_impure = allow_impure
        self.stats = defaultdict(int)

    def rewrite(self, node: Expr) -> Expr:
        return self.visit(node)

    def visit(self, node: Expr) -> Expr:
        if node == self.placeholder:
            self.stats['substitutions'] += 1
            return self.replacement
        method = getattr(self, f'visit_{type(node).__name__}', None)
        if method is None:
            raise UnsupportedConstructError(
                f"Cannot rewrite expression of type {type(node).__name__}"
            )
        return method(node)

    def _visit_all(self, nodes):
        return tuple(self.visit(n) for n in nodes)

    def _visit_optional(self, node: Optional[Expr]) -> Optional[Expr]:
        return None if node is None else self.visit(node)

    # ---- Leaves ----

    def visit_Constant(self, node: Constant) -> Expr:
        return node

    def visit_Parameter(self, node: Parameter) -> Expr:
        return node

    # ---- Invocation: memoization ----

    def visit_Invoke(self, node: Invoke) -> Expr:
        if self.caching and len(node.arguments) == 1:
            self.stats['cached_invocations'] += 1
            return CacheLookup(
                self.visit(node.callee),
                self.visit(node.arguments[0]),
                node.type,
                self.cache,
            )
        return replace(
            node,
            callee=self.visit(node.callee),
            arguments=self._visit_all(node.arguments),
        )

    # ---- Binary: parallel split ----

    def visit_Binary(self, node: Binary) -> Expr:
        if (self.threading
                and isinstance(node.left, Invoke)
                and isinstance(node.right, Invoke)
                and can_binary_be_threaded(node)):
            left = self.visit(node.left)
            right = self.visit(node.right)
            if isinstance(left, INVOCATION_NODES) and isinstance(right, INVOCATION_NODES):
                self.stats['parallel_binaries'] += 1
                return ParallelBinary(node.op, left, right, node.type, self.pool)
            return replace(node, left=left, right=right)
        return replace(node, left=self.visit(node.left), right=self.visit(node.right))

    # ---- Member access: purity ----

    def visit_Member(self, node: Member) -> Expr:
        if self.purity:
            check_member_access(node, caching=self.caching, allow_impure=self.allow_impure)
        return replace(node, obj=self.visit(node.obj))

    # ---- Structural recursion ----

    def visit_Unary(self, node: Unary) -> Expr:
        return replace(node, operand=self.visit(node.operand))

    def visit_Conditional(self, node: Conditional) -> Expr:
        return replace(
            node,
            test=self.visit(node.test),
            if_true=self.visit(node.if_true),
            if_false=self.visit(node.if_false),
        )

    def visit_HostCall(self, node: HostCall) -> Expr:
        return replace(node, arguments=self._visit_all(node.arguments))

    def visit_Block(self, node: Block) -> Expr:
        return replace(node, expressions=self._visit_all(node.expressions))

    def visit_Loop(self, node: Loop) -> Expr:
        return replace(node, body=self.visit(node.body))

    def visit_Label(self, node: Label) -> Expr:
        return replace(node, default=self._visit_optional(node.default))

    def visit_Goto(self, node: Goto) -> Expr:
        return replace(node, value=self._visit_optional(node.value))

    def visit_Lambda(self, node: Lambda) -> Expr:
        return replace(
            node,
            parameters=self._visit_all(node.parameters),
            body=self.visit(node.body),
        )


def rewrite(node: Expr, placeholder: Expr, replacement: Expr, **options) -> Expr:
    """Convenience wrapper around ``ExpressionRewriter(...).rewrite(node)``."""
    return ExpressionRewriter(placeholder, replacement, **options).rewrite(node)
