"""
Threadability Analyzer
======================

Structural test deciding whether both operands of a binary node may be
evaluated concurrently.

A binary node is eligible when its operator is one of ``PARALLEL_OPS`` and
each side is one of:

    - another eligible binary node
    - a lambda whose parameters and return type are all value types
    - an invocation whose arguments and result are all value types

Constants, parameters and every other shape make a side ineligible, so
``f(n - 1) + 0`` is never split while ``f(n - 1) + f(n - 2)`` is.

The check is purely structural. Independence of side effects is not
proven here; bodies are assumed pure, which member-access purity checking
enforces at rewrite time.
"""

from ..compiler.nodes import Binary, BinaryOp, Expr, Invoke, Lambda

PARALLEL_OPS = frozenset({
    BinaryOp.ADD, BinaryOp.ADD_CHECKED,
    BinaryOp.SUBTRACT, BinaryOp.SUBTRACT_CHECKED,
    BinaryOp.MULTIPLY, BinaryOp.MULTIPLY_CHECKED,
    BinaryOp.DIVIDE,
    BinaryOp.AND, BinaryOp.OR, BinaryOp.EXCLUSIVE_OR,
    BinaryOp.AND_ALSO, BinaryOp.OR_ELSE,
    BinaryOp.LESS_THAN, BinaryOp.LESS_THAN_OR_EQUAL,
    BinaryOp.GREATER_THAN, BinaryOp.GREATER_THAN_OR_EQUAL,
    BinaryOp.EQUAL, BinaryOp.NOT_EQUAL,
})


def can_lambda_be_threaded(node: Lambda) -> bool:
    return (all(p.type.is_value for p in node.parameters)
            and node.type.result.is_value)


def can_invoke_be_threaded(node: Invoke) -> bool:
    return all(a.type.is_value for a in node.arguments) and node.type.is_value


def _side_is_threadable(side: Expr) -> bool:
    if isinstance(side, Binary):
        return can_binary_be_threaded(side)
    if isinstance(side, Lambda):
        return can_lambda_be_threaded(side)
    if isinstance(side, Invoke):
        return can_invoke_be_threaded(side)
    return False


def can_binary_be_threaded(node: Binary) -> bool:
    """Whether both sides of ``node`` are structurally safe to run concurrently."""
    if node.op not in PARALLEL_OPS:
        return False
    return _side_is_threadable(node.left) and _side_is_threadable(node.right)
