"""
Operator Semantics
==================

The single definition of what every unary and binary operator computes on
runtime values. Sequential lowering and the parallel combinator both call
into here, so a parallelized ``a + b`` combines exactly like a plain one.

Values are numpy scalars. Integer arithmetic is carried out on Python ints
and then brought back into the operand's dtype:

    - unchecked variants wrap modulo 2**bits
    - checked variants raise ArithmeticOverflowError when out of range
    - integer division truncates toward zero; the remainder takes the
      sign of the dividend; MIN / -1 raises ArithmeticOverflowError

Floating point follows IEEE semantics (numpy with warnings silenced);
checked and unchecked float operations are identical.
"""

import math
import operator
from typing import Any, Callable, Dict

import numpy as np

from ..compiler.nodes import BinaryOp, UnaryOp
from ..compiler.types import BOOL, VALUE_TYPES, StaticType, ValueType
from ..errors import ArithmeticOverflowError, UnsupportedOperatorError

_VALUE_TYPE_BY_NP = {vt.np_type: vt for vt in VALUE_TYPES}


def value_type_of(value: Any) -> ValueType:
    """Static value type of a runtime numpy scalar."""
    try:
        return _VALUE_TYPE_BY_NP[type(value)]
    except KeyError:
        raise UnsupportedOperatorError(
            f"{type(value).__name__} is not a supported value type"
        ) from None


def _trunc_div(a: int, b: int) -> int:
    if b == 0:
        raise ZeroDivisionError("integer division by zero")
    q = abs(a) // abs(b)
    return -q if (a < 0) != (b < 0) else q


def _trunc_mod(a: int, b: int) -> int:
    return a - b * _trunc_div(a, b)


# op -> (int function, checked?)
_INT_ARITHMETIC: Dict[BinaryOp, tuple] = {
    BinaryOp.ADD: (operator.add, False),
    BinaryOp.ADD_CHECKED: (operator.add, True),
    BinaryOp.SUBTRACT: (operator.sub, False),
    BinaryOp.SUBTRACT_CHECKED: (operator.sub, True),
    BinaryOp.MULTIPLY: (operator.mul, False),
    BinaryOp.MULTIPLY_CHECKED: (operator.mul, True),
    BinaryOp.DIVIDE: (_trunc_div, True),
    BinaryOp.MODULO: (_trunc_mod, False),
}

_FLOAT_ARITHMETIC: Dict[BinaryOp, Callable] = {
    BinaryOp.ADD: operator.add,
    BinaryOp.ADD_CHECKED: operator.add,
    BinaryOp.SUBTRACT: operator.sub,
    BinaryOp.SUBTRACT_CHECKED: operator.sub,
    BinaryOp.MULTIPLY: operator.mul,
    BinaryOp.MULTIPLY_CHECKED: operator.mul,
    BinaryOp.DIVIDE: operator.truediv,
    BinaryOp.MODULO: np.fmod,
}

_BITWISE: Dict[BinaryOp, Callable] = {
    BinaryOp.AND: operator.and_,
    BinaryOp.OR: operator.or_,
    BinaryOp.EXCLUSIVE_OR: operator.xor,
}

_COMPARISONS: Dict[BinaryOp, Callable] = {
    BinaryOp.LESS_THAN: operator.lt,
    BinaryOp.LESS_THAN_OR_EQUAL: operator.le,
    BinaryOp.GREATER_THAN: operator.gt,
    BinaryOp.GREATER_THAN_OR_EQUAL: operator.ge,
    BinaryOp.EQUAL: operator.eq,
    BinaryOp.NOT_EQUAL: operator.ne,
}


def apply_binary(op: BinaryOp, left: Any, right: Any) -> Any:
    """Combine two evaluated operands. Never short-circuits."""
    vt = value_type_of(left)

    if op in _COMPARISONS:
        if vt.is_integer:
            return np.bool_(_COMPARISONS[op](int(left), int(right)))
        return np.bool_(_COMPARISONS[op](left, right))

    if op is BinaryOp.AND_ALSO:
        return np.bool_(bool(left) and bool(right))
    if op is BinaryOp.OR_ELSE:
        return np.bool_(bool(left) or bool(right))

    if op in _BITWISE:
        if vt.is_bool:
            return np.bool_(_BITWISE[op](bool(left), bool(right)))
        if vt.is_integer:
            return vt.np_type(_BITWISE[op](int(left), int(right)))
        raise UnsupportedOperatorError(f"{op.name} is undefined for {vt!r}")

    if op in (BinaryOp.LEFT_SHIFT, BinaryOp.RIGHT_SHIFT):
        return _shift(op, vt, int(left), int(right))

    if vt.is_integer and op in _INT_ARITHMETIC:
        fn, checked = _INT_ARITHMETIC[op]
        result = fn(int(left), int(right))
        return vt.check(result) if checked else vt.wrap(result)

    if vt.is_float and op in _FLOAT_ARITHMETIC:
        with np.errstate(all='ignore'):
            return vt.np_type(_FLOAT_ARITHMETIC[op](left, right))

    raise UnsupportedOperatorError(f"{op.name} is not supported for {vt!r} operands")


def _shift(op: BinaryOp, vt: ValueType, value: int, count: int) -> Any:
    # Narrow types shift as 32-bit, the count is masked to the width.
    width = max(np.dtype(vt.np_type).itemsize * 8, 32)
    count &= width - 1
    if op is BinaryOp.LEFT_SHIFT:
        return vt.wrap(value << count)
    return vt.wrap(value >> count)


def apply_unary(op: UnaryOp, operand: Any, target: StaticType) -> Any:
    """Evaluate a unary operator; ``target`` is the node's static type."""
    if op in (UnaryOp.CONVERT, UnaryOp.CONVERT_CHECKED):
        return convert_value(operand, target, checked=op is UnaryOp.CONVERT_CHECKED)

    vt = value_type_of(operand)
    if op is UnaryOp.NOT:
        if vt.is_bool:
            return np.bool_(not operand)
        return vt.wrap(~int(operand))
    if op in (UnaryOp.NEGATE, UnaryOp.NEGATE_CHECKED):
        if vt.is_float:
            return vt.np_type(-operand)
        result = -int(operand)
        return vt.check(result) if op is UnaryOp.NEGATE_CHECKED else vt.wrap(result)
    raise UnsupportedOperatorError(f"Unary {op.name} is not supported")


def convert_value(value: Any, target: StaticType, checked: bool = False) -> Any:
    """Convert a runtime value to ``target``; non-value targets pass through."""
    if not isinstance(target, ValueType):
        return value
    if isinstance(value, target.np_type):
        return value
    if target == BOOL:
        return np.bool_(bool(value))
    if target.is_float:
        return target.np_type(value)

    source = value_type_of(value)
    if source.is_float:
        as_float = float(value)
        if not math.isfinite(as_float):
            if checked:
                raise ArithmeticOverflowError(f"Cannot convert {as_float} to {target!r}")
            return target.np_type(0)
        as_int = math.trunc(as_float)
    else:
        as_int = int(value)
    return target.check(as_int) if checked else target.wrap(as_int)
