"""
Expression Nodes
================

Immutable expression trees describing the body of a pure function.

Every node is a frozen dataclass carrying its static ``type``; rewriting
builds new nodes (usually via ``dataclasses.replace``) so the type of a
rewritten subtree always matches the position it replaces.

Nodes compare structurally, except ``Parameter`` and ``LabelTarget``, which
carry a unique id so that two variables named ``n`` stay distinct.

The lowercase builder functions at the bottom validate operand types the
way an expression factory would, and infer each node's result type:

    >>> n = parameter('n', UINT64)
    >>> le(n, constant(2, UINT64)).type
    bool
"""

import itertools
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Optional, Tuple

import numpy as np

from ..errors import ExpressionTypeError
from .types import (
    BOOL, FLOAT64, INT64, OBJECT, VALUE_TYPES, VOID,
    FunctionType, PureFunctionType, ReferenceType, StaticType, ValueType,
    assignable,
)

_ids = itertools.count(1)


def _next_id() -> int:
    return next(_ids)


class UnaryOp(Enum):
    NEGATE = auto()
    NEGATE_CHECKED = auto()
    NOT = auto()
    CONVERT = auto()
    CONVERT_CHECKED = auto()


class BinaryOp(Enum):
    ADD = auto()
    ADD_CHECKED = auto()
    SUBTRACT = auto()
    SUBTRACT_CHECKED = auto()
    MULTIPLY = auto()
    MULTIPLY_CHECKED = auto()
    DIVIDE = auto()
    MODULO = auto()
    AND = auto()
    OR = auto()
    EXCLUSIVE_OR = auto()
    AND_ALSO = auto()
    OR_ELSE = auto()
    LESS_THAN = auto()
    LESS_THAN_OR_EQUAL = auto()
    GREATER_THAN = auto()
    GREATER_THAN_OR_EQUAL = auto()
    EQUAL = auto()
    NOT_EQUAL = auto()
    LEFT_SHIFT = auto()
    RIGHT_SHIFT = auto()
    ASSIGN = auto()


ARITHMETIC_OPS = frozenset({
    BinaryOp.ADD, BinaryOp.ADD_CHECKED,
    BinaryOp.SUBTRACT, BinaryOp.SUBTRACT_CHECKED,
    BinaryOp.MULTIPLY, BinaryOp.MULTIPLY_CHECKED,
    BinaryOp.DIVIDE, BinaryOp.MODULO,
})

BITWISE_OPS = frozenset({
    BinaryOp.AND, BinaryOp.OR, BinaryOp.EXCLUSIVE_OR,
})

SHORT_CIRCUIT_OPS = frozenset({BinaryOp.AND_ALSO, BinaryOp.OR_ELSE})

SHIFT_OPS = frozenset({BinaryOp.LEFT_SHIFT, BinaryOp.RIGHT_SHIFT})

COMPARISON_OPS = frozenset({
    BinaryOp.LESS_THAN, BinaryOp.LESS_THAN_OR_EQUAL,
    BinaryOp.GREATER_THAN, BinaryOp.GREATER_THAN_OR_EQUAL,
    BinaryOp.EQUAL, BinaryOp.NOT_EQUAL,
})


class GotoKind(Enum):
    GOTO = auto()
    BREAK = auto()
    CONTINUE = auto()
    RETURN = auto()


# ═══════════════════════════════════════════════════════════════════════════
# Node classes
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Expr:
    """Base class of all expression nodes."""

    @property
    def children(self) -> Tuple['Expr', ...]:
        return ()


@dataclass(frozen=True)
class Constant(Expr):
    value: Any
    type: StaticType


@dataclass(frozen=True)
class Parameter(Expr):
    name: str
    type: StaticType
    uid: int = field(default_factory=_next_id)

    def __repr__(self):
        return f"Parameter({self.name}#{self.uid}: {self.type!r})"


@dataclass(frozen=True)
class Unary(Expr):
    op: UnaryOp
    operand: Expr
    type: StaticType

    @property
    def children(self):
        return (self.operand,)


@dataclass(frozen=True)
class Binary(Expr):
    op: BinaryOp
    left: Expr
    right: Expr
    type: StaticType

    @property
    def children(self):
        return (self.left, self.right)


@dataclass(frozen=True)
class Conditional(Expr):
    test: Expr
    if_true: Expr
    if_false: Expr
    type: StaticType

    @property
    def children(self):
        return (self.test, self.if_true, self.if_false)


@dataclass(frozen=True)
class Invoke(Expr):
    callee: Expr
    arguments: Tuple[Expr, ...]
    type: StaticType

    @property
    def children(self):
        return (self.callee,) + self.arguments


@dataclass(frozen=True)
class Member(Expr):
    obj: Expr
    name: str
    type: StaticType

    @property
    def children(self):
        return (self.obj,)


@dataclass(frozen=True)
class HostCall(Expr):
    """Call of an ordinary Python callable with evaluated arguments."""
    function: Callable
    arguments: Tuple[Expr, ...]
    type: StaticType

    @property
    def children(self):
        return self.arguments


@dataclass(frozen=True)
class Block(Expr):
    variables: Tuple[Parameter, ...]
    expressions: Tuple[Expr, ...]
    type: StaticType

    @property
    def children(self):
        return self.expressions


@dataclass(frozen=True)
class LabelTarget:
    name: str
    type: StaticType = VOID
    uid: int = field(default_factory=_next_id)


@dataclass(frozen=True)
class Label(Expr):
    target: LabelTarget
    default: Optional[Expr]
    type: StaticType

    @property
    def children(self):
        return () if self.default is None else (self.default,)


@dataclass(frozen=True)
class Goto(Expr):
    kind: GotoKind
    target: LabelTarget
    value: Optional[Expr]
    type: StaticType = VOID

    @property
    def children(self):
        return () if self.value is None else (self.value,)


@dataclass(frozen=True)
class Loop(Expr):
    body: Expr
    break_label: Optional[LabelTarget]
    continue_label: Optional[LabelTarget]
    type: StaticType

    @property
    def children(self):
        return (self.body,)


@dataclass(frozen=True)
class Lambda(Expr):
    parameters: Tuple[Parameter, ...]
    body: Expr
    type: FunctionType

    @property
    def children(self):
        return (self.body,)


@dataclass(frozen=True)
class CacheLookup(Expr):
    """``callee(argument)`` answered from a memo cache when possible."""
    callee: Expr
    argument: Expr
    type: StaticType
    cache: Any = field(default=None, compare=False, repr=False)

    @property
    def children(self):
        return (self.callee, self.argument)


@dataclass(frozen=True)
class ParallelBinary(Expr):
    """Binary operation whose two invocation operands may run concurrently."""
    op: BinaryOp
    left: Expr
    right: Expr
    type: StaticType
    pool: Any = field(default=None, compare=False, repr=False)

    @property
    def children(self):
        return (self.left, self.right)


INVOCATION_NODES = (Invoke, CacheLookup)


# ═══════════════════════════════════════════════════════════════════════════
# Builders
# ═══════════════════════════════════════════════════════════════════════════

_NP_TO_VALUE_TYPE = {vt.np_type: vt for vt in VALUE_TYPES}


def _infer_type(value: Any) -> StaticType:
    if isinstance(value, (bool, np.bool_)):
        return BOOL
    if type(value) in _NP_TO_VALUE_TYPE:
        return _NP_TO_VALUE_TYPE[type(value)]
    if isinstance(value, int):
        return INT64
    if isinstance(value, float):
        return FLOAT64
    expr_type = getattr(value, 'expression_type', None)
    if isinstance(expr_type, PureFunctionType):
        return expr_type
    return ReferenceType(type(value).__name__)


def constant(value: Any, type: Optional[StaticType] = None) -> Constant:
    if type is None:
        type = _infer_type(value)
    if isinstance(type, ValueType):
        value = type.coerce(value)
    return Constant(value, type)


def parameter(name: str, type: StaticType) -> Parameter:
    return Parameter(name, type)


variable = parameter


def _require_value(expr: Expr, what: str) -> ValueType:
    if not isinstance(expr.type, ValueType):
        raise ExpressionTypeError(f"{what} needs a value-typed operand, got {expr.type!r}")
    return expr.type


def make_unary(op: UnaryOp, operand: Expr, type: Optional[StaticType] = None) -> Unary:
    if op in (UnaryOp.CONVERT, UnaryOp.CONVERT_CHECKED):
        if type is None:
            raise ExpressionTypeError("Conversion needs a target type")
        if isinstance(type, ValueType):
            _require_value(operand, op.name)
        return Unary(op, operand, type)
    vt = _require_value(operand, op.name)
    if op is UnaryOp.NOT and vt.is_float:
        raise ExpressionTypeError("NOT is undefined for floating point operands")
    if op in (UnaryOp.NEGATE, UnaryOp.NEGATE_CHECKED) and vt.is_bool:
        raise ExpressionTypeError("Cannot negate a boolean")
    return Unary(op, operand, vt)


def make_binary(op: BinaryOp, left: Expr, right: Expr) -> Binary:
    if op is BinaryOp.ASSIGN:
        if not isinstance(left, Parameter):
            raise ExpressionTypeError("Assignment target must be a variable")
        if not assignable(left.type, right.type):
            raise ExpressionTypeError(f"Cannot assign {right.type!r} to {left.type!r}")
        return Binary(op, left, right, left.type)

    lt = _require_value(left, op.name)
    rt = _require_value(right, op.name)
    if op in SHIFT_OPS:
        if not (lt.is_integer and rt.is_integer):
            raise ExpressionTypeError(f"{op.name} needs integer operands")
        return Binary(op, left, right, lt)
    if lt != rt:
        raise ExpressionTypeError(f"{op.name} operands differ: {lt!r} vs {rt!r}")
    if op in COMPARISON_OPS:
        return Binary(op, left, right, BOOL)
    if op in SHORT_CIRCUIT_OPS:
        if not lt.is_bool:
            raise ExpressionTypeError(f"{op.name} needs boolean operands")
        return Binary(op, left, right, BOOL)
    if op in BITWISE_OPS:
        if lt.is_float:
            raise ExpressionTypeError(f"{op.name} is undefined for floating point operands")
        return Binary(op, left, right, lt)
    if lt.is_bool:
        raise ExpressionTypeError(f"{op.name} is undefined for boolean operands")
    return Binary(op, left, right, lt)


def _binary_builder(op: BinaryOp):
    def build(left: Expr, right: Expr) -> Binary:
        return make_binary(op, left, right)
    build.__name__ = op.name.lower()
    build.__doc__ = f"Build a {op.name} node."
    return build


add = _binary_builder(BinaryOp.ADD)
add_checked = _binary_builder(BinaryOp.ADD_CHECKED)
subtract = _binary_builder(BinaryOp.SUBTRACT)
subtract_checked = _binary_builder(BinaryOp.SUBTRACT_CHECKED)
multiply = _binary_builder(BinaryOp.MULTIPLY)
multiply_checked = _binary_builder(BinaryOp.MULTIPLY_CHECKED)
divide = _binary_builder(BinaryOp.DIVIDE)
modulo = _binary_builder(BinaryOp.MODULO)
and_ = _binary_builder(BinaryOp.AND)
or_ = _binary_builder(BinaryOp.OR)
xor = _binary_builder(BinaryOp.EXCLUSIVE_OR)
and_also = _binary_builder(BinaryOp.AND_ALSO)
or_else = _binary_builder(BinaryOp.OR_ELSE)
lt = _binary_builder(BinaryOp.LESS_THAN)
le = _binary_builder(BinaryOp.LESS_THAN_OR_EQUAL)
gt = _binary_builder(BinaryOp.GREATER_THAN)
ge = _binary_builder(BinaryOp.GREATER_THAN_OR_EQUAL)
eq = _binary_builder(BinaryOp.EQUAL)
ne = _binary_builder(BinaryOp.NOT_EQUAL)
left_shift = _binary_builder(BinaryOp.LEFT_SHIFT)
right_shift = _binary_builder(BinaryOp.RIGHT_SHIFT)
assign = _binary_builder(BinaryOp.ASSIGN)


def negate(operand: Expr) -> Unary:
    return make_unary(UnaryOp.NEGATE, operand)


def negate_checked(operand: Expr) -> Unary:
    return make_unary(UnaryOp.NEGATE_CHECKED, operand)


def not_(operand: Expr) -> Unary:
    return make_unary(UnaryOp.NOT, operand)


def convert(operand: Expr, type: StaticType) -> Unary:
    return make_unary(UnaryOp.CONVERT, operand, type)


def convert_checked(operand: Expr, type: StaticType) -> Unary:
    return make_unary(UnaryOp.CONVERT_CHECKED, operand, type)


def condition(test: Expr, if_true: Expr, if_false: Expr,
              type: Optional[StaticType] = None) -> Conditional:
    if test.type != BOOL:
        raise ExpressionTypeError(f"Condition test must be bool, got {test.type!r}")
    if type is None:
        if if_true.type != if_false.type:
            raise ExpressionTypeError(
                f"Branches differ: {if_true.type!r} vs {if_false.type!r}"
            )
        type = if_true.type
    elif type != VOID and not (assignable(type, if_true.type) and assignable(type, if_false.type)):
        raise ExpressionTypeError(f"Branches are not assignable to {type!r}")
    return Conditional(test, if_true, if_false, type)


def invoke(callee: Expr, *arguments: Expr) -> Invoke:
    ftype = callee.type
    if not isinstance(ftype, (FunctionType, PureFunctionType)):
        raise ExpressionTypeError(f"Cannot invoke a value of type {ftype!r}")
    if len(arguments) != len(ftype.params):
        raise ExpressionTypeError(
            f"Expected {len(ftype.params)} argument(s), got {len(arguments)}"
        )
    for expected, arg in zip(ftype.params, arguments):
        if not assignable(expected, arg.type):
            raise ExpressionTypeError(f"Argument {arg.type!r} is not assignable to {expected!r}")
    return Invoke(callee, tuple(arguments), ftype.result)


def member(obj: Expr, name: str, type: StaticType) -> Member:
    return Member(obj, name, type)


def host_call(function: Callable, *arguments: Expr, type: StaticType = OBJECT) -> HostCall:
    return HostCall(function, tuple(arguments), type)


def block(*expressions: Expr, variables=(), type: Optional[StaticType] = None) -> Block:
    if type is None:
        type = expressions[-1].type if expressions else VOID
    return Block(tuple(variables), tuple(expressions), type)


def label_target(type: StaticType = VOID, name: str = '') -> LabelTarget:
    return LabelTarget(name, type)


def label(target: LabelTarget, default: Optional[Expr] = None) -> Label:
    if default is None and target.type != VOID:
        raise ExpressionTypeError(f"Label of type {target.type!r} needs a default value")
    if default is not None and not assignable(target.type, default.type):
        raise ExpressionTypeError(f"Default {default.type!r} does not match {target.type!r}")
    return Label(target, default, target.type)


def goto(target: LabelTarget, value: Optional[Expr] = None,
         kind: GotoKind = GotoKind.GOTO, type: StaticType = VOID) -> Goto:
    if value is None and target.type != VOID:
        raise ExpressionTypeError(f"Jump to {target.type!r} label needs a value")
    if value is not None and not assignable(target.type, value.type):
        raise ExpressionTypeError(f"Jump value {value.type!r} does not match {target.type!r}")
    return Goto(kind, target, value, type)


def break_(target: LabelTarget, value: Optional[Expr] = None, type: StaticType = VOID) -> Goto:
    return goto(target, value, GotoKind.BREAK, type)


def continue_(target: LabelTarget, type: StaticType = VOID) -> Goto:
    return goto(target, None, GotoKind.CONTINUE, type)


def return_(target: LabelTarget, value: Optional[Expr] = None, type: StaticType = VOID) -> Goto:
    return goto(target, value, GotoKind.RETURN, type)


def loop(body: Expr, break_label: Optional[LabelTarget] = None,
         continue_label: Optional[LabelTarget] = None) -> Loop:
    type = break_label.type if break_label is not None else VOID
    return Loop(body, break_label, continue_label, type)


def lambda_(parameters, body: Expr) -> Lambda:
    params = tuple(parameters)
    for p in params:
        if not isinstance(p, Parameter):
            raise ExpressionTypeError(f"Lambda parameters must be Parameter nodes, got {p!r}")
    return Lambda(params, body, FunctionType(tuple(p.type for p in params), body.type))


# ═══════════════════════════════════════════════════════════════════════════
# Formatting
# ═══════════════════════════════════════════════════════════════════════════

_BINARY_SYMBOLS = {
    BinaryOp.ADD: '+', BinaryOp.ADD_CHECKED: '+!',
    BinaryOp.SUBTRACT: '-', BinaryOp.SUBTRACT_CHECKED: '-!',
    BinaryOp.MULTIPLY: '*', BinaryOp.MULTIPLY_CHECKED: '*!',
    BinaryOp.DIVIDE: '/', BinaryOp.MODULO: '%',
    BinaryOp.AND: '&', BinaryOp.OR: '|', BinaryOp.EXCLUSIVE_OR: '^',
    BinaryOp.AND_ALSO: '&&', BinaryOp.OR_ELSE: '||',
    BinaryOp.LESS_THAN: '<', BinaryOp.LESS_THAN_OR_EQUAL: '<=',
    BinaryOp.GREATER_THAN: '>', BinaryOp.GREATER_THAN_OR_EQUAL: '>=',
    BinaryOp.EQUAL: '==', BinaryOp.NOT_EQUAL: '!=',
    BinaryOp.LEFT_SHIFT: '<<', BinaryOp.RIGHT_SHIFT: '>>',
    BinaryOp.ASSIGN: '=',
}


def format_expr(node: Expr) -> str:
    """Render a tree as compact, C-like text for logs and test messages."""
    if isinstance(node, Constant):
        return repr(node.value.item() if isinstance(node.value, np.generic) else node.value)
    if isinstance(node, Parameter):
        return node.name
    if isinstance(node, Unary):
        if node.op in (UnaryOp.CONVERT, UnaryOp.CONVERT_CHECKED):
            return f"({node.type!r}){format_expr(node.operand)}"
        symbol = '!' if node.op is UnaryOp.NOT else '-'
        return f"{symbol}{format_expr(node.operand)}"
    if isinstance(node, (Binary, ParallelBinary)):
        prefix = 'par ' if isinstance(node, ParallelBinary) else ''
        return (f"{prefix}({format_expr(node.left)} {_BINARY_SYMBOLS[node.op]} "
                f"{format_expr(node.right)})")
    if isinstance(node, Conditional):
        return (f"({format_expr(node.test)} ? {format_expr(node.if_true)} : "
                f"{format_expr(node.if_false)})")
    if isinstance(node, Invoke):
        args = ', '.join(format_expr(a) for a in node.arguments)
        return f"{format_expr(node.callee)}({args})"
    if isinstance(node, CacheLookup):
        return f"memo {format_expr(node.callee)}({format_expr(node.argument)})"
    if isinstance(node, Member):
        return f"{format_expr(node.obj)}.{node.name}"
    if isinstance(node, HostCall):
        args = ', '.join(format_expr(a) for a in node.arguments)
        return f"{getattr(node.function, '__name__', 'host')}({args})"
    if isinstance(node, Block):
        decls = ''.join(f"var {v.name}; " for v in node.variables)
        body = '; '.join(format_expr(e) for e in node.expressions)
        return f"{{ {decls}{body} }}"
    if isinstance(node, Loop):
        return f"loop {format_expr(node.body)}"
    if isinstance(node, Label):
        default = '' if node.default is None else f" {format_expr(node.default)}"
        return f"{node.target.name or 'L'}{node.target.uid}:{default}"
    if isinstance(node, Goto):
        value = '' if node.value is None else f" {format_expr(node.value)}"
        return f"{node.kind.name.lower()} {node.target.name or 'L'}{node.target.uid}{value}"
    if isinstance(node, Lambda):
        params = ', '.join(p.name for p in node.parameters)
        return f"({params}) => {format_expr(node.body)}"
    return repr(node)
