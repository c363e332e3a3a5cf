"""
Closure Lowering
================

Turns an expression tree into a tree of nested Python closures. Each node
is lowered once to a function ``run(frame) -> value``; calling the root
with a fresh frame evaluates the whole expression.

Scopes
------
Variables live in ``Frame`` objects chained to their lexical parent.
Lambdas and blocks that declare variables open a new frame; variables are
keyed by the parameter's unique id, so shadowed names never collide.

Control flow
------------
``Goto`` raises an internal ``_Jump`` carrying the target label and value.
The nearest enclosing ``Block`` that directly contains the target ``Label``
catches it and resumes right after the label, whose value becomes the
jump value. A ``Loop`` catches jumps to its break label (leaving the loop
with that value) and to its continue label (starting the next iteration).
A jump may not leave the lambda it was raised in.

Memoized and parallel nodes
---------------------------
``Invoke`` and ``CacheLookup`` call straight through, so one level of
recursion in the source costs a fixed, small number of Python frames.
For the operands of ``ParallelBinary`` the callee and argument are
evaluated eagerly on the calling thread; only the call itself is deferred
into a zero-argument thunk.
"""

from typing import Any, Callable, Dict, Optional

import numpy as np

from ..errors import UnsupportedConstructError
from ..runtime.memo_cache import MemoCache, default_cache
from ..runtime.operators import apply_binary, apply_unary
from ..runtime.parallel import WorkerPool, evaluate_binary
from .nodes import (
    Binary, BinaryOp, Block, CacheLookup, Conditional, Constant, Expr, Goto,
    HostCall, Invoke, Label, Lambda, Loop, Member, ParallelBinary, Parameter,
    Unary,
)
from .types import ValueType

Compiled = Callable[['Frame'], Any]


class Frame:
    """One lexical scope of variable values."""

    __slots__ = ('values', 'parent')

    def __init__(self, parent: Optional['Frame'] = None):
        self.values: Dict[int, Any] = {}
        self.parent = parent

    def lookup(self, uid: int, name: str = '?') -> Any:
        frame = self
        while frame is not None:
            values = frame.values
            if uid in values:
                return values[uid]
            frame = frame.parent
        raise UnsupportedConstructError(f"Variable '{name}' is not bound in this scope")

    def assign(self, uid: int, value: Any, name: str = '?'):
        frame = self
        while frame is not None:
            if uid in frame.values:
                frame.values[uid] = value
                return
            frame = frame.parent
        raise UnsupportedConstructError(f"Cannot assign to undeclared variable '{name}'")


class _Jump(Exception):
    __slots__ = ('target', 'value')

    def __init__(self, target: int, value: Any):
        super().__init__(target)
        self.target = target
        self.value = value


class Lowering:
    """
    Lowers expression trees to closures.

    Usage:
        >>> run = Lowering().lower(tree)
        >>> run(Frame())
    """

    def __init__(self, cache: Optional[MemoCache] = None, pool: Optional[WorkerPool] = None):
        self.cache = cache
        self.pool = pool

    def lower(self, node: Expr) -> Compiled:
        method = getattr(self, f'lower_{type(node).__name__}', None)
        if method is None:
            raise UnsupportedConstructError(f"Cannot lower expression of type {type(node).__name__}")
        return method(node)

    def evaluate(self, node: Expr) -> Any:
        """Lower ``node`` and evaluate it in an empty top-level frame."""
        return self.lower(node)(Frame())

    # ---- Leaves ----

    def lower_Constant(self, node: Constant) -> Compiled:
        value = node.value
        return lambda frame: value

    def lower_Parameter(self, node: Parameter) -> Compiled:
        uid, name = node.uid, node.name
        return lambda frame: frame.lookup(uid, name)

    # ---- Operators ----

    def lower_Unary(self, node: Unary) -> Compiled:
        op, target = node.op, node.type
        operand = self.lower(node.operand)
        return lambda frame: apply_unary(op, operand(frame), target)

    def lower_Binary(self, node: Binary) -> Compiled:
        op = node.op
        right = self.lower(node.right)

        if op is BinaryOp.ASSIGN:
            uid, name = node.left.uid, node.left.name

            def run_assign(frame):
                value = right(frame)
                frame.assign(uid, value, name)
                return value
            return run_assign

        left = self.lower(node.left)
        if op is BinaryOp.AND_ALSO:
            return lambda frame: np.bool_(bool(left(frame)) and bool(right(frame)))
        if op is BinaryOp.OR_ELSE:
            return lambda frame: np.bool_(bool(left(frame)) or bool(right(frame)))
        return lambda frame: apply_binary(op, left(frame), right(frame))

    def lower_ParallelBinary(self, node: ParallelBinary) -> Compiled:
        op = node.op
        pool = node.pool if node.pool is not None else self.pool
        left = self._lower_deferred(node.left)
        right = self._lower_deferred(node.right)
        return lambda frame: evaluate_binary(op, left(frame), right(frame), pool)

    def lower_Conditional(self, node: Conditional) -> Compiled:
        test = self.lower(node.test)
        if_true = self.lower(node.if_true)
        if_false = self.lower(node.if_false)
        return lambda frame: if_true(frame) if test(frame) else if_false(frame)

    # ---- Calls ----

    def lower_Invoke(self, node: Invoke) -> Compiled:
        callee = self.lower(node.callee)
        arguments = tuple(self.lower(a) for a in node.arguments)
        if len(arguments) == 1:
            argument = arguments[0]
            return lambda frame: callee(frame)(argument(frame))
        return lambda frame: callee(frame)(*[a(frame) for a in arguments])

    def lower_CacheLookup(self, node: CacheLookup) -> Compiled:
        cache = self._cache_for(node)
        callee = self.lower(node.callee)
        argument = self.lower(node.argument)

        def run_lookup(frame):
            fn = callee(frame)
            return cache.lookup_or_compute(fn, argument(frame))
        return run_lookup

    def _cache_for(self, node: CacheLookup) -> MemoCache:
        cache = node.cache if node.cache is not None else self.cache
        return cache if cache is not None else default_cache()

    def _lower_deferred(self, node: Expr) -> Callable[[Frame], Callable[[], Any]]:
        """Evaluate callee and arguments now, return a thunk making the call."""
        if isinstance(node, Invoke):
            callee = self.lower(node.callee)
            arguments = tuple(self.lower(a) for a in node.arguments)

            def prepare_invoke(frame):
                fn = callee(frame)
                args = [a(frame) for a in arguments]
                return lambda: fn(*args)
            return prepare_invoke

        if isinstance(node, CacheLookup):
            cache = self._cache_for(node)
            callee = self.lower(node.callee)
            argument = self.lower(node.argument)

            def prepare_lookup(frame):
                fn = callee(frame)
                arg = argument(frame)
                return lambda: cache.lookup_or_compute(fn, arg)
            return prepare_lookup

        raise UnsupportedConstructError(f"{type(node).__name__} cannot be deferred")

    def lower_HostCall(self, node: HostCall) -> Compiled:
        fn = node.function
        arguments = tuple(self.lower(a) for a in node.arguments)
        result_type = node.type
        if isinstance(result_type, ValueType):
            return lambda frame: result_type.coerce(fn(*[a(frame) for a in arguments]))
        return lambda frame: fn(*[a(frame) for a in arguments])

    def lower_Member(self, node: Member) -> Compiled:
        obj = self.lower(node.obj)
        name = node.name
        return lambda frame: getattr(obj(frame), name)

    # ---- Scopes and control flow ----

    def lower_Block(self, node: Block) -> Compiled:
        var_uids = tuple(v.uid for v in node.variables)
        steps = tuple(self.lower(e) for e in node.expressions)
        labels = {
            e.target.uid: index
            for index, e in enumerate(node.expressions)
            if isinstance(e, Label)
        }
        count = len(steps)

        def run_block(frame):
            if var_uids:
                frame = Frame(frame)
                for uid in var_uids:
                    frame.values[uid] = None
            result = None
            index = 0
            while index < count:
                try:
                    while index < count:
                        result = steps[index](frame)
                        index += 1
                except _Jump as jump:
                    position = labels.get(jump.target)
                    if position is None:
                        raise
                    result = jump.value
                    index = position + 1
            return result
        return run_block

    def lower_Label(self, node: Label) -> Compiled:
        if node.default is None:
            return lambda frame: None
        return self.lower(node.default)

    def lower_Goto(self, node: Goto) -> Compiled:
        target = node.target.uid
        value = None if node.value is None else self.lower(node.value)

        def run_goto(frame):
            raise _Jump(target, None if value is None else value(frame))
        return run_goto

    def lower_Loop(self, node: Loop) -> Compiled:
        body = self.lower(node.body)
        break_uid = node.break_label.uid if node.break_label is not None else None
        continue_uid = node.continue_label.uid if node.continue_label is not None else None

        def run_loop(frame):
            while True:
                try:
                    body(frame)
                except _Jump as jump:
                    if jump.target == break_uid:
                        return jump.value
                    if jump.target == continue_uid:
                        continue
                    raise
        return run_loop

    def lower_Lambda(self, node: Lambda) -> Compiled:
        uids = tuple(p.uid for p in node.parameters)
        body = self.lower(node.body)
        arity = len(uids)

        def run_lambda(frame):
            def closure(*args):
                if len(args) != arity:
                    raise TypeError(f"Expected {arity} argument(s), got {len(args)}")
                scope = Frame(frame)
                scope.values.update(zip(uids, args))
                try:
                    return body(scope)
                except _Jump:
                    raise UnsupportedConstructError("Jump target is outside the enclosing lambda") from None
            return closure
        return run_lambda
