"""
Tests for the build-time analyses: threadability and member-access purity.
"""

import pytest

from purepy.analysis.purity import check_member_access, is_member_access_pure
from purepy.analysis.threadability import (
    PARALLEL_OPS, can_binary_be_threaded, can_invoke_be_threaded, can_lambda_be_threaded,
)
from purepy.compiler.nodes import (
    BinaryOp, add, constant, invoke, lambda_, left_shift, member, modulo,
    multiply, parameter, subtract,
)
from purepy.compiler.types import (
    INT32, OBJECT, UINT64, ReferenceType, func, pure_func,
)
from purepy.errors import PurityViolationError


class TestThreadability:
    def setup_method(self):
        self.f = parameter('f', func(UINT64, UINT64))
        self.n = parameter('n', UINT64)
        self.one = constant(1, UINT64)
        self.two = constant(2, UINT64)

    def call(self, arg):
        return invoke(self.f, arg)

    def test_two_value_invocations(self):
        node = add(self.call(subtract(self.n, self.one)), self.call(subtract(self.n, self.two)))
        assert can_binary_be_threaded(node)

    def test_invocation_plus_constant(self):
        node = add(self.call(self.n), constant(0, UINT64))
        assert not can_binary_be_threaded(node)

    def test_nested_zero_additions(self):
        zero = constant(0, UINT64)
        node = add(add(self.call(self.n), zero), add(self.call(self.n), zero))
        assert not can_binary_be_threaded(node)

    def test_nested_eligible_binaries(self):
        inner = add(self.call(self.n), self.call(self.n))
        assert can_binary_be_threaded(multiply(inner, inner))

    def test_unsupported_operators(self):
        assert not can_binary_be_threaded(modulo(self.call(self.n), self.call(self.n)))
        assert not can_binary_be_threaded(left_shift(self.call(self.n), self.call(self.n)))
        assert BinaryOp.MODULO not in PARALLEL_OPS

    def test_reference_typed_invocation(self):
        g = parameter('g', func(OBJECT, UINT64))
        call = invoke(g, constant(object(), OBJECT))
        assert not can_invoke_be_threaded(call)

    def test_lambda(self):
        x = parameter('x', INT32)
        assert can_lambda_be_threaded(lambda_([x], x))
        r = parameter('r', OBJECT)
        assert not can_lambda_be_threaded(lambda_([r], constant(1, INT32)))


class TestPurity:
    def setup_method(self):
        self.obj = parameter('p', ReferenceType('Point'))

    def test_value_member_allowed(self):
        node = member(constant(1, INT32), 'real', INT32)
        assert is_member_access_pure(node, caching=True, allow_impure=False)

    def test_reference_member_rejected(self):
        node = member(self.obj, 'x', INT32)
        with pytest.raises(PurityViolationError):
            check_member_access(node, caching=True, allow_impure=False)

    def test_pure_function_member_allowed(self):
        node = member(self.obj, 'square', pure_func(INT32, INT32))
        check_member_access(node, caching=True, allow_impure=False)

    def test_zero_argument_pure_function_member_allowed(self):
        node = member(self.obj, 'seed', pure_func(INT32))
        assert is_member_access_pure(node, caching=False, allow_impure=False)

    def test_impure_allowed_only_without_caching(self):
        node = member(self.obj, 'x', INT32)
        assert is_member_access_pure(node, caching=False, allow_impure=True)
        assert not is_member_access_pure(node, caching=True, allow_impure=True)
