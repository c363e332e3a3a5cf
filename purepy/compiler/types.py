"""
Static Type Descriptors
=======================

Closed set of static types carried by every expression node.

    StaticType
    ├── ValueType          fixed-size numeric/boolean kinds (numpy-backed)
    ├── FunctionType       Callable[[params...], result]
    ├── PureFunctionType   a PureFunction wrapper (0, 1 or many params)
    ├── ReferenceType      any other host object (mutable, not a value)
    └── VoidType           result of loops/gotos with no value

Values of a ValueType are numpy scalars of the matching dtype, which gives
each value a fixed width so unchecked integer arithmetic can wrap exactly.
"""

from dataclasses import dataclass
from typing import Any, Tuple

import numpy as np

from ..errors import ArithmeticOverflowError


@dataclass(frozen=True)
class StaticType:
    """Base class for static type descriptors."""

    @property
    def is_value(self) -> bool:
        return False

    @property
    def is_callable(self) -> bool:
        return False


@dataclass(frozen=True)
class ValueType(StaticType):
    name: str
    np_type: type

    @property
    def is_value(self) -> bool:
        return True

    @property
    def is_bool(self) -> bool:
        return self.np_type is np.bool_

    @property
    def is_integer(self) -> bool:
        return issubclass(self.np_type, np.integer)

    @property
    def is_float(self) -> bool:
        return issubclass(self.np_type, np.floating)

    @property
    def is_signed(self) -> bool:
        return issubclass(self.np_type, np.signedinteger)

    @property
    def bounds(self) -> Tuple[int, int]:
        info = np.iinfo(self.np_type)
        return int(info.min), int(info.max)

    def wrap(self, value: int) -> Any:
        """Reduce an integer modulo 2**bits into this type's range."""
        lo, hi = self.bounds
        span = hi - lo + 1
        return self.np_type((value - lo) % span + lo)

    def check(self, value: int) -> Any:
        """Return ``value`` as this type or raise if it does not fit."""
        lo, hi = self.bounds
        if value < lo or value > hi:
            raise ArithmeticOverflowError(
                f"{value} is outside the range of {self.name} [{lo}, {hi}]"
            )
        return self.np_type(value)

    def coerce(self, value: Any) -> Any:
        """Convert a host value to this type's numpy scalar."""
        if isinstance(value, self.np_type):
            return value
        if self.is_bool:
            return np.bool_(bool(value))
        if self.is_integer:
            return self.check(int(value))
        return self.np_type(value)

    def __repr__(self):
        return self.name


@dataclass(frozen=True)
class FunctionType(StaticType):
    params: Tuple[StaticType, ...]
    result: StaticType

    @property
    def is_callable(self) -> bool:
        return True

    def __repr__(self):
        args = ', '.join(repr(p) for p in self.params)
        return f"Func[({args}) -> {self.result!r}]"


@dataclass(frozen=True)
class PureFunctionType(StaticType):
    params: Tuple[StaticType, ...]
    result: StaticType

    @property
    def is_callable(self) -> bool:
        return True

    def __repr__(self):
        args = ', '.join(repr(p) for p in self.params)
        return f"PureFunc[({args}) -> {self.result!r}]"


@dataclass(frozen=True)
class ReferenceType(StaticType):
    name: str

    def __repr__(self):
        return f"Ref[{self.name}]"


@dataclass(frozen=True)
class VoidType(StaticType):

    def __repr__(self):
        return 'void'


BOOL = ValueType('bool', np.bool_)
INT8 = ValueType('int8', np.int8)
INT16 = ValueType('int16', np.int16)
INT32 = ValueType('int32', np.int32)
INT64 = ValueType('int64', np.int64)
UINT8 = ValueType('uint8', np.uint8)
UINT16 = ValueType('uint16', np.uint16)
UINT32 = ValueType('uint32', np.uint32)
UINT64 = ValueType('uint64', np.uint64)
FLOAT32 = ValueType('float32', np.float32)
FLOAT64 = ValueType('float64', np.float64)
VOID = VoidType()
OBJECT = ReferenceType('object')

VALUE_TYPES = (
    BOOL, INT8, INT16, INT32, INT64,
    UINT8, UINT16, UINT32, UINT64, FLOAT32, FLOAT64,
)


def func(*types: StaticType) -> FunctionType:
    """``func(a, b, r)`` is the type of a function (a, b) -> r."""
    if not types:
        raise ValueError("func() needs at least a result type")
    return FunctionType(tuple(types[:-1]), types[-1])


def pure_func(*types: StaticType) -> PureFunctionType:
    """``pure_func(a, r)`` is the type of a PureFunction a -> r."""
    if not types:
        raise ValueError("pure_func() needs at least a result type")
    return PureFunctionType(tuple(types[:-1]), types[-1])


def curried(*types: StaticType) -> FunctionType:
    """``curried(a, b, r)`` is a -> (b -> r)."""
    if len(types) < 2:
        raise ValueError("curried() needs a parameter and a result type")
    result = types[-1]
    for param in reversed(types[:-1]):
        result = FunctionType((param,), result)
    return result


def assignable(target: StaticType, source: StaticType) -> bool:
    """Whether a value of ``source`` may sit where ``target`` is expected."""
    if target == source:
        return True
    if target == OBJECT:
        return not isinstance(source, VoidType)
    # A PureFunction can be used wherever a plain function of the same shape is.
    if isinstance(target, FunctionType) and isinstance(source, PureFunctionType):
        return target.params == source.params and target.result == source.result
    return False
