"""Exception types raised while building and running pure functions."""


class PureError(Exception):
    """Base class for all purepy errors."""


class ExpressionTypeError(PureError, TypeError):
    """An expression node was built with operands of the wrong static type."""


class UnsupportedConstructError(PureError):
    """The rewriter or lowering met a node shape it does not handle."""


class PurityViolationError(PureError):
    """A function body reads external mutable state under purity checking."""


class UnsupportedOperatorError(PureError):
    """An operator reached a combinator that does not implement it."""


class ArithmeticOverflowError(PureError, ArithmeticError):
    """Checked arithmetic produced a value outside its type's range."""
