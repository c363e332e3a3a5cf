"""
Member-access purity rule.

Reading a member of a value-typed object is always allowed: the object is
copied into the function and cannot change underneath it. Reading a member
of a reference-typed object is only allowed when the member is itself a
PureFunction (of any arity), or when impure access has been explicitly
allowed and no result caching is in effect.
"""

from ..compiler.nodes import Member
from ..compiler.types import PureFunctionType
from ..errors import PurityViolationError


def is_member_access_pure(node: Member, *, caching: bool, allow_impure: bool) -> bool:
    if node.obj.type.is_value:
        return True
    if allow_impure and not caching:
        return True
    return isinstance(node.type, PureFunctionType)


def check_member_access(node: Member, *, caching: bool, allow_impure: bool):
    """Raise PurityViolationError if ``node`` reads external mutable state."""
    if not is_member_access_pure(node, caching=caching, allow_impure=allow_impure):
        raise PurityViolationError(
            f"Cannot access member '{node.name}' of {node.obj.type!r}: "
            f"only members of type PureFunction may be read from reference types"
        )
