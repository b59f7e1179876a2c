"""
Grant values returned by user policy permission methods.

A permission method returns one of:
- ALL: the user is authorized for every record of the type
- a list of clauses: authorized for records sharing at least one clause
- None or an empty list: never authorized
"""
import enum
from collections.abc import Iterable
from typing import FrozenSet, Union

from authorization_attrs.core.exceptions import InvalidGrantError
from authorization_attrs.features.attributes.serializer import serialize_attrs


class Unconditional(enum.Enum):
    ALL = "all"


ALL = Unconditional.ALL

ResolvedGrant = Union[Unconditional, FrozenSet[str]]


def resolve_grant(grant: object) -> ResolvedGrant:
    """
    Turn a permission method's return value into ALL or a set of serialized clauses.

    An empty frozenset means the user is never authorized.

    Raises:
        InvalidAttributesError: for a bare mapping or a malformed clause
        InvalidGrantError: for any other unrecognized shape
    """
    if grant is ALL:
        return ALL
    if grant is None:
        return frozenset()
    if isinstance(grant, (str, bytes)) or not isinstance(grant, Iterable):
        raise InvalidGrantError(
            f"Permission methods must return ALL, None or a list of clauses, got {grant!r}"
        )
    return frozenset(serialize_attrs(grant))
