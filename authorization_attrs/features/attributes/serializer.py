"""
Canonical string form of authorization attribute clauses.

A clause is a mapping of attribute name to scalar value and reads as a
conjunction. Names are sorted so the same clause always serializes to the same
string, whatever order its keys were inserted in:

    >>> serialize_attrs([{"foo_id": 2, "bar": False}])
    ['bar=false&foo_id=2']

"%", "&" and "=" inside names or values are percent-escaped, so
{"a": "1&b=2"} and {"a": "1", "b": "2"} stay distinct. Clauses free of those
characters serialize to the plain name=value&... form; clauses containing
them will not match rows written by an unescaped serializer, so reconcile
such records again after switching.
"""
from collections.abc import Iterable, Mapping
from typing import Any, Dict, List, Optional, Union

from authorization_attrs.core.exceptions import InvalidAttributesError


ClauseValue = Union[str, int, float, bool, None]
Clause = Mapping[str, ClauseValue]

# Separators escaped inside names and values; "%" first so escapes are not re-escaped
_ESCAPES: Dict[str, str] = {"%": "%25", "&": "%26", "=": "%3D"}


def _escape(text: str) -> str:
    for char, replacement in _ESCAPES.items():
        text = text.replace(char, replacement)
    return text


def format_value(value: Any) -> str:
    """Render one clause value."""
    if value is None:
        return ""
    # bool before int: True is an int
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, str):
        return _escape(value)
    raise InvalidAttributesError(
        f"Unsupported authorization attribute value {value!r}: "
        f"use a string, number, boolean or None"
    )


def serialize_clause(clause: Clause) -> str:
    """Serialize a single non-empty clause."""
    if not isinstance(clause, Mapping):
        raise InvalidAttributesError(
            f"Authorization attribute clauses must be mappings, got {type(clause).__name__}"
        )
    if not clause:
        raise InvalidAttributesError("Authorization attribute clauses must not be empty")

    pairs = []
    for name in sorted(clause, key=str):
        if not isinstance(name, str):
            raise InvalidAttributesError(f"Attribute names must be strings, got {name!r}")
        pairs.append(f"{_escape(name)}={format_value(clause[name])}")
    return "&".join(pairs)


def serialize_attrs(data: Optional[Iterable[Optional[Clause]]]) -> List[str]:
    """
    Serialize a list of clauses.

    Args:
        data: List of clauses; None means no clauses

    Returns:
        One string per clause, in input order. None elements are dropped.

    Raises:
        InvalidAttributesError: if a single mapping is passed instead of a list,
            or a clause is empty or holds an unsupported value
    """
    if isinstance(data, Mapping):
        raise InvalidAttributesError(
            "Please supply a list of mappings representing authorization attributes"
        )
    if data is None:
        return []
    if isinstance(data, (str, bytes)) or not isinstance(data, Iterable):
        raise InvalidAttributesError(
            f"Authorization attributes must be a list of mappings, got {type(data).__name__}"
        )

    return [serialize_clause(clause) for clause in data if clause is not None]
