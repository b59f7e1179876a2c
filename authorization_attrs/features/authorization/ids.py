"""
Normalization of the records argument of authorization checks.
"""
from collections.abc import Iterable
from typing import Any, List

from authorization_attrs.core.exceptions import InvalidRecordIdsError


def _record_id(value: Any) -> Any:
    record_id = getattr(value, "id", value)
    if record_id is None:
        raise InvalidRecordIdsError(f"Record {value!r} has no id; save it before checking authorization")
    return record_id


def filter_ids(records: Any) -> List[Any]:
    """
    Ids for a single id, a record exposing `id`, or an iterable of either.

    Duplicates collapse to one, first occurrence wins.

    Raises:
        InvalidRecordIdsError: if no id is given or a record has no id
    """
    if records is None:
        raise InvalidRecordIdsError("At least one record or record id is required")

    if isinstance(records, (str, bytes)) or hasattr(records, "id") or not isinstance(records, Iterable):
        items = [records]
    else:
        items = list(records)

    ids = list(dict.fromkeys(_record_id(item) for item in items))
    if not ids:
        raise InvalidRecordIdsError("At least one record or record id is required")
    return ids
