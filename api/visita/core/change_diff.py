"""Change detection between a stored church profile and submitted form data."""
from dataclasses import dataclass
from typing import Any, Dict, Mapping


@dataclass(frozen=True)
class FieldChange:
    old: Any
    new: Any


ChangedFields = Dict[str, FieldChange]


def normalize_empty(value: Any) -> Any:
    """Treat None, empty strings and empty collections as "no value"."""
    if value is None or value == "":
        return None
    if isinstance(value, (list, tuple, dict)) and len(value) == 0:
        return None
    return value


def values_equal(old: Any, new: Any) -> bool:
    """Deep value equality after empty normalization.

    Lists and dicts compare element by element; ints and floats compare
    numerically.
    """
    return normalize_empty(old) == normalize_empty(new)


def diff_fields(stored: Mapping[str, Any], submitted: Mapping[str, Any]) -> ChangedFields:
    """
    Return the submitted fields whose value differs from the stored one.

    Fields absent from `submitted` are untouched. Order follows `submitted`.
    Clearing a field that had a value counts as a change.
    """
    changed: ChangedFields = {}
    for field, new_value in submitted.items():
        old_value = stored.get(field)
        if not values_equal(old_value, new_value):
            changed[field] = FieldChange(old=old_value, new=new_value)
    return changed
