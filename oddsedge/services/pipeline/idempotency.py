"""
Deterministic identity keys for collected entities.

A key is the ordered conflict fields of a record rendered as strings and
joined with ``|``. Rendering is canonical so that semantically equal tuples
always produce the same key:

- None renders as the empty string
- booleans render as ``true`` / ``false``
- integral floats render without a fractional part (``45.0`` -> ``45``)
"""
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Sequence

KEY_SEPARATOR = "|"


def _render(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def stable_key(parts: Iterable[Any]) -> str:
    """
    Build a deterministic key from ordered scalar fields.

    Examples:
        >>> stable_key(["g1", "LeBron James", "Points", "DraftKings", 25.5, False])
        'g1|LeBron James|Points|DraftKings|25.5|false'
        >>> stable_key(["g1", None, 45.0])
        'g1||45'
    """
    return KEY_SEPARATOR.join(_render(part) for part in parts)


def key_for(record: Mapping[str, Any], conflict_fields: Sequence[str]) -> str:
    """Build the key of ``record`` from the named conflict fields, in order."""
    return stable_key(record.get(field) for field in conflict_fields)
