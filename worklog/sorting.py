from __future__ import annotations

import re
from enum import Enum
from functools import cmp_to_key
from typing import Any, Callable, Iterable, List, Mapping, Tuple

from worklog.data import field_name


SORT_DIRECTIONS = ("asc", "desc")
_DIGITS = re.compile(r"([0-9]+)")


def natural_key(value: object) -> Tuple[Tuple[int, int, str], ...]:
    """Sort key that orders digit runs by value, so "2" < "10" and "a2" < "a10"."""
    if value is None:
        text = ""
    elif isinstance(value, Enum):
        text = str(value.value)
    else:
        text = str(value)
    parts = []
    # re.split with a capture group puts digit runs at the odd positions.
    for i, chunk in enumerate(_DIGITS.split(text)):
        if not chunk:
            continue
        if i % 2:
            parts.append((0, int(chunk), chunk))
        else:
            parts.append((1, 0, chunk.casefold()))
    return tuple(parts)


def field_value(item: Any, key: str) -> Any:
    if isinstance(item, Mapping):
        if key in item:
            return item.get(key)
        return item.get(field_name(key))
    return getattr(item, field_name(key), None)


def _sign(direction: str) -> int:
    if direction not in SORT_DIRECTIONS:
        raise ValueError(f"Unknown sort direction: {direction!r}")
    return 1 if direction == "asc" else -1


def make_comparator(key: str, direction: str = "asc") -> Callable[[Any, Any], int]:
    sign = _sign(direction)

    def compare(a: Any, b: Any) -> int:
        ka = natural_key(field_value(a, key))
        kb = natural_key(field_value(b, key))
        return sign * ((ka > kb) - (ka < kb))

    return compare


def sort_records(records: Iterable[Any], key: str, direction: str = "asc") -> List[Any]:
    return sorted(records, key=cmp_to_key(make_comparator(key, direction)))


def next_sort(current_key: str, current_direction: str, clicked_key: str) -> Tuple[str, str]:
    """Column-header click: flip direction on the same column, else start ascending."""
    if clicked_key == current_key:
        return current_key, "desc" if current_direction == "asc" else "asc"
    return clicked_key, "asc"
