"""
Comparator engine.

Produces a deterministic total order over records for one sort key, with
type dispatch taken from the field registry and an id tie-break.
"""

from datetime import datetime
from functools import cmp_to_key
from typing import Any, List, Optional

from .filters import parse_date, to_number
from .models import FieldRegistry, FieldType, Record, SortSpec
from .normalizer import normalize


def _sign(value: float) -> int:
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


def _number(value: Any) -> float:
    # Missing or non-numeric values sort as the lowest
    number = to_number(value)
    return float('-inf') if number is None else number


def _compare_numbers(a: Any, b: Any) -> int:
    left, right = _number(a), _number(b)
    if left == right:
        return 0
    return _sign(left - right)


def _compare_dates(a: Any, b: Any) -> int:
    # Unparsable dates sort as the earliest instant
    left = parse_date(a) or datetime.min
    right = parse_date(b) or datetime.min
    return _sign((left - right).total_seconds())


def _compare_text(a: Any, b: Any) -> int:
    left, right = normalize(a), normalize(b)
    if left < right:
        return -1
    if left > right:
        return 1
    return 0


def _compare_ids(a: Any, b: Any) -> int:
    a_numeric = isinstance(a, (int, float)) and not isinstance(a, bool)
    b_numeric = isinstance(b, (int, float)) and not isinstance(b, bool)
    if a_numeric and b_numeric:
        return _sign(a - b)
    if a_numeric != b_numeric:
        # Numbers before strings when id types are mixed
        return -1 if a_numeric else 1
    left, right = str(a) if a is not None else '', str(b) if b is not None else ''
    if left < right:
        return -1
    if left > right:
        return 1
    return 0


_DISPATCH = {
    FieldType.NUMBER: _compare_numbers,
    FieldType.DATE: _compare_dates,
    FieldType.STRING: _compare_text,
    FieldType.ENUM: _compare_text,
}


def compare(
    a: Record,
    b: Record,
    sort_spec: SortSpec,
    registry: Optional[FieldRegistry] = None,
) -> int:
    """Compare two records for the given sort.

    Args:
        a: First record
        b: Second record
        sort_spec: Active sort key and direction
        registry: Field type registry, all-string when omitted

    Returns:
        -1, 0 or 1
    """
    registry = registry or FieldRegistry()
    comparator = _DISPATCH[registry.type_of(sort_spec.key)]
    result = comparator(a.get(sort_spec.key), b.get(sort_spec.key))
    if sort_spec.descending:
        result = -result
    if result == 0:
        result = _compare_ids(a.get('id'), b.get('id'))
    return result


def sort_records(
    records: List[Record],
    sort_spec: Optional[SortSpec],
    registry: Optional[FieldRegistry] = None,
) -> List[Record]:
    """Return a new, stably sorted list. No sort keeps input order."""
    if sort_spec is None:
        return list(records)
    registry = registry or FieldRegistry()
    return sorted(
        records,
        key=cmp_to_key(lambda a, b: compare(a, b, sort_spec, registry)),
    )
