"""
Filter evaluation over record collections.

Implements date parsing, quick-range resolution, field predicate evaluation
and the search-term predicate. All active predicates combine with AND logic;
unset predicates place no constraint.
"""

import math
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, List, Optional, Tuple

from .models import (
    FieldPredicate,
    FieldRegistry,
    FieldType,
    FilterSpec,
    QuickRange,
    Record,
)
from .normalizer import normalize

# Formats seen in console payloads besides ISO-8601
_DATE_FORMATS = [
    '%d/%m/%Y %H:%M:%S',
    '%d/%m/%Y %H:%M',
    '%d/%m/%Y',
    '%Y/%m/%d %H:%M:%S',
    '%Y/%m/%d',
]


def parse_date(value: Any) -> Optional[datetime]:
    """Parse a record or query value into a naive local datetime.

    Args:
        value: datetime, date or string (ISO-8601 or dd/mm/yyyy forms)

    Returns:
        Parsed datetime or None when the value is missing or unparsable
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone().replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    try:
        parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone().replace(tzinfo=None)
        return parsed
    except ValueError:
        pass

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _is_date_only(value: Any) -> bool:
    if isinstance(value, datetime):
        return False
    if isinstance(value, date):
        return True
    if isinstance(value, str):
        text = value.strip()
        return len(text) == 10 and parse_date(text) is not None
    return False


def resolve_quick_range(
    token: Optional[str],
    now: Optional[datetime] = None,
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Resolve a quick-range token to a concrete inclusive window.

    Args:
        token: One of QuickRange.TOKENS, or None
        now: Evaluation instant (defaults to the current local time)

    Returns:
        (start, end) tuple; (None, None) for 'all' or no token
    """
    if not token or token == QuickRange.ALL:
        return None, None

    now = now or datetime.now()
    today = now.date()

    if token == QuickRange.TODAY:
        first_day = last_day = today
    elif token == QuickRange.YESTERDAY:
        first_day = last_day = today - timedelta(days=1)
    elif token == QuickRange.LAST_7_DAYS:
        first_day, last_day = today - timedelta(days=6), today
    elif token == QuickRange.LAST_30_DAYS:
        first_day, last_day = today - timedelta(days=29), today
    elif token == QuickRange.THIS_MONTH:
        first_day, last_day = today.replace(day=1), today
    else:
        raise ValueError(f"Unknown quick range: {token}")

    return (
        datetime.combine(first_day, time.min),
        datetime.combine(last_day, time.max),
    )


def resolve_date_window(
    filter_spec: FilterSpec,
    now: Optional[datetime] = None,
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Pick the effective window: a non-empty explicit range wins.

    Unparsable explicit bounds are dropped rather than excluding records.
    """
    date_range = filter_spec.date_range
    if date_range is not None and not date_range.is_empty:
        start = parse_date(date_range.start)
        end = parse_date(date_range.end)
        if end is not None and _is_date_only(date_range.end):
            end = datetime.combine(end.date(), time.max)
        return start, end
    return resolve_quick_range(filter_spec.quick_range, now)


def to_number(value: Any) -> Optional[float]:
    """Coerce an int, float or numeric string; anything else is None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _compare_values(left: Any, right: Any, operator: str) -> bool:
    if operator == 'eq':
        return left == right
    if operator == 'ne':
        return left != right
    if operator == 'gt':
        return left > right
    if operator == 'gte':
        return left >= right
    if operator == 'lt':
        return left < right
    if operator == 'lte':
        return left <= right
    return False


def _coerce(value: Any, field_type: str) -> Any:
    if field_type == FieldType.NUMBER:
        return to_number(value)
    if field_type == FieldType.DATE:
        return parse_date(value)
    return normalize(value)


def evaluate_predicate(
    record: Record,
    predicate: FieldPredicate,
    registry: FieldRegistry,
) -> bool:
    """Evaluate a single predicate against a record.

    Inactive predicates always hold. A record value that cannot be coerced
    to the field's type never satisfies an active predicate.
    """
    if not predicate.is_active:
        return True

    field_type = registry.type_of(predicate.field_name)
    raw = record.get(predicate.field_name)

    if predicate.operator == 'contains':
        return normalize(predicate.value) in normalize(raw)

    value = _coerce(raw, field_type)

    typed = field_type in (FieldType.NUMBER, FieldType.DATE)

    if predicate.operator == 'in':
        options = predicate.value
        if isinstance(options, (str, bytes)) or not isinstance(options, Iterable):
            options = [options]
        options = list(options)
        candidates = [_coerce(item, field_type) for item in options]
        if typed and all(candidate is None for candidate in candidates):
            return True
        if value is None:
            return False
        if field_type == FieldType.DATE:
            return any(
                _compare_dates(value, candidate, 'eq', _is_date_only(item))
                for item, candidate in zip(options, candidates)
                if candidate is not None
            )
        return value in candidates

    expected = _coerce(predicate.value, field_type)
    if typed:
        if expected is None:
            # Unparsable query value fails open
            return True
        if value is None:
            return False
    if field_type == FieldType.DATE:
        return _compare_dates(
            value, expected, predicate.operator, _is_date_only(predicate.value)
        )
    return _compare_values(value, expected, predicate.operator)


def _compare_dates(value: datetime, expected: datetime, operator: str, whole_day: bool) -> bool:
    """Compare datetimes, treating a date-only query value as the whole day."""
    if not whole_day:
        return _compare_values(value, expected, operator)
    if operator in ('eq', 'ne'):
        return _compare_values(value.date(), expected.date(), operator)
    if operator in ('gt', 'lte'):
        expected = datetime.combine(expected.date(), time.max)
    return _compare_values(value, expected, operator)


def _matches_search(record: Record, term: str, fields: Iterable[str]) -> bool:
    return any(term in normalize(record.get(name)) for name in fields)


def apply(
    records: List[Record],
    filter_spec: FilterSpec,
    registry: Optional[FieldRegistry] = None,
    now: Optional[datetime] = None,
) -> List[Record]:
    """Return the records that satisfy every active predicate.

    Args:
        records: Source records (never mutated)
        filter_spec: Predicates to apply
        registry: Field type registry, all-string when omitted
        now: Evaluation instant for quick ranges

    Returns:
        New list with the retained records in input order
    """
    registry = registry or FieldRegistry()
    term = normalize(filter_spec.search_term)
    predicates = [p for p in filter_spec.predicates if p.is_active]
    start, end = resolve_date_window(filter_spec, now)
    has_window = start is not None or end is not None

    result = []
    for record in records:
        if term and not _matches_search(record, term, filter_spec.search_fields):
            continue
        if has_window:
            stamp = parse_date(record.get(filter_spec.date_field))
            if stamp is None:
                continue
            if start is not None and stamp < start:
                continue
            if end is not None and stamp > end:
                continue
        if all(evaluate_predicate(record, p, registry) for p in predicates):
            result.append(record)
    return result
