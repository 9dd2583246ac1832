"""
Statistics aggregation.

Computes scalar summaries, severity/status bucket distributions, half-over-
half trend deltas and the chart series (daily, hourly, per value) shown next
to report tables. Every figure is derived from the collection passed in and
nothing is cached.
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .filters import parse_date, to_number
from .models import BucketCount, BucketRule, FieldSummary, Record, Statistics, Trend

UNKNOWN_BUCKET = 'unknown'


def summarize_field(records: List[Record], field_name: str) -> FieldSummary:
    """Sum, average, min and max of the numeric values of one field.

    Records without a numeric value are skipped; the average of no values
    is 0.
    """
    values = [to_number(record.get(field_name)) for record in records]
    values = [value for value in values if value is not None]
    total = sum(values)
    return FieldSummary(
        field_name=field_name,
        total=total,
        average=total / len(values) if values else 0.0,
        minimum=min(values) if values else None,
        maximum=max(values) if values else None,
        samples=len(values),
    )


def classify(value: object, rules: Sequence[BucketRule]) -> str:
    """Return the label of the first rule matching the value."""
    number = to_number(value)
    if number is None:
        return UNKNOWN_BUCKET
    for rule in rules:
        if rule.predicate(number):
            return rule.label
    return UNKNOWN_BUCKET


def bucket_counts(
    records: List[Record],
    field_name: str,
    rules: Sequence[BucketRule],
) -> List[BucketCount]:
    """Count records per bucket.

    Rules must be ordered from least to most severe. Buckets are reported in
    rule order followed by the 'unknown' bucket, which is always present so
    that the counts add up to len(records).

    Args:
        records: Records to classify
        field_name: Numeric field evaluated by the rules
        rules: Ordered bucket rules

    Returns:
        One BucketCount per distinct label, 'unknown' last
    """
    counts: Dict[str, int] = OrderedDict()
    for rule in rules:
        counts.setdefault(rule.label, 0)
    counts.setdefault(UNKNOWN_BUCKET, 0)
    # Keep 'unknown' last even if a rule reuses the label
    counts.move_to_end(UNKNOWN_BUCKET)

    for record in records:
        counts[classify(record.get(field_name), rules)] += 1

    return [BucketCount(label=label, count=count) for label, count in counts.items()]


def trend_delta(records: List[Record], field_name: str) -> Trend:
    """Percentage change of a field between the two halves of a series.

    The series is split by index at len // 2, not by date midpoint, so the
    records must already be in date order. Missing values count as 0. When
    the first half averages 0 the delta is 100 if the second half is
    positive and 0 otherwise.

    Args:
        records: Date-ordered records
        field_name: Numeric field to compare

    Returns:
        Trend with percent=None when fewer than two records are given
    """
    if len(records) < 2:
        return Trend(field_name=field_name, percent=None)

    values = [to_number(record.get(field_name)) or 0.0 for record in records]
    half = len(values) // 2
    first, second = values[:half], values[half:]
    first_avg = sum(first) / len(first)
    second_avg = sum(second) / len(second)

    if first_avg == 0:
        percent = 100.0 if second_avg > 0 else 0.0
    else:
        percent = (second_avg - first_avg) / first_avg * 100

    return Trend(
        field_name=field_name,
        percent=percent,
        first_half_average=first_avg,
        second_half_average=second_avg,
    )


def aggregate(
    records: List[Record],
    numeric_fields: Sequence[str] = (),
    bucket_field: Optional[str] = None,
    bucket_rules: Sequence[BucketRule] = (),
    trend_field: Optional[str] = None,
) -> Statistics:
    """Compute the statistics summary of a collection.

    Pass the whole filtered population, not a page slice.
    """
    buckets = []
    if bucket_field is not None:
        buckets = bucket_counts(records, bucket_field, bucket_rules)

    trend = trend_delta(records, trend_field) if trend_field else None

    return Statistics(
        count=len(records),
        fields={name: summarize_field(records, name) for name in numeric_fields},
        buckets=buckets,
        trend=trend,
    )


@dataclass(frozen=True)
class SeriesPoint:
    """One point of a time series.

    Attributes:
        label: ISO date (or hour) of the point, 'unknown' for bad dates
        count: Records in the point
        total: Sum of the value field
        average: Mean of the value field over the point's records
    """
    label: str
    count: int
    total: float = 0.0
    average: float = 0.0


def daily_series(
    records: List[Record],
    date_field: str,
    value_field: Optional[str] = None,
) -> List[SeriesPoint]:
    """Per-calendar-day counts and totals in chronological order.

    Records with an unparsable date are gathered in a trailing 'unknown'
    point instead of being dropped.
    """
    days: Dict[str, List[Record]] = {}
    unknown: List[Record] = []
    for record in records:
        stamp = parse_date(record.get(date_field))
        if stamp is None:
            unknown.append(record)
            continue
        days.setdefault(stamp.date().isoformat(), []).append(record)

    ordered = [(day, days[day]) for day in sorted(days)]
    if unknown:
        ordered.append((UNKNOWN_BUCKET, unknown))

    return [_series_point(label, members, value_field) for label, members in ordered]


def _series_point(
    label: str,
    members: List[Record],
    value_field: Optional[str],
) -> SeriesPoint:
    if value_field is None:
        return SeriesPoint(label=label, count=len(members))
    total = sum(to_number(record.get(value_field)) or 0.0 for record in members)
    return SeriesPoint(
        label=label,
        count=len(members),
        total=total,
        average=total / len(members),
    )


def hourly_distribution(records: List[Record], date_field: str) -> List[int]:
    """Record counts for each hour of the day (index 0-23)."""
    hours = [0] * 24
    for record in records:
        stamp = parse_date(record.get(date_field))
        if stamp is not None:
            hours[stamp.hour] += 1
    return hours


def value_distribution(records: List[Record], field_name: str) -> List[BucketCount]:
    """Count records per distinct field value, in first-seen order."""
    counts: Dict[str, int] = {}
    for record in records:
        value = record.get(field_name)
        label = UNKNOWN_BUCKET if value is None else str(value)
        counts[label] = counts.get(label, 0) + 1
    return [BucketCount(label=label, count=count) for label, count in counts.items()]
