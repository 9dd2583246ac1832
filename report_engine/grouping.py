"""
Grouping engine.

Partitions an already filtered and sorted collection into ordered groups and
derives per-group summaries for rankings such as "top vehicles" or
"top paths".
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .filters import to_number
from .models import GroupKeyFn, Record

UNASSIGNED = 'Unassigned'


def field_key(field_name: str, default: str = UNASSIGNED) -> GroupKeyFn:
    """Build a total key function reading one field.

    Missing or blank values map to ``default`` so every record lands in
    exactly one group.
    """
    def key_fn(record: Record) -> str:
        value = record.get(field_name)
        if value is None:
            return default
        text = str(value)
        return text if text.strip() else default

    return key_fn


def canonical_key(key: str) -> str:
    """Trim and upper-case a group key (e.g. a license plate)."""
    return key.strip().upper()


def group(
    records: List[Record],
    key_fn: GroupKeyFn,
    canonicalize: bool = False,
) -> Dict[str, List[Record]]:
    """Partition records by key in a single pass.

    Group order is first-seen key order and record order within a group is
    input order. Exceptions raised by ``key_fn`` propagate to the caller.

    Args:
        records: Filtered and sorted records
        key_fn: Total function assigning each record one key
        canonicalize: Merge keys that differ only by case or padding

    Returns:
        Ordered mapping of group key to records
    """
    groups: Dict[str, List[Record]] = {}
    for record in records:
        key = key_fn(record)
        if canonicalize:
            key = canonical_key(key)
        if key not in groups:
            groups[key] = []
        groups[key].append(record)
    return groups


@dataclass(frozen=True)
class GroupSummary:
    """Per-group figures used for ranking tables.

    Attributes:
        key: Group key
        count: Number of records in the group
        total: Sum of the summarized numeric field
        average: Mean of the numeric field, 0 when no values
        maximum: Largest value or None
    """
    key: str
    count: int
    total: float = 0.0
    average: float = 0.0
    maximum: Optional[float] = None


def _numeric_values(records: List[Record], field_name: str) -> List[float]:
    values = [to_number(record.get(field_name)) for record in records]
    return [value for value in values if value is not None]


def summarize_groups(
    groups: Dict[str, List[Record]],
    field_name: Optional[str] = None,
) -> List[GroupSummary]:
    """Summarize each group, in group order."""
    summaries = []
    for key, members in groups.items():
        if field_name is None:
            summaries.append(GroupSummary(key=key, count=len(members)))
            continue
        values = _numeric_values(members, field_name)
        total = sum(values)
        summaries.append(GroupSummary(
            key=key,
            count=len(members),
            total=total,
            average=total / len(values) if values else 0.0,
            maximum=max(values) if values else None,
        ))
    return summaries


def rank_groups(
    summaries: List[GroupSummary],
    by: str = 'count',
    limit: Optional[int] = 10,
) -> List[GroupSummary]:
    """Return the top groups by a summary attribute, largest first.

    Ties keep group order; groups without a value rank last.
    """
    if by not in ('count', 'total', 'average', 'maximum'):
        raise ValueError(f"Cannot rank groups by '{by}'")

    def sort_key(summary: GroupSummary) -> Any:
        value = getattr(summary, by)
        return float('-inf') if value is None else value

    ranked = sorted(summaries, key=sort_key, reverse=True)
    return ranked if limit is None else ranked[:limit]
