"""
Data models for the operational-records report engine.

Defines dataclasses for field typing, filter predicates, sort and query state,
bucket rules, statistics and pages. Every model is treated as immutable by the
engine; the "with_*" helpers on ReportQuery return new instances.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

Record = Dict[str, Any]
GroupKeyFn = Callable[[Record], str]
DateLike = Union[str, date, datetime, None]


class FieldType:
    """Semantic field types understood by the comparator and filters."""
    STRING = 'string'
    NUMBER = 'number'
    DATE = 'date'
    ENUM = 'enum'

    ALL = (STRING, NUMBER, DATE, ENUM)


class SortDirection:
    ASCENDING = 'ascending'
    DESCENDING = 'descending'


class QuickRange:
    """Named relative date windows resolved at evaluation time."""
    TODAY = 'today'
    YESTERDAY = 'yesterday'
    LAST_7_DAYS = 'last7days'
    LAST_30_DAYS = 'last30days'
    THIS_MONTH = 'thismonth'
    ALL = 'all'

    TOKENS = (TODAY, YESTERDAY, LAST_7_DAYS, LAST_30_DAYS, THIS_MONTH, ALL)


@dataclass(frozen=True)
class FieldRegistry:
    """Declares the semantic type of each field addressed by name.

    Attributes:
        types: Mapping of field name to one of FieldType.ALL
        default: Type assumed for fields that are not registered
    """
    types: Dict[str, str] = field(default_factory=dict)
    default: str = FieldType.STRING

    def __post_init__(self):
        for name, field_type in self.types.items():
            if field_type not in FieldType.ALL:
                raise ValueError(
                    f"Unknown field type '{field_type}' for field '{name}'"
                )

    def type_of(self, field_name: str) -> str:
        """Return the declared type of a field."""
        return self.types.get(field_name, self.default)


@dataclass(frozen=True)
class FieldPredicate:
    """Represents a single field comparison predicate.

    Attributes:
        field_name: The record field to test (e.g. 'method', 'status')
        operator: One of OPERATORS
        value: The value to compare against; empty values disable the predicate
    """
    field_name: str
    operator: str
    value: Any

    OPERATORS = ('eq', 'ne', 'contains', 'gt', 'gte', 'lt', 'lte', 'in')

    def __post_init__(self):
        if self.operator not in self.OPERATORS:
            raise ValueError(f"Unknown operator: {self.operator}")

    @property
    def is_active(self) -> bool:
        """A predicate with an unset value places no constraint."""
        if self.value is None:
            return False
        if isinstance(self.value, str):
            return self.value.strip() != ''
        if isinstance(self.value, (list, tuple, set, frozenset)):
            return len(self.value) > 0
        return True


@dataclass(frozen=True)
class DateRange:
    """Inclusive date window. Either bound may be missing."""
    start: DateLike = None
    end: DateLike = None

    @property
    def is_empty(self) -> bool:
        return _blank(self.start) and _blank(self.end)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == '')


@dataclass(frozen=True)
class FilterSpec:
    """The set of filter predicates for one query.

    Attributes:
        search_term: Free-text term matched against search_fields
        search_fields: Fields searched by the term (any match retains a record)
        predicates: Field predicates combined with AND logic
        date_field: Field holding the record's date
        date_range: Explicit window; wins over quick_range when not empty
        quick_range: One of QuickRange.TOKENS
    """
    search_term: Optional[str] = None
    search_fields: Sequence[str] = ()
    predicates: Sequence[FieldPredicate] = ()
    date_field: str = 'timestamp'
    date_range: Optional[DateRange] = None
    quick_range: Optional[str] = None

    def __post_init__(self):
        if self.quick_range and self.quick_range not in QuickRange.TOKENS:
            raise ValueError(f"Unknown quick range: {self.quick_range}")


@dataclass(frozen=True)
class SortSpec:
    """The active sort key and direction."""
    key: str
    direction: str = SortDirection.ASCENDING

    def __post_init__(self):
        if self.direction not in (SortDirection.ASCENDING, SortDirection.DESCENDING):
            raise ValueError(f"Unknown sort direction: {self.direction}")

    @property
    def descending(self) -> bool:
        return self.direction == SortDirection.DESCENDING

    def toggle(self, key: str) -> 'SortSpec':
        """Flip direction for the same key, start ascending for a new key."""
        if key == self.key:
            flipped = (
                SortDirection.ASCENDING if self.descending
                else SortDirection.DESCENDING
            )
            return SortSpec(key=key, direction=flipped)
        return SortSpec(key=key)


@dataclass(frozen=True)
class BucketRule:
    """A labeled classification rule over a single numeric value.

    Attributes:
        label: Bucket label reported in distributions
        predicate: Called with the float value; first matching rule wins
    """
    label: str
    predicate: Callable[[float], bool]

    @classmethod
    def bounded(
        cls,
        label: str,
        gt: Optional[float] = None,
        gte: Optional[float] = None,
        lt: Optional[float] = None,
        lte: Optional[float] = None,
    ) -> 'BucketRule':
        """Build a rule from threshold bounds; all given bounds must hold."""
        def predicate(value: float) -> bool:
            if gt is not None and not value > gt:
                return False
            if gte is not None and not value >= gte:
                return False
            if lt is not None and not value < lt:
                return False
            if lte is not None and not value <= lte:
                return False
            return True

        return cls(label=label, predicate=predicate)


@dataclass(frozen=True)
class BucketCount:
    label: str
    count: int


@dataclass(frozen=True)
class FieldSummary:
    """Scalar summary of one numeric field.

    Attributes:
        field_name: The summarized field
        total: Sum of the numeric values
        average: Mean of the numeric values, 0 when there are none
        minimum: Smallest value or None
        maximum: Largest value or None
        samples: Number of records that carried a numeric value
    """
    field_name: str
    total: float
    average: float
    minimum: Optional[float]
    maximum: Optional[float]
    samples: int


@dataclass(frozen=True)
class Trend:
    """Signed percentage change between the two halves of a series."""
    field_name: str
    percent: Optional[float]
    first_half_average: Optional[float] = None
    second_half_average: Optional[float] = None

    STABLE_THRESHOLD = 5.0

    @property
    def sufficient(self) -> bool:
        return self.percent is not None

    @property
    def label(self) -> str:
        if self.percent is None:
            return 'insufficient data'
        if abs(self.percent) < self.STABLE_THRESHOLD:
            return 'stable'
        return 'increasing' if self.percent > 0 else 'decreasing'


@dataclass(frozen=True)
class Statistics:
    """Derived summary of a record collection."""
    count: int
    fields: Dict[str, FieldSummary] = field(default_factory=dict)
    buckets: List[BucketCount] = field(default_factory=list)
    trend: Optional[Trend] = None

    def bucket_map(self) -> Dict[str, int]:
        return {bucket.label: bucket.count for bucket in self.buckets}


@dataclass(frozen=True)
class Group:
    """A named group of records, used when pages hold groups."""
    key: str
    records: List[Record]

    @property
    def count(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class Page:
    """One page of an ordered collection.

    Attributes:
        items: Records (or group entries) on this page
        page_number: 1-based page number after clamping
        page_size: Page size after clamping
        total_pages: Always at least 1, an empty collection is one empty page
        total_items: Size of the whole collection
    """
    items: List[Any]
    page_number: int
    page_size: int
    total_pages: int
    total_items: int

    @property
    def has_previous(self) -> bool:
        return self.page_number > 1

    @property
    def has_next(self) -> bool:
        return self.page_number < self.total_pages

    @property
    def start_index(self) -> int:
        """1-based index of the first item on the page, 0 when empty."""
        if not self.items:
            return 0
        return (self.page_number - 1) * self.page_size + 1

    @property
    def end_index(self) -> int:
        if not self.items:
            return 0
        return self.start_index + len(self.items) - 1

    @staticmethod
    def count_pages(total_items: int, page_size: int) -> int:
        return max(1, math.ceil(total_items / page_size))


@dataclass(frozen=True)
class ReportQuery:
    """Query state owned by the caller and passed in on every run.

    Attributes:
        search_term: Free-text search term
        predicates: Field predicates (AND)
        date_range: Explicit date window
        quick_range: Relative date window token
        sort: Active sort, or None for the definition default
        group_by: Field to group by, or None for the definition default
        page_number: Requested 1-based page
        page_size: Requested page size, or None for the definition default
    """
    search_term: Optional[str] = None
    predicates: Sequence[FieldPredicate] = ()
    date_range: Optional[DateRange] = None
    quick_range: Optional[str] = None
    sort: Optional[SortSpec] = None
    group_by: Optional[str] = None
    page_number: int = 1
    page_size: Optional[int] = None

    def with_sort(self, key: str) -> 'ReportQuery':
        if self.sort is None:
            return replace(self, sort=SortSpec(key=key))
        return replace(self, sort=self.sort.toggle(key))

    def with_search(self, term: Optional[str]) -> 'ReportQuery':
        return replace(self, search_term=term, page_number=1)

    def with_filters(
        self,
        predicates: Sequence[FieldPredicate] = (),
        date_range: Optional[DateRange] = None,
        quick_range: Optional[str] = None,
    ) -> 'ReportQuery':
        return replace(
            self,
            predicates=tuple(predicates),
            date_range=date_range,
            quick_range=quick_range,
            page_number=1,
        )

    def with_page(self, page_number: int) -> 'ReportQuery':
        return replace(self, page_number=page_number)

    def with_page_size(self, page_size: int) -> 'ReportQuery':
        """Change the page size; the page number always resets to 1."""
        return replace(self, page_size=page_size, page_number=1)


@dataclass
class ReportResult:
    """Result of running a report query against records.

    Attributes:
        records: Filtered and sorted records (the whole population)
        groups: Ordered groups of the sorted records, empty when ungrouped
        statistics: Statistics over the whole filtered population
        page: The requested page, clamped
        total_records_processed: Size of the raw input
        execution_time_ms: Execution time in milliseconds
    """
    records: List[Record]
    groups: Dict[str, List[Record]]
    statistics: Statistics
    page: Page
    total_records_processed: int
    execution_time_ms: float
