"""
Report execution engine.

Runs the full pipeline for one report definition: filter (with normalized
search), stable sort, grouping, statistics over the whole filtered set and
pagination, then renders exports from the result.
"""

import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from . import filters
from .config import ReportDefinition
from .export import report_filename, to_flat_text, to_printable_document
from .grouping import field_key, group
from .models import (
    FilterSpec,
    Group,
    Record,
    ReportQuery,
    ReportResult,
    SortSpec,
    Statistics,
)
from .pagination import paginate
from .sorting import sort_records
from .statistics import aggregate

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ('csv', 'html')
EXPORT_SCOPES = ('filtered', 'page')


class ReportEngine:
    """Executes report queries for one report definition.

    The engine holds only the immutable definition; all query state is
    passed in on every call.
    """

    def __init__(self, definition: ReportDefinition):
        """Initialize the engine.

        Args:
            definition: The report screen to execute queries for
        """
        self.definition = definition

    def filter_spec(self, query: ReportQuery) -> FilterSpec:
        """Build the filter spec for a query from the definition's fields."""
        return FilterSpec(
            search_term=query.search_term,
            search_fields=tuple(self.definition.search_fields),
            predicates=tuple(query.predicates),
            date_field=self.definition.date_field,
            date_range=query.date_range,
            quick_range=query.quick_range,
        )

    def sort_spec(self, query: ReportQuery) -> Optional[SortSpec]:
        return query.sort or self.definition.default_sort

    def group_field(self, query: ReportQuery) -> Optional[str]:
        # An empty string in the query turns grouping off
        if query.group_by is None:
            return self.definition.group_by
        return query.group_by or None

    def statistics(self, records: List[Record]) -> Statistics:
        """Aggregate statistics over a collection.

        The trend needs date order, so the records are ordered by the
        definition's date field first; other figures are order independent.
        """
        definition = self.definition
        if definition.trend_field:
            records = sort_records(
                records, SortSpec(key=definition.date_field), definition.registry
            )
        return aggregate(
            records,
            numeric_fields=definition.numeric_fields,
            bucket_field=definition.bucket_field,
            bucket_rules=definition.bucket_rules,
            trend_field=definition.trend_field,
        )

    def run(
        self,
        records: List[Record],
        query: Optional[ReportQuery] = None,
        now: Optional[datetime] = None,
    ) -> ReportResult:
        """Execute a query against a record snapshot.

        Args:
            records: Raw records (never mutated)
            query: Caller-owned query state, defaults to an empty query
            now: Evaluation instant for quick date ranges

        Returns:
            ReportResult with the filtered records, groups, statistics and page
        """
        start_time = time.time()
        query = query or ReportQuery()
        definition = self.definition

        filtered = filters.apply(
            records, self.filter_spec(query), definition.registry, now
        )
        ordered = sort_records(filtered, self.sort_spec(query), definition.registry)

        group_field = self.group_field(query)
        groups: Dict[str, List[Record]] = {}
        if group_field:
            groups = group(
                ordered, field_key(group_field), definition.canonicalize_groups
            )

        statistics = self.statistics(filtered)

        page_size = definition.page_size if query.page_size is None else query.page_size
        if groups and definition.paginate_groups:
            items: List[Any] = [Group(key=key, records=members) for key, members in groups.items()]
        else:
            items = ordered
        page = paginate(items, query.page_number, page_size)

        elapsed_ms = (time.time() - start_time) * 1000
        logger.debug(
            f"{definition.name}: {len(filtered)}/{len(records)} records matched, "
            f"{len(groups)} groups, page {page.page_number}/{page.total_pages}"
        )

        return ReportResult(
            records=ordered,
            groups=groups,
            statistics=statistics,
            page=page,
            total_records_processed=len(records),
            execution_time_ms=elapsed_ms,
        )

    def export(
        self,
        result: ReportResult,
        export_format: str = 'csv',
        scope: str = 'filtered',
        generated_at: Optional[datetime] = None,
    ) -> str:
        """Render a result as CSV or printable HTML.

        Args:
            result: Result of run()
            export_format: 'csv' or 'html'
            scope: 'filtered' for the whole filtered set, 'page' for the
                current page only
            generated_at: Timestamp printed in the HTML header

        Returns:
            The export document

        Raises:
            ValueError: If the format or scope is unknown
        """
        if export_format not in EXPORT_FORMATS:
            raise ValueError(f"Unknown export format: {export_format}")
        if scope not in EXPORT_SCOPES:
            raise ValueError(f"Unknown export scope: {scope}")

        groups = result.groups
        statistics = result.statistics
        if scope == 'page':
            groups = {}
            records: List[Record] = []
            for item in result.page.items:
                if isinstance(item, Group):
                    groups[item.key] = item.records
                    records.extend(item.records)
                else:
                    records.append(item)
            statistics = self.statistics(records)
        elif groups:
            records = [record for members in groups.values() for record in members]
        else:
            records = result.records

        columns = self.definition.columns
        if export_format == 'csv':
            return to_flat_text(records, columns)
        return to_printable_document(
            records,
            columns,
            self.definition.title,
            statistics=statistics,
            groups=groups or None,
            generated_at=generated_at,
        )

    def export_filename(self, export_format: str, on: Optional[datetime] = None) -> str:
        return report_filename(self.definition.name, export_format, on)
