"""
Fleet Report Engine Package.

A lightweight query pipeline for operational records: normalized search,
typed filters, stable sorting, grouping, statistics, pagination and
CSV/HTML exports.
"""

from .config import ReportDefinition, load_definitions
from .debounce import LatestWinsScheduler
from .engine import ReportEngine
from .export import Column, to_flat_text, to_printable_document
from .filters import apply
from .grouping import group
from .models import (
    BucketRule,
    DateRange,
    FieldPredicate,
    FieldRegistry,
    FieldType,
    FilterSpec,
    Page,
    QuickRange,
    ReportQuery,
    ReportResult,
    SortDirection,
    SortSpec,
    Statistics,
)
from .normalizer import normalize
from .pagination import paginate
from .parser import parse_filters
from .sorting import compare, sort_records
from .statistics import aggregate

__all__ = [
    'BucketRule',
    'Column',
    'DateRange',
    'FieldPredicate',
    'FieldRegistry',
    'FieldType',
    'FilterSpec',
    'LatestWinsScheduler',
    'Page',
    'QuickRange',
    'ReportDefinition',
    'ReportEngine',
    'ReportQuery',
    'ReportResult',
    'SortDirection',
    'SortSpec',
    'Statistics',
    'aggregate',
    'apply',
    'compare',
    'group',
    'load_definitions',
    'normalize',
    'paginate',
    'parse_filters',
    'sort_records',
    'to_flat_text',
    'to_printable_document',
]
