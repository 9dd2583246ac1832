"""
FastAPI application for the Report Engine REST API.

Provides endpoints for:
- Listing the configured report screens
- Running a report query against a batch of records
- Downloading CSV or printable HTML exports
- Chart breakdowns (daily series, hourly and per-value distributions)
"""

import logging
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, Response
from pydantic import BaseModel, Field

from .config import ReportDefinition, load_definitions
from .engine import ReportEngine
from .grouping import GroupSummary, rank_groups, summarize_groups
from .models import (
    DateRange,
    FieldPredicate,
    Group,
    Page,
    ReportQuery,
    ReportResult,
    SortDirection,
    SortSpec,
    Statistics,
)
from .pagination import page_window
from .parser import parse_filters
from .statistics import daily_series, hourly_distribution, value_distribution

logger = logging.getLogger(__name__)

MEDIA_TYPES = {
    'csv': 'text/csv; charset=utf-8',
    'html': 'text/html; charset=utf-8',
}


# Pydantic models for API requests/responses


class ValidationError(BaseModel):
    """Validation error details."""
    field: str
    message: str


class ValidationState(BaseModel):
    """Validation state for records."""
    is_valid: bool
    errors: List[ValidationError] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class PredicateModel(BaseModel):
    """A structured field predicate."""
    field: str
    operator: str = 'eq'
    value: Any = None


class QueryRequest(BaseModel):
    """Records plus the caller-owned query state."""
    records: List[Any] = Field(..., description="List of record objects")
    search_term: Optional[str] = None
    filters: Optional[str] = Field(None, description="Filter expression, e.g. 'status >= 500'")
    predicates: List[PredicateModel] = Field(default_factory=list)
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    quick_range: Optional[str] = None
    sort_key: Optional[str] = None
    sort_direction: str = SortDirection.ASCENDING
    group_by: Optional[str] = Field(None, description="Group field; empty string disables grouping")
    page: int = 1
    page_size: Optional[int] = None


class ReportInfo(BaseModel):
    """A configured report screen."""
    name: str
    title: str
    fields: Dict[str, str]
    search_fields: List[str]
    columns: List[str]
    group_by: Optional[str] = None
    page_size: int


class PageModel(BaseModel):
    """Page metadata."""
    page_number: int
    page_size: int
    total_pages: int
    total_items: int
    has_previous: bool
    has_next: bool
    start_index: int
    end_index: int
    window: List[int]


class FieldSummaryModel(BaseModel):
    field_name: str
    total: float
    average: float
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    samples: int


class BucketModel(BaseModel):
    label: str
    count: int


class TrendModel(BaseModel):
    field_name: str
    percent: Optional[float] = None
    label: str
    first_half_average: Optional[float] = None
    second_half_average: Optional[float] = None


class StatisticsModel(BaseModel):
    """Statistics over the whole filtered population."""
    count: int
    fields: Dict[str, FieldSummaryModel] = Field(default_factory=dict)
    buckets: List[BucketModel] = Field(default_factory=list)
    trend: Optional[TrendModel] = None


class GroupSummaryModel(BaseModel):
    key: str
    count: int
    total: float = 0.0
    average: float = 0.0
    maximum: Optional[float] = None


class QueryResponse(BaseModel):
    """Response from the query endpoint."""
    report: str
    items: List[Dict[str, Any]]
    page: PageModel
    statistics: StatisticsModel
    groups: List[GroupSummaryModel]
    total_matches: int
    total_records_processed: int
    execution_time_ms: float
    validation_state: ValidationState


class SeriesPointModel(BaseModel):
    label: str
    count: int
    total: float = 0.0
    average: float = 0.0


class BreakdownResponse(BaseModel):
    """Chart data derived from the filtered population."""
    report: str
    daily: List[SeriesPointModel]
    hourly: List[int]
    distribution_field: Optional[str] = None
    distribution: List[BucketModel]
    top_groups: List[GroupSummaryModel]


def validate_records(
    records: List[Any],
    definition: ReportDefinition,
) -> ValidationState:
    """Validate records for object shape, ids and date presence.

    Args:
        records: List of record dictionaries to validate
        definition: Report the records are meant for

    Returns:
        ValidationState with validation results
    """
    errors: List[ValidationError] = []
    warnings: List[str] = []

    if not records:
        warnings.append("Records list is empty")
        return ValidationState(is_valid=True, errors=errors, warnings=warnings)

    missing_id = 0
    missing_date = 0
    for i, record in enumerate(records):
        if not isinstance(record, dict):
            errors.append(
                ValidationError(
                    field=f"records[{i}]",
                    message="Record must be a dictionary"
                )
            )
            continue
        if record.get('id') is None:
            missing_id += 1
        if record.get(definition.date_field) is None:
            missing_date += 1

    if missing_id:
        warnings.append(f"{missing_id} records have no 'id'; sort ties may be unstable")
    if missing_date:
        warnings.append(
            f"{missing_date} records have no '{definition.date_field}' "
            f"and are excluded by date ranges"
        )

    return ValidationState(is_valid=len(errors) == 0, errors=errors, warnings=warnings)


def build_query(request: QueryRequest) -> ReportQuery:
    """Translate a request body into a ReportQuery.

    Raises:
        SyntaxError: If the filter expression is malformed
        ValueError: If an operator or sort direction is unknown
    """
    predicates = parse_filters(request.filters)
    predicates.extend(
        FieldPredicate(field_name=p.field, operator=p.operator, value=p.value)
        for p in request.predicates
    )

    date_range = None
    if request.date_from or request.date_to:
        date_range = DateRange(start=request.date_from, end=request.date_to)

    sort = None
    if request.sort_key:
        sort = SortSpec(key=request.sort_key, direction=request.sort_direction)

    return ReportQuery(
        search_term=request.search_term,
        predicates=tuple(predicates),
        date_range=date_range,
        quick_range=request.quick_range or None,
        sort=sort,
        group_by=request.group_by,
        page_number=request.page,
        page_size=request.page_size,
    )


def summary_field(definition: ReportDefinition) -> Optional[str]:
    """Numeric field summarized per group: the trend field, else the first numeric field."""
    if definition.trend_field:
        return definition.trend_field
    return definition.numeric_fields[0] if definition.numeric_fields else None


def _page_model(page: Page) -> PageModel:
    return PageModel(
        page_number=page.page_number,
        page_size=page.page_size,
        total_pages=page.total_pages,
        total_items=page.total_items,
        has_previous=page.has_previous,
        has_next=page.has_next,
        start_index=page.start_index,
        end_index=page.end_index,
        window=page_window(page),
    )


def _statistics_model(statistics: Statistics) -> StatisticsModel:
    trend = None
    if statistics.trend is not None:
        trend = TrendModel(
            field_name=statistics.trend.field_name,
            percent=statistics.trend.percent,
            label=statistics.trend.label,
            first_half_average=statistics.trend.first_half_average,
            second_half_average=statistics.trend.second_half_average,
        )
    return StatisticsModel(
        count=statistics.count,
        fields={
            name: FieldSummaryModel(**asdict(summary))
            for name, summary in statistics.fields.items()
        },
        buckets=[BucketModel(**asdict(bucket)) for bucket in statistics.buckets],
        trend=trend,
    )


def _group_models(summaries: List[GroupSummary]) -> List[GroupSummaryModel]:
    return [GroupSummaryModel(**asdict(summary)) for summary in summaries]


def _page_items(page: Page) -> List[Dict[str, Any]]:
    items = []
    for item in page.items:
        if isinstance(item, Group):
            items.append({"key": item.key, "count": item.count, "records": item.records})
        else:
            items.append(item)
    return items


def create_app(definitions: Optional[Dict[str, ReportDefinition]] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        definitions: Optional report definitions (for testing); the bundled
            reports.yaml is loaded when omitted

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="Report Engine API",
        description="REST API for filtering, aggregating and exporting operational records",
        version="1.0.0"
    )

    reports = definitions if definitions is not None else load_definitions()

    def get_engine(name: str) -> ReportEngine:
        definition = reports.get(name)
        if definition is None:
            raise HTTPException(
                status_code=404,
                detail=f"Report '{name}' not found"
            )
        return ReportEngine(definition)

    def run_query(engine: ReportEngine, request: QueryRequest) -> ReportResult:
        records = [record for record in request.records if isinstance(record, dict)]
        try:
            query = build_query(request)
            return engine.run(records, query)
        except (SyntaxError, ValueError) as e:
            logger.debug(f"{engine.definition.name}: rejected query: {e}")
            raise HTTPException(
                status_code=400,
                detail=f"Invalid query: {str(e)}"
            )

    # API Routes

    @app.get("/api/reports", response_model=List[ReportInfo])
    async def list_reports() -> List[ReportInfo]:
        """Get all configured reports.

        Returns:
            List of report descriptions
        """
        return [
            ReportInfo(
                name=definition.name,
                title=definition.title,
                fields=dict(definition.registry.types),
                search_fields=list(definition.search_fields),
                columns=[column.header for column in definition.columns],
                group_by=definition.group_by,
                page_size=definition.page_size,
            )
            for definition in reports.values()
        ]

    @app.post("/api/reports/{name}/query", response_model=QueryResponse)
    async def query_report(name: str, request: QueryRequest) -> QueryResponse:
        """Run a report query against a batch of records.

        Args:
            name: Report name
            request: Records and query state

        Returns:
            QueryResponse with the page, statistics and group summaries

        Raises:
            HTTPException: 404 for an unknown report, 400 for a bad query
        """
        engine = get_engine(name)
        validation_state = validate_records(request.records, engine.definition)
        result = run_query(engine, request)

        summaries = summarize_groups(result.groups, summary_field(engine.definition))

        return QueryResponse(
            report=name,
            items=_page_items(result.page),
            page=_page_model(result.page),
            statistics=_statistics_model(result.statistics),
            groups=_group_models(summaries),
            total_matches=len(result.records),
            total_records_processed=result.total_records_processed,
            execution_time_ms=result.execution_time_ms,
            validation_state=validation_state,
        )

    @app.post("/api/reports/{name}/export")
    async def export_report(
        name: str,
        request: QueryRequest,
        format: str = Query("csv", pattern="^(csv|html)$"),
        scope: str = Query("filtered", pattern="^(filtered|page)$"),
    ) -> Response:
        """Export the filtered records (or the current page) as a download.

        Args:
            name: Report name
            request: Records and query state
            format: Export format (csv or html)
            scope: 'filtered' for all matches, 'page' for the current page

        Returns:
            Attachment response named '<report>_<date>.<format>'
        """
        engine = get_engine(name)
        result = run_query(engine, request)

        generated_at = datetime.now()
        content = engine.export(result, format, scope, generated_at=generated_at)
        filename = engine.export_filename(format, generated_at)

        return Response(
            content=content,
            media_type=MEDIA_TYPES[format],
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.post("/api/reports/{name}/breakdown", response_model=BreakdownResponse)
    async def breakdown_report(
        name: str,
        request: QueryRequest,
        field: Optional[str] = Query(None, description="Field counted per value"),
        limit: int = Query(10, ge=1),
    ) -> BreakdownResponse:
        """Chart data for the filtered records.

        Args:
            name: Report name
            request: Records and query state
            field: Field for the value distribution, the bucket field by default
            limit: Number of top groups returned

        Returns:
            BreakdownResponse with series, distributions and top groups
        """
        engine = get_engine(name)
        definition = engine.definition
        result = run_query(engine, request)

        value_field = summary_field(definition)
        distribution_field = field or definition.bucket_field or definition.group_by
        distribution = []
        if distribution_field:
            distribution = value_distribution(result.records, distribution_field)

        top_groups = rank_groups(
            summarize_groups(result.groups, value_field), by='count', limit=limit
        )

        return BreakdownResponse(
            report=name,
            daily=[
                SeriesPointModel(**asdict(point))
                for point in daily_series(result.records, definition.date_field, value_field)
            ],
            hourly=hourly_distribution(result.records, definition.date_field),
            distribution_field=distribution_field,
            distribution=[BucketModel(**asdict(bucket)) for bucket in distribution],
            top_groups=_group_models(top_groups),
        )

    @app.get("/health")
    async def health_check() -> Dict[str, str]:
        """Health check endpoint.

        Returns:
            Health status
        """
        return {"status": "healthy"}

    return app


# Create the app instance
app = create_app()
