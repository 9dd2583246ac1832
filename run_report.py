#!/usr/bin/env python3
"""
CLI entry point for batch report runs.

Loads NDJSON or JSON array-formatted records, runs one configured report
with the given search, filters, sort and page, and prints the page as JSON
or writes a CSV/HTML export.
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List

from report_engine import (
    DateRange,
    QuickRange,
    ReportEngine,
    ReportQuery,
    ReportResult,
    SortDirection,
    SortSpec,
    load_definitions,
    parse_filters,
)
from report_engine.config import setup_logging
from report_engine.engine import EXPORT_FORMATS, EXPORT_SCOPES
from report_engine.models import Group
from report_engine.pagination import page_window

logger = logging.getLogger("run_report")


def serialize_for_json(obj: Any) -> Any:
    """Recursively serialize objects for JSON output.

    Args:
        obj: Object to serialize

    Returns:
        JSON-serializable version of the object
    """
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    elif isinstance(obj, dict):
        return {k: serialize_for_json(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [serialize_for_json(item) for item in obj]
    else:
        return obj


def load_records(input_file: str) -> List[Dict[str, Any]]:
    """Load records from NDJSON or JSON array file.

    Args:
        input_file: Path to input file (NDJSON or JSON)

    Returns:
        List of record dictionaries

    Raises:
        ValueError: If file format is invalid
    """
    records: List[Dict[str, Any]] = []
    path = Path(input_file)

    if not path.exists():
        raise ValueError(f"Input file not found: {input_file}")

    with open(path, 'r', encoding='utf-8') as f:
        content = f.read().strip()

    if not content:
        return records

    if content.startswith('['):
        try:
            records = json.loads(content)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON array: {e}")
        if not all(isinstance(record, dict) for record in records):
            raise ValueError("JSON array must contain only objects")
        return records

    for line_num, line in enumerate(content.split('\n'), 1):
        line = line.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            raise ValueError(f"Line {line_num}: Invalid JSON: {e}")
        if not isinstance(record, dict):
            raise ValueError(f"Line {line_num}: Record must be a JSON object")
        records.append(record)

    return records


def build_query(args: argparse.Namespace) -> ReportQuery:
    """Build the report query from parsed arguments.

    Raises:
        SyntaxError: If the filter expression is malformed
    """
    date_range = None
    if args.date_from or args.date_to:
        date_range = DateRange(start=args.date_from, end=args.date_to)

    sort = None
    if args.sort:
        direction = SortDirection.DESCENDING if args.desc else SortDirection.ASCENDING
        sort = SortSpec(key=args.sort, direction=direction)

    return ReportQuery(
        search_term=args.search,
        predicates=tuple(parse_filters(args.filter)),
        date_range=date_range,
        quick_range=args.quick_range,
        sort=sort,
        group_by=args.group_by,
        page_number=args.page,
        page_size=args.page_size,
    )


def result_to_dict(result: ReportResult) -> Dict[str, Any]:
    """Convert a report result into the printed JSON view."""
    page = result.page
    items = [
        {"key": item.key, "count": item.count, "records": item.records}
        if isinstance(item, Group) else item
        for item in page.items
    ]

    statistics = result.statistics
    trend = None
    if statistics.trend is not None:
        trend = asdict(statistics.trend)
        trend["label"] = statistics.trend.label

    return {
        "total_matches": len(result.records),
        "total_records_processed": result.total_records_processed,
        "execution_time_ms": result.execution_time_ms,
        "page": {
            "page_number": page.page_number,
            "page_size": page.page_size,
            "total_pages": page.total_pages,
            "total_items": page.total_items,
            "window": page_window(page),
        },
        "statistics": {
            "count": statistics.count,
            "fields": {name: asdict(summary) for name, summary in statistics.fields.items()},
            "buckets": statistics.bucket_map(),
            "trend": trend,
        },
        "groups": {key: len(members) for key, members in result.groups.items()},
        "items": items,
    }


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Report Engine - Filter, aggregate and export operational records"
    )

    parser.add_argument(
        "records",
        help="Path to records file (NDJSON or JSON array format)",
    )

    parser.add_argument(
        "-r", "--report",
        required=True,
        help="Name of the report definition to run",
    )

    parser.add_argument(
        "-c", "--config",
        help="Path to report definitions (YAML), defaults to the bundled reports.yaml",
    )

    parser.add_argument(
        "-s", "--search",
        help="Free-text search term",
    )

    parser.add_argument(
        "-f", "--filter",
        help="Filter expression, e.g. 'status >= 500 and method == GET'",
    )

    parser.add_argument(
        "--quick-range",
        choices=QuickRange.TOKENS,
        help="Relative date window",
    )

    parser.add_argument("--from", dest="date_from", help="Start date (inclusive)")
    parser.add_argument("--to", dest="date_to", help="End date (inclusive)")

    parser.add_argument("--sort", help="Sort key")
    parser.add_argument("--desc", action="store_true", help="Sort descending")

    parser.add_argument(
        "--group-by",
        help="Group field (empty string disables the report's default grouping)",
    )

    parser.add_argument("--page", type=int, default=1, help="Page number")
    parser.add_argument("--page-size", type=int, help="Page size")

    parser.add_argument(
        "--export",
        choices=EXPORT_FORMATS,
        help="Export the filtered records instead of printing the page",
    )

    parser.add_argument(
        "--scope",
        choices=EXPORT_SCOPES,
        default="filtered",
        help="Export all filtered records or only the requested page",
    )

    parser.add_argument(
        "-o", "--output",
        help="Output file path (defaults to <report>_<date>.<format> for exports)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    args = parser.parse_args()
    setup_logging(args.verbose)

    try:
        definitions = load_definitions(args.config)
        if args.report not in definitions:
            raise ValueError(
                f"Unknown report '{args.report}' "
                f"(available: {', '.join(definitions)})"
            )
        engine = ReportEngine(definitions[args.report])

        logger.debug(f"Loading records from {args.records}")
        records = load_records(args.records)
        logger.info(f"Loaded {len(records)} records")

        result = engine.run(records, build_query(args))
    except (SyntaxError, ValueError) as e:
        print(json.dumps({"error": str(e)}, indent=2), file=sys.stderr)
        sys.exit(1)

    if args.export:
        generated_at = datetime.now()
        content = engine.export(result, args.export, args.scope, generated_at=generated_at)
        output_file = args.output or engine.export_filename(args.export, generated_at)
        Path(output_file).write_text(content, encoding='utf-8')
        logger.info(f"Export saved to {output_file}")
        return

    output = json.dumps(serialize_for_json(result_to_dict(result)), indent=2)
    if args.output:
        Path(args.output).write_text(output, encoding='utf-8')
        logger.info(f"Results saved to {args.output}")
    else:
        print(output)


if __name__ == "__main__":
    main()
