"""
Report export.

Serializes records to a quoted CSV dialect and to a self-contained printable
HTML document. Both formats take the same ordered column definitions used by
the on-screen table, so exports and display cannot drift apart.
"""

import csv
import io
import re
from dataclasses import dataclass
from datetime import date, datetime
from html import escape
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from .models import Record, Statistics

Accessor = Union[str, Callable[[Record], Any]]


@dataclass(frozen=True)
class Column:
    """One exported column.

    Attributes:
        header: Column title
        accessor: Field name, or a function computing the cell from a record
    """
    header: str
    accessor: Accessor

    def value(self, record: Record) -> Any:
        if callable(self.accessor):
            return self.accessor(record)
        return record.get(self.accessor)


def format_cell(value: Any) -> str:
    """Render a cell value as text; missing values are empty cells."""
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'Yes' if value else 'No'
    if isinstance(value, datetime):
        return value.strftime('%Y-%m-%d %H:%M:%S')
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _format_number(value: Optional[float], digits: int = 2) -> str:
    if value is None:
        return '-'
    return f"{value:,.{digits}f}"


def to_flat_text(records: Sequence[Record], columns: Sequence[Column]) -> str:
    """Render records as CSV text with one header row.

    Cells containing the delimiter, a quote or a line break are quoted and
    inner quotes doubled.

    Args:
        records: Records in export order
        columns: Ordered column definitions

    Returns:
        CSV document using '\\n' line endings
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator='\n')
    writer.writerow([column.header for column in columns])
    for record in records:
        writer.writerow([format_cell(column.value(record)) for column in columns])
    return buffer.getvalue()


_STYLE = """
body { font-family: -apple-system, 'Segoe UI', Roboto, Arial, sans-serif;
       color: #333; margin: 0; padding: 20px; background: #fff; }
.header { text-align: center; border-bottom: 3px solid #3b82f6;
          padding-bottom: 16px; margin-bottom: 24px; }
.header h1 { color: #1f2937; margin: 0; font-size: 26px; }
.header p { color: #6b7280; margin: 6px 0 0; }
.stats-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(180px, 1fr));
              gap: 16px; margin-bottom: 24px; }
.stat-card { background: #f8fafc; border: 1px solid #e2e8f0; border-radius: 8px;
             padding: 16px; text-align: center; }
.stat-value { font-size: 22px; font-weight: bold; }
.stat-label { color: #6b7280; font-size: 12px; }
h2 { color: #1f2937; font-size: 18px; margin: 24px 0 8px; }
table { width: 100%; border-collapse: collapse; font-size: 12px; margin-top: 8px; }
th, td { border: 1px solid #e5e7eb; padding: 6px 8px; text-align: left; }
th { background: #f9fafb; font-weight: 600; color: #374151; }
.empty { color: #9ca3af; font-style: italic; }
@media print { body { padding: 0; } .stat-card { break-inside: avoid; } }
"""


def _stat_card(value: str, label: str) -> str:
    return (
        '<div class="stat-card">'
        f'<div class="stat-value">{escape(value)}</div>'
        f'<div class="stat-label">{escape(label)}</div>'
        '</div>'
    )


def _statistics_html(statistics: Statistics) -> str:
    cards = [_stat_card(f"{statistics.count:,}", 'Total records')]
    for name, summary in statistics.fields.items():
        cards.append(_stat_card(_format_number(summary.total), f"Total {name}"))
        cards.append(_stat_card(_format_number(summary.average), f"Average {name}"))
        cards.append(_stat_card(_format_number(summary.maximum), f"Highest {name}"))
    if statistics.trend is not None:
        trend = statistics.trend
        value = '-' if trend.percent is None else f"{trend.percent:+.1f}%"
        cards.append(_stat_card(value, f"Trend {trend.field_name} ({trend.label})"))

    parts = ['<div class="stats-grid">', *cards, '</div>']

    if statistics.buckets:
        parts.append('<h2>Distribution</h2>')
        parts.append('<table><thead><tr><th>Bucket</th><th>Count</th><th>Share</th></tr></thead><tbody>')
        for bucket in statistics.buckets:
            share = bucket.count / statistics.count * 100 if statistics.count else 0.0
            parts.append(
                f'<tr><td>{escape(bucket.label)}</td><td>{bucket.count}</td>'
                f'<td>{share:.1f}%</td></tr>'
            )
        parts.append('</tbody></table>')
    return '\n'.join(parts)


def _table_html(records: Sequence[Record], columns: Sequence[Column]) -> str:
    head = ''.join(f'<th>{escape(column.header)}</th>' for column in columns)
    if not records:
        return (
            f'<table><thead><tr>{head}</tr></thead><tbody>'
            f'<tr><td class="empty" colspan="{len(columns)}">No records</td></tr>'
            '</tbody></table>'
        )
    rows = []
    for record in records:
        cells = ''.join(
            f'<td>{escape(format_cell(column.value(record)))}</td>' for column in columns
        )
        rows.append(f'<tr>{cells}</tr>')
    return f'<table><thead><tr>{head}</tr></thead><tbody>\n' + '\n'.join(rows) + '\n</tbody></table>'


def to_printable_document(
    records: Sequence[Record],
    columns: Sequence[Column],
    title: str,
    statistics: Optional[Statistics] = None,
    groups: Optional[Dict[str, List[Record]]] = None,
    generated_at: Optional[datetime] = None,
) -> str:
    """Render a complete, self-contained HTML report.

    Styling is embedded and nothing is loaded from the network, so the file
    can be opened or printed offline. The same inputs always produce the
    same document; pass ``generated_at`` to stamp the report.

    Args:
        records: Records in export order (used when groups is None)
        columns: Ordered column definitions
        title: Report title
        statistics: Summary shown above the detail table
        groups: Optional ordered groups, rendered as one section each
        generated_at: Timestamp printed under the title

    Returns:
        HTML document string
    """
    subtitle = ''
    if generated_at is not None:
        subtitle = f'<p>Generated on {escape(format_cell(generated_at))}</p>'

    body = [
        '<div class="header">',
        f'<h1>{escape(title)}</h1>',
        subtitle,
        '</div>',
    ]
    if statistics is not None:
        body.append(_statistics_html(statistics))

    if groups:
        for key, members in groups.items():
            body.append(f'<h2>{escape(key)} ({len(members)})</h2>')
            body.append(_table_html(members, columns))
    else:
        body.append('<h2>Details</h2>')
        body.append(_table_html(records, columns))

    return (
        '<!DOCTYPE html>\n'
        '<html>\n<head>\n<meta charset="UTF-8">\n'
        f'<title>{escape(title)}</title>\n'
        f'<style>{_STYLE}</style>\n'
        '</head>\n<body>\n'
        + '\n'.join(part for part in body if part)
        + '\n</body>\n</html>\n'
    )


def report_filename(report_name: str, extension: str, on: Optional[date] = None) -> str:
    """Build the download name '<report-name>_<ISO-date>.<ext>'."""
    on = on or date.today()
    if isinstance(on, datetime):
        on = on.date()
    slug = re.sub(r'[^A-Za-z0-9_-]+', '_', report_name.strip()).strip('_') or 'report'
    return f"{slug}_{on.isoformat()}.{extension.lstrip('.')}"
