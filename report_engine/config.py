"""
Report definitions and logging configuration.

A report definition describes one console screen: the declared field types,
searchable fields, table columns, numeric summaries, bucket rules and query
defaults. Definitions are loaded from YAML with schema:

    <report_name>:
      title: string
      date_field: string
      fields: {field_name: string|number|date|enum}
      search_fields: [field_name, ...]
      columns: [{header: string, field: field_name}, ...]
      numeric_fields: [field_name, ...]
      buckets: {field: field_name, rules: [{label: string, gt|gte|lt|lte: number}]}
      trend_field: field_name
      group_by: field_name
      canonicalize_groups: bool
      paginate_groups: bool
      page_size: int
      default_sort: {key: field_name, direction: ascending|descending}
"""

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .export import Column
from .models import BucketRule, FieldRegistry, SortSpec

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / 'reports.yaml'
DEFAULT_PAGE_SIZE = 10
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


@dataclass
class ReportDefinition:
    """Static description of one report screen.

    Attributes:
        name: Report identifier, also the export file prefix
        title: Human-readable title used in printable exports
        registry: Declared field types
        date_field: Field used by date ranges, trend ordering and series
        search_fields: Fields matched by the free-text search
        columns: Ordered table/export columns
        numeric_fields: Fields summarized in statistics
        bucket_field: Field classified by bucket_rules
        bucket_rules: Ordered severity/status rules
        trend_field: Field whose half-over-half trend is reported
        group_by: Default grouping field
        canonicalize_groups: Merge group keys differing by case or padding
        paginate_groups: Page over groups instead of records
        page_size: Default page size
        default_sort: Sort used when the query has none
    """
    name: str
    title: str
    registry: FieldRegistry = field(default_factory=FieldRegistry)
    date_field: str = 'timestamp'
    search_fields: List[str] = field(default_factory=list)
    columns: List[Column] = field(default_factory=list)
    numeric_fields: List[str] = field(default_factory=list)
    bucket_field: Optional[str] = None
    bucket_rules: List[BucketRule] = field(default_factory=list)
    trend_field: Optional[str] = None
    group_by: Optional[str] = None
    canonicalize_groups: bool = False
    paginate_groups: bool = False
    page_size: int = DEFAULT_PAGE_SIZE
    default_sort: Optional[SortSpec] = None

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> 'ReportDefinition':
        """Build a definition from its parsed YAML mapping.

        Raises:
            ValueError: If the mapping is malformed
        """
        if not isinstance(data, dict):
            raise ValueError(f"Report '{name}': definition must be a mapping")

        try:
            registry = FieldRegistry(types=dict(data.get('fields') or {}))
            columns = [
                Column(header=str(col['header']), accessor=str(col['field']))
                for col in data.get('columns') or []
            ]
            buckets = data.get('buckets') or {}
            rules = [
                BucketRule.bounded(
                    str(rule['label']),
                    gt=rule.get('gt'),
                    gte=rule.get('gte'),
                    lt=rule.get('lt'),
                    lte=rule.get('lte'),
                )
                for rule in buckets.get('rules') or []
            ]
            sort_data = data.get('default_sort')
            default_sort = None
            if sort_data:
                default_sort = SortSpec(
                    key=str(sort_data['key']),
                    direction=sort_data.get('direction', 'ascending'),
                )
            page_size = int(data.get('page_size', DEFAULT_PAGE_SIZE))
        except (AttributeError, KeyError, TypeError) as e:
            raise ValueError(f"Report '{name}': invalid definition: {e}")

        return cls(
            name=name,
            title=str(data.get('title', name)),
            registry=registry,
            date_field=str(data.get('date_field', 'timestamp')),
            search_fields=list(data.get('search_fields') or []),
            columns=columns,
            numeric_fields=list(data.get('numeric_fields') or []),
            bucket_field=buckets.get('field'),
            bucket_rules=rules,
            trend_field=data.get('trend_field'),
            group_by=data.get('group_by'),
            canonicalize_groups=bool(data.get('canonicalize_groups', False)),
            paginate_groups=bool(data.get('paginate_groups', False)),
            page_size=page_size,
            default_sort=default_sort,
        )


def load_definitions(config_path: Optional[str | Path] = None) -> Dict[str, ReportDefinition]:
    """Load report definitions from a YAML file.

    Args:
        config_path: YAML file path, the bundled reports.yaml when omitted

    Returns:
        Mapping of report name to definition, in file order

    Raises:
        ValueError: If the file is missing or invalid
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not path.exists():
        raise ValueError(f"Report config not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            content = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in report config {path}: {e}")

    if not isinstance(content, dict):
        raise ValueError("Report config must contain a mapping of report names")

    definitions = {
        str(name): ReportDefinition.from_dict(str(name), data)
        for name, data in content.items()
    }
    logger.info(f"Loaded {len(definitions)} report definitions from {path}")
    return definitions


def setup_logging(verbose: bool = False) -> None:
    """Configure root logging for command-line use."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
    )
