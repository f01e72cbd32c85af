"""
Query Engine: client records → labeled numeric series.

Pipeline per invocation (single-threaded, no state kept between calls):
    1. Build the field accessor table from the active custom fields
    2. Apply filter rules conjunctively, then the optional date window
    3. Truncate to the record cap (stable prefix) if configured
    4. Build series in grouped or individual mode
    5. Downsample oversized individual series with LTTB
    6. Add single-point series for standalone aggregated fields

Series construction modes:
    - Grouped: records partitioned by the string value of `groupByField`
      (missing → "N/A"); one point per group, groups ordered by key ascending.
    - Individual: one point per record per numeric value, after optional
      ordering and row limit. Non-numeric values are skipped, never coerced.

Progress:
    An optional callback receives (percentage, message) at coarse milestones.
    It is informational only and runs on the caller's thread; exceptions it
    raises are not guarded.

Usage:
    from crm_analytics.services.query_engine import QueryEngine

    engine = QueryEngine(custom_fields=definitions)
    result = engine.execute(records, config)
"""

import logging
import time
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

import pandas as pd

from crm_analytics.core.config import Settings, get_settings
from crm_analytics.models.enums import (
    AggregationFunction,
    FilterOperator,
    SeriesType,
)
from crm_analytics.models.schemas import (
    AnalyticsResult,
    ClientRecord,
    CustomFieldDefinition,
    DataPoint,
    DataSeries,
    FieldSelection,
    FilterRule,
    QueryConfiguration,
)
from crm_analytics.services.field_catalog import (
    Accessor,
    build_accessor_table,
    is_numeric,
    resolve_field,
)
from crm_analytics.services.sampling import downsample
from crm_analytics.services.statistics import aggregate

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]

MISSING_GROUP_KEY = "N/A"


class QueryExecutionError(RuntimeError):
    """An unexpected failure inside the query pipeline, wrapped with context."""


def _no_progress(percentage: int, message: str) -> None:
    return None


# =============================================================================
# Filter Predicates
# =============================================================================


def _values_equal(a: Any, b: Any) -> bool:
    if is_numeric(a) and is_numeric(b):
        return float(a) == float(b)
    return a == b


def _compare_numeric(a: Any, b: Any, comparison: Callable[[float, float], bool]) -> bool:
    if not (is_numeric(a) and is_numeric(b)):
        return False
    return comparison(float(a), float(b))


def _compare_text(a: Any, b: Any, comparison: Callable[[str, str], bool]) -> bool:
    if a is None:
        return False
    return comparison(str(a), "" if b is None else str(b))


_PREDICATES: Dict[FilterOperator, Callable[[Any, Any], bool]] = {
    FilterOperator.EQUALS: lambda a, b: a is not None and b is not None and _values_equal(a, b),
    FilterOperator.NOT_EQUALS: lambda a, b: a is not None and b is not None and not _values_equal(a, b),
    FilterOperator.GREATER_THAN: lambda a, b: _compare_numeric(a, b, lambda x, y: x > y),
    FilterOperator.LESS_THAN: lambda a, b: _compare_numeric(a, b, lambda x, y: x < y),
    FilterOperator.GREATER_OR_EQUAL: lambda a, b: _compare_numeric(a, b, lambda x, y: x >= y),
    FilterOperator.LESS_OR_EQUAL: lambda a, b: _compare_numeric(a, b, lambda x, y: x <= y),
    FilterOperator.CONTAINS: lambda a, b: _compare_text(a, b, lambda x, y: y in x),
    FilterOperator.STARTS_WITH: lambda a, b: _compare_text(a, b, str.startswith),
    FilterOperator.ENDS_WITH: lambda a, b: _compare_text(a, b, str.endswith),
    FilterOperator.IS_NULL: lambda a, b: a is None,
    FilterOperator.IS_NOT_NULL: lambda a, b: a is not None,
}


def evaluate_filter(
    record: ClientRecord,
    rule: FilterRule,
    accessors: Dict[str, Accessor]
) -> bool:
    """
    Evaluate one filter rule against a record.

    Missing values fail every operator except IsNull. Numeric comparisons with
    a non-numeric operand are False rather than an error.
    """
    value = resolve_field(record, rule.fieldName, accessors)
    return _PREDICATES[rule.operator](value, rule.value)


def apply_filters(
    records: Sequence[ClientRecord],
    filters: Sequence[FilterRule],
    accessors: Dict[str, Accessor]
) -> List[ClientRecord]:
    """Records passing every rule, in input order."""
    if not filters:
        return list(records)
    return [
        record for record in records
        if all(evaluate_filter(record, rule, accessors) for rule in filters)
    ]


def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return None


def _naive_utc(moment: datetime) -> datetime:
    # Aware values are compared as UTC wall time against naive bounds
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def apply_date_range(
    records: Sequence[ClientRecord],
    config: QueryConfiguration,
    accessors: Dict[str, Accessor]
) -> List[ClientRecord]:
    """
    Keep records whose `dateRangeField` lies in [startDate, endDate].

    Either bound may be omitted. Without a field or any bound this is a no-op;
    with one, records whose field is not a date are dropped. Timezone-aware
    values and bounds are converted to UTC before comparing.
    """
    if not config.dateRangeField or (config.startDate is None and config.endDate is None):
        return list(records)

    start = _naive_utc(config.startDate) if config.startDate is not None else None
    end = _naive_utc(config.endDate) if config.endDate is not None else None

    kept = []
    for record in records:
        moment = _as_datetime(resolve_field(record, config.dateRangeField, accessors))
        if moment is None:
            continue
        moment = _naive_utc(moment)
        if start is not None and moment < start:
            continue
        if end is not None and moment > end:
            continue
        kept.append(record)
    return kept


# =============================================================================
# Ordering
# =============================================================================


def _sort_key(value: Any) -> tuple:
    # None first, then numbers, dates and everything else as text
    if value is None:
        return (0, 0)
    if is_numeric(value):
        return (1, float(value))
    moment = _as_datetime(value)
    if moment is not None:
        return (2, _naive_utc(moment))
    return (3, str(value))


def order_records(
    records: Sequence[ClientRecord],
    order_by: Optional[str],
    descending: bool,
    accessors: Dict[str, Accessor]
) -> List[ClientRecord]:
    """Stable sort by a field; mixed value types never raise."""
    if not order_by:
        return list(records)
    return sorted(
        records,
        key=lambda record: _sort_key(resolve_field(record, order_by, accessors)),
        reverse=descending,
    )


# =============================================================================
# Query Description
# =============================================================================


def build_query_description(config: QueryConfiguration) -> str:
    """
    Human-readable summary of a query configuration.

    Example:
        "Analysis of Policy amount, Age grouped by state with 2 filter(s) using Sum"
    """
    parts = ["Analysis of "]

    if config.selectedFields:
        parts.append(", ".join(field.label for field in config.selectedFields))
    else:
        parts.append("all fields")

    if config.groupByField:
        parts.append(f" grouped by {config.groupByField}")

    if config.filters:
        parts.append(f" with {len(config.filters)} filter(s)")

    if config.aggregation != AggregationFunction.NONE:
        parts.append(f" using {config.aggregation.value}")

    return "".join(parts)


# =============================================================================
# Query Engine
# =============================================================================


class QueryEngine:
    """
    Transforms a record set into an AnalyticsResult.

    Attributes:
        settings: Limits (record cap, chart point budget, sampling toggle)
        custom_fields: Custom field definitions used to type dynamic fields
        progress_callback: Optional (percentage, message) observer
    """

    def __init__(
        self,
        custom_fields: Optional[Sequence[CustomFieldDefinition]] = None,
        settings: Optional[Settings] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.settings = settings or get_settings()
        self.custom_fields = list(custom_fields or [])
        self.progress_callback = progress_callback or _no_progress

    def _report(self, percentage: int, message: str) -> None:
        self.progress_callback(percentage, message)

    def execute(
        self,
        records: Sequence[ClientRecord],
        config: QueryConfiguration
    ) -> AnalyticsResult:
        """
        Run a query over a materialized record set.

        Args:
            records: Client records for this invocation
            config: Field selection, filters, grouping, ordering and limit

        Returns:
            AnalyticsResult with series and run metadata; insights are left
            empty (see services.insights.generate_insights).

        Raises:
            QueryExecutionError: If an unexpected error escapes the pipeline.
        """
        started = time.perf_counter()
        metadata: Dict[str, Any] = {}

        try:
            self._report(0, "Preparing query...")
            accessors = build_accessor_table(self.custom_fields)

            self._report(10, "Loading client records...")
            logger.info(
                f"Executing query over {len(records)} records "
                f"with {len(config.selectedFields)} field(s)"
            )

            self._report(30, f"Processing {len(records)} records...")
            filtered = apply_filters(records, config.filters, accessors)
            filtered = apply_date_range(filtered, config, accessors)

            max_records = self.settings.max_records
            if max_records > 0 and len(filtered) > max_records:
                self._report(40, f"Limiting to {max_records} records...")
                logger.debug(f"Truncating {len(filtered)} filtered records to {max_records}")
                metadata["truncated"] = True
                metadata["recordsBeforeTruncation"] = len(filtered)
                filtered = filtered[:max_records]

            self._report(50, "Building data series...")
            if config.groupByField:
                series = self.build_grouped_series(filtered, config, accessors)
            else:
                series = self.build_individual_series(filtered, config, accessors)

                self._report(80, "Applying aggregations...")
                for field in config.selectedFields:
                    aggregated = self.build_aggregated_series(filtered, field, accessors)
                    if aggregated is not None:
                        series.append(aggregated)

            self._report(100, "Query completed.")
        except Exception as e:
            logger.exception("Error executing query")
            self._report(100, "Query failed.")
            raise QueryExecutionError(f"Error executing query: {e}") from e

        metadata.update(
            {
                "maxRecordsLimit": self.settings.max_records,
                "maxChartPointsLimit": self.settings.max_chart_points,
                "smartSamplingEnabled": self.settings.enable_smart_sampling,
                "sampled": any(s.metadata.get("sampled", False) for s in series),
            }
        )

        elapsed = time.perf_counter() - started
        logger.info(f"Query produced {len(series)} series in {elapsed:.3f}s")

        return AnalyticsResult(
            queryDescription=build_query_description(config),
            series=series,
            totalRecordsAnalyzed=len(filtered),
            executionTime=elapsed,
            metadata=metadata,
        )

    # -------------------------------------------------------------------------
    # Grouped Mode
    # -------------------------------------------------------------------------

    def build_grouped_series(
        self,
        records: Sequence[ClientRecord],
        config: QueryConfiguration,
        accessors: Dict[str, Accessor]
    ) -> List[DataSeries]:
        """
        One bar series per selected field, one point per group.

        Count counts the records in the group. Other aggregations run over the
        field's numeric values in the group; a group without any yields 0.
        None counts those numeric values.
        A field's own aggregation tag overrides the query aggregation.
        """
        if not records:
            return []

        frame = pd.DataFrame(
            {
                "group": [
                    self._group_key(resolve_field(r, config.groupByField, accessors))
                    for r in records
                ],
                "position": range(len(records)),
            }
        )
        groups = [
            (key, group["position"].tolist())
            for key, group in frame.groupby("group", sort=True)
        ]

        series_list: List[DataSeries] = []
        for field in config.selectedFields:
            function = field.aggregation or config.aggregation
            points = []
            for key, positions in groups:
                if function == AggregationFunction.COUNT:
                    value = float(len(positions))
                else:
                    values = self._numeric_values([records[p] for p in positions], field, accessors)
                    value = aggregate(values, function)
                points.append(DataPoint(label=key, value=value))

            if points:
                series_list.append(
                    DataSeries(
                        name=field.label,
                        sourceField=field.fieldName,
                        type=SeriesType.BAR,
                        points=points,
                        metadata={"groupBy": config.groupByField, "aggregation": function.value},
                    )
                )

        return series_list

    @staticmethod
    def _group_key(value: Any) -> str:
        if value is None:
            return MISSING_GROUP_KEY
        return str(value)

    # -------------------------------------------------------------------------
    # Individual Mode
    # -------------------------------------------------------------------------

    def build_individual_series(
        self,
        records: Sequence[ClientRecord],
        config: QueryConfiguration,
        accessors: Dict[str, Accessor]
    ) -> List[DataSeries]:
        """
        One line series per selected field without an aggregation tag.

        Records are ordered and limited first; each numeric value becomes a
        point labeled with the client name (or "Client <id>") and stamped with
        the creation time.
        """
        ordered = order_records(records, config.orderBy, config.orderDescending, accessors)
        if config.limit is not None:
            ordered = ordered[:config.limit]

        series_list: List[DataSeries] = []
        for field in config.selectedFields:
            if field.aggregation is not None:
                continue

            points = []
            for record in ordered:
                value = resolve_field(record, field.fieldName, accessors)
                if not is_numeric(value):
                    continue
                points.append(
                    DataPoint(
                        label=record.name or f"Client {record.id}",
                        value=float(value),
                        timestamp=record.createdAt,
                    )
                )

            if not points:
                logger.warning(f"Field '{field.fieldName}' produced no numeric points")
                continue

            series = DataSeries(
                name=field.label,
                sourceField=field.fieldName,
                type=SeriesType.LINE,
                points=points,
            )

            if self.settings.enable_smart_sampling and len(points) > self.settings.max_chart_points:
                self._report(60, f"Applying smart sampling to {series.name}...")
                series = downsample(series, self.settings.max_chart_points)

            series_list.append(series)

        return series_list

    # -------------------------------------------------------------------------
    # Standalone Aggregations
    # -------------------------------------------------------------------------

    def build_aggregated_series(
        self,
        records: Sequence[ClientRecord],
        field: FieldSelection,
        accessors: Dict[str, Accessor]
    ) -> Optional[DataSeries]:
        """
        Single-point series for a field tagged with an aggregation.

        Returns None for untagged fields, the None aggregation, or when the
        field has no numeric values.
        """
        if field.aggregation is None or field.aggregation == AggregationFunction.NONE:
            return None

        values = self._numeric_values(records, field, accessors)
        if not values:
            return None

        function = field.aggregation
        return DataSeries(
            name=f"{field.label} ({function.value})",
            sourceField=field.fieldName,
            type=SeriesType.BAR,
            points=[DataPoint(label=function.value, value=aggregate(values, function))],
            metadata={"aggregation": function.value},
        )

    @staticmethod
    def _numeric_values(
        records: Sequence[ClientRecord],
        field: FieldSelection,
        accessors: Dict[str, Accessor]
    ) -> List[float]:
        values = []
        for record in records:
            value = resolve_field(record, field.fieldName, accessors)
            if is_numeric(value):
                values.append(float(value))
        return values
