"""
One-call analytics pipeline.

Composes the stages as plain sequential calls:

    records ──query──▶ AnalyticsResult(series) ──insights──▶ AnalyticsResult(series, insights)

Usage:
    from crm_analytics.services.analytics import run_analysis

    result = run_analysis(client_repository, config, custom_field_source=field_repository)
    for insight in result.insights:
        print(insight.severity, insight.title)
"""

import logging
from typing import Optional, Sequence, Union

from crm_analytics.core.config import Settings
from crm_analytics.core.repositories import ClientRecordSource, CustomFieldSource
from crm_analytics.models.schemas import AnalyticsResult, ClientRecord, QueryConfiguration
from crm_analytics.services.field_catalog import FieldCatalog
from crm_analytics.services.insights import generate_insights
from crm_analytics.services.query_engine import ProgressCallback, QueryEngine

logger = logging.getLogger(__name__)


def analyze_result(result: AnalyticsResult) -> AnalyticsResult:
    """Copy of `result` with insights generated from its series."""
    return result.model_copy(update={"insights": generate_insights(result.series)})


def run_analysis(
    records: Union[Sequence[ClientRecord], ClientRecordSource],
    config: QueryConfiguration,
    custom_field_source: Optional[CustomFieldSource] = None,
    settings: Optional[Settings] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> AnalyticsResult:
    """
    Query a record set and attach insights.

    Args:
        records: Materialized records, or a source to load them from
        config: Query configuration
        custom_field_source: Custom field definitions used to type dynamic
            fields; a failing source degrades to native fields only
        settings: Engine limits; defaults to the cached settings
        progress_callback: Optional (percentage, message) observer

    Returns:
        AnalyticsResult with series and insights

    Raises:
        QueryExecutionError: If the query stage fails unexpectedly.
    """
    if hasattr(records, "get_all_clients"):
        records = records.get_all_clients()

    custom_fields = FieldCatalog(custom_field_source).load_custom_fields()
    engine = QueryEngine(
        custom_fields=custom_fields,
        settings=settings,
        progress_callback=progress_callback,
    )
    result = engine.execute(records, config)
    return analyze_result(result)
