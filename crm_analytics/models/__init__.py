"""
Package initialization file for analytics models.

Re-exports all Pydantic schemas and enumerations from schemas.py and enums.py so
other modules can import them from crm_analytics.models directly.

Usage:
    from crm_analytics.models import (
        DataSeries,
        DataPoint,
        QueryConfiguration,
        InsightSeverity,
        # ... etc
    )
"""

# =============================================================================
# Enums
# =============================================================================

from crm_analytics.models.enums import (
    FieldType,
    CustomFieldType,
    AggregationFunction,
    FilterOperator,
    SeriesType,
    MathOperation,
    InsightType,
    InsightSeverity,
    TrendDirection,
)


# =============================================================================
# Schemas
# =============================================================================

from crm_analytics.models.schemas import (
    DEFAULT_SERIES_COLOR,
    # Storage collaborator models
    ClientRecord,
    CustomFieldDefinition,
    # Query configuration
    FieldDescriptor,
    FieldSelection,
    FilterRule,
    QueryConfiguration,
    # Series
    DataPoint,
    DataSeries,
    SeriesStatistics,
    OverallStatistics,
    # Insights and results
    TrendAnalysis,
    Insight,
    AnalyticsResult,
)


__all__ = [
    # Enums
    'FieldType',
    'CustomFieldType',
    'AggregationFunction',
    'FilterOperator',
    'SeriesType',
    'MathOperation',
    'InsightType',
    'InsightSeverity',
    'TrendDirection',
    # Schemas
    'DEFAULT_SERIES_COLOR',
    'ClientRecord',
    'CustomFieldDefinition',
    'FieldDescriptor',
    'FieldSelection',
    'FilterRule',
    'QueryConfiguration',
    'DataPoint',
    'DataSeries',
    'SeriesStatistics',
    'OverallStatistics',
    'TrendAnalysis',
    'Insight',
    'AnalyticsResult',
]
