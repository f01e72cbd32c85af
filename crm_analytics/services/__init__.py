"""
Analytics Services Module

Each service is stateless; every operation takes its inputs explicitly and
returns new value objects.

Services:
- statistics: mean, population std dev, median, CV, regression, correlation
- field_catalog: queryable field listing and the field accessor table
- query_engine: records → filtered, grouped or individual series
- sampling: LTTB downsampling for chart point budgets
- insights: trend, anomaly, volatility, correlation and summary insights
- indicators: MA / EMA / RSI, trend line and series arithmetic
- analytics: one-call query + insights pipeline
"""

# =============================================================================
# Statistics Engine Exports
# =============================================================================

from crm_analytics.services.statistics import (
    mean,
    median,
    population_std_dev,
    coefficient_of_variation,
    z_score,
    pearson_correlation,
    linear_regression,
    aggregate,
    get_series_statistics,
    get_overall_statistics,
)

# =============================================================================
# Field Catalog Exports
# =============================================================================

from crm_analytics.services.field_catalog import (
    FieldCatalog,
    NATIVE_FIELDS,
    build_accessor_table,
    list_fields,
    map_custom_field_type,
    resolve_field,
)

# =============================================================================
# Sampler Exports
# =============================================================================

from crm_analytics.services.sampling import downsample

# =============================================================================
# Query Engine Exports
# =============================================================================

from crm_analytics.services.query_engine import (
    QueryEngine,
    QueryExecutionError,
    apply_filters,
    build_query_description,
)

# =============================================================================
# Insight Engine Exports
# =============================================================================

from crm_analytics.services.insights import (
    analyze_trend,
    detect_trend,
    detect_anomalies,
    analyze_volatility,
    calculate_correlation,
    analyze_correlations,
    analyze_performance,
    detect_seasonality,
    generate_insights,
)

# =============================================================================
# Indicator Exports
# =============================================================================

from crm_analytics.services.indicators import (
    calculate_moving_average,
    calculate_ema,
    calculate_rsi,
    calculate_trend_line,
    combine_series,
    apply_operation,
)

# =============================================================================
# Pipeline Exports
# =============================================================================

from crm_analytics.services.analytics import analyze_result, run_analysis


__all__ = [
    # Statistics
    'mean',
    'median',
    'population_std_dev',
    'coefficient_of_variation',
    'z_score',
    'pearson_correlation',
    'linear_regression',
    'aggregate',
    'get_series_statistics',
    'get_overall_statistics',
    # Field catalog
    'FieldCatalog',
    'NATIVE_FIELDS',
    'build_accessor_table',
    'list_fields',
    'map_custom_field_type',
    'resolve_field',
    # Sampling
    'downsample',
    # Query engine
    'QueryEngine',
    'QueryExecutionError',
    'apply_filters',
    'build_query_description',
    # Insights
    'analyze_trend',
    'detect_trend',
    'detect_anomalies',
    'analyze_volatility',
    'calculate_correlation',
    'analyze_correlations',
    'analyze_performance',
    'detect_seasonality',
    'generate_insights',
    # Indicators
    'calculate_moving_average',
    'calculate_ema',
    'calculate_rsi',
    'calculate_trend_line',
    'combine_series',
    'apply_operation',
    # Pipeline
    'analyze_result',
    'run_analysis',
]
