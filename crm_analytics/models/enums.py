"""
Enumeration definitions for the CRM analytics engine.

All enums inherit from both `str` and `Enum` so that pydantic models carrying
them serialize to plain strings for renderers and report generators.

Groups:
- Field metadata: FieldType, CustomFieldType
- Query building: AggregationFunction, FilterOperator
- Series: SeriesType, MathOperation
- Insights: InsightType, InsightSeverity, TrendDirection
"""

from enum import Enum


class FieldType(str, Enum):
    """
    Semantic type of a queryable field.

    Native attributes carry a fixed type; custom fields are mapped from their
    declared CustomFieldType (see field_catalog.CUSTOM_FIELD_TYPE_MAP).
    """
    TEXT = "Text"
    NUMBER = "Number"
    DATE = "Date"
    BOOLEAN = "Boolean"
    ENUMERATED = "Enumerated"


class CustomFieldType(str, Enum):
    """
    Declared type of a user-defined custom field, as stored by the CRM.

    Values are lowercase to match the storage CHECK constraint.
    """
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    DROPDOWN = "dropdown"
    CHECKBOX = "checkbox"


class AggregationFunction(str, Enum):
    """
    Aggregations available per field or per grouped query.

    - None: No aggregation (individual points)
    - Count: Number of records (grouped) or numeric values (standalone)
    - Sum / Average / Min / Max / Median: Over numeric values only
    - StdDev: Population standard deviation over numeric values
    """
    NONE = "None"
    COUNT = "Count"
    SUM = "Sum"
    AVERAGE = "Average"
    MIN = "Min"
    MAX = "Max"
    MEDIAN = "Median"
    STDDEV = "StdDev"


class FilterOperator(str, Enum):
    """
    Filter predicate operators.

    Comparison operators (GreaterThan ... LessOrEqual) require both operands to
    be numeric; string operators compare string forms. Every operator except
    IsNull evaluates to False against a missing value.
    """
    EQUALS = "Equals"
    NOT_EQUALS = "NotEquals"
    GREATER_THAN = "GreaterThan"
    LESS_THAN = "LessThan"
    GREATER_OR_EQUAL = "GreaterOrEqual"
    LESS_OR_EQUAL = "LessOrEqual"
    CONTAINS = "Contains"
    STARTS_WITH = "StartsWith"
    ENDS_WITH = "EndsWith"
    IS_NULL = "IsNull"
    IS_NOT_NULL = "IsNotNull"


class SeriesType(str, Enum):
    """Chart type hint for renderers."""
    LINE = "Line"
    BAR = "Bar"
    AREA = "Area"
    SCATTER = "Scatter"
    CANDLESTICK = "Candlestick"


class MathOperation(str, Enum):
    """Elementwise or scalar arithmetic between series."""
    ADD = "Add"
    SUBTRACT = "Subtract"
    MULTIPLY = "Multiply"
    DIVIDE = "Divide"


class InsightType(str, Enum):
    """
    Category of a generated insight.

    - Trend: Linear-regression direction with sufficient confidence
    - Anomaly: Single point far from the series mean
    - Pattern: Volatility classification
    - Correlation: Strong Pearson correlation between two series
    - Seasonality: Placeholder, no real seasonal decomposition
    - Recommendation: Performance summary across all series
    """
    TREND = "Trend"
    ANOMALY = "Anomaly"
    PATTERN = "Pattern"
    CORRELATION = "Correlation"
    SEASONALITY = "Seasonality"
    RECOMMENDATION = "Recommendation"


class InsightSeverity(str, Enum):
    """
    Severity levels for insights.

    - Info: Informational
    - Positive: Favourable development
    - Warning: Needs attention
    - Critical: Requires immediate attention
    """
    INFO = "Info"
    POSITIVE = "Positive"
    WARNING = "Warning"
    CRITICAL = "Critical"


class TrendDirection(str, Enum):
    """Direction of a fitted trend; Volatile overrides the slope sign."""
    INCREASING = "Increasing"
    DECREASING = "Decreasing"
    STABLE = "Stable"
    VOLATILE = "Volatile"
