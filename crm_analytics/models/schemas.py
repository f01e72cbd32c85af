"""
Pydantic value objects for the CRM analytics engine.

This module provides the data model shared by every stage of the pipeline:
client records and custom-field definitions coming in from storage, query
configuration coming in from the query builder, and series, insights and
results going out to renderers and report generators.

All models are frozen. Pipeline stages never mutate what they receive; they
build new objects (or use `model_copy(update=...)`), so a result handed to a
renderer can be shared freely.

All models use Pydantic v2 syntax.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from crm_analytics.models.enums import (
    AggregationFunction,
    FieldType,
    FilterOperator,
    InsightSeverity,
    InsightType,
    SeriesType,
    TrendDirection,
)


DEFAULT_SERIES_COLOR = "#3498db"


# =============================================================================
# Storage Collaborator Models
# =============================================================================


class ClientRecord(BaseModel):
    """
    A client as returned by the record-storage collaborator.

    Native attributes are fixed; `extraData` holds the values of user-defined
    custom fields keyed by field name. Those values may be strings, numbers,
    booleans or None depending on how they were imported.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": 42,
                "name": "Maria Lopez",
                "email": "maria@example.com",
                "createdAt": "2024-03-01T10:00:00",
                "extraData": {"policy_amount": 1250.0, "status": "Active"}
            }
        }
    )

    id: int = Field(..., description="Client identifier")
    ssn: Optional[str] = Field(default=None, description="Social security number")
    name: Optional[str] = Field(default=None, description="Full name")
    dob: Optional[datetime] = Field(default=None, description="Date of birth")
    phone: Optional[str] = Field(default=None, description="Phone number")
    email: Optional[str] = Field(default=None, description="Email address")
    notes: Optional[str] = Field(default=None, description="Free-text notes")
    createdAt: Optional[datetime] = Field(default=None, description="Creation timestamp")
    lastUpdated: Optional[datetime] = Field(default=None, description="Last update timestamp")
    extraData: Dict[str, Any] = Field(
        default_factory=dict,
        description="Custom field values keyed by field name"
    )


class CustomFieldDefinition(BaseModel):
    """
    Definition of a user-configurable custom field.

    `fieldType` is kept as the raw stored string (text, number, date, dropdown,
    checkbox) and mapped case-insensitively by the field catalog, so unknown
    types fall back to Text instead of failing validation.
    """
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    fieldName: str = Field(..., min_length=1)
    label: str = ""
    fieldType: str = "text"
    options: Optional[str] = Field(
        default=None,
        description="JSON array of dropdown options"
    )
    isRequired: bool = False
    isActive: bool = True
    defaultValue: Optional[str] = None


# =============================================================================
# Query Configuration Models
# =============================================================================


class FieldDescriptor(BaseModel):
    """A queryable field as listed by the field catalog."""
    model_config = ConfigDict(frozen=True)

    fieldName: str
    displayName: str
    type: FieldType = FieldType.TEXT
    isCustomField: bool = False


class FieldSelection(BaseModel):
    """
    A field selected in a query, optionally tagged with its own aggregation.

    A tagged field produces a single-point aggregate series when the query is
    not grouped; in a grouped query the tag overrides the query-level
    aggregation for that field.
    """
    model_config = ConfigDict(frozen=True)

    fieldName: str
    displayName: str = ""
    type: FieldType = FieldType.NUMBER
    isCustomField: bool = False
    aggregation: Optional[AggregationFunction] = None

    @property
    def label(self) -> str:
        return self.displayName or self.fieldName


class FilterRule(BaseModel):
    """A single filter predicate; all rules of a query must pass."""
    model_config = ConfigDict(frozen=True)

    fieldName: str
    operator: FilterOperator
    value: Any = None


class QueryConfiguration(BaseModel):
    """
    Everything the query engine needs to build series from records.

    Grouped mode is selected by a non-empty `groupByField`; otherwise one point
    is produced per record. `orderBy` and `limit` only apply to individual mode.
    The optional date window (`dateRangeField`, `startDate`, `endDate`) is
    inclusive and applied after the filter rules.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "selectedFields": [
                    {"fieldName": "policy_amount", "displayName": "Policy amount"}
                ],
                "filters": [
                    {"fieldName": "status", "operator": "Equals", "value": "Active"}
                ],
                "groupByField": "state",
                "aggregation": "Sum"
            }
        }
    )

    selectedFields: List[FieldSelection] = Field(default_factory=list)
    filters: List[FilterRule] = Field(default_factory=list)
    groupByField: Optional[str] = None
    aggregation: AggregationFunction = AggregationFunction.COUNT
    orderBy: Optional[str] = None
    orderDescending: bool = False
    limit: Optional[int] = Field(default=None, ge=0)
    dateRangeField: Optional[str] = None
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None


# =============================================================================
# Series Models
# =============================================================================


class DataPoint(BaseModel):
    """A labeled numeric value, optionally stamped with a time."""
    model_config = ConfigDict(frozen=True)

    label: str = ""
    value: float
    timestamp: Optional[datetime] = None


class DataSeries(BaseModel):
    """
    An ordered sequence of data points plus rendering hints.

    Points keep the order they were produced in (record order, requested
    ordering or group-key order). When the sampler ran, `metadata` records
    `sampled`, `originalCount` and `sampledCount`.
    """
    model_config = ConfigDict(frozen=True)

    name: str = ""
    sourceField: str = ""
    type: SeriesType = SeriesType.LINE
    color: str = DEFAULT_SERIES_COLOR
    points: List[DataPoint] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def values(self) -> List[float]:
        return [p.value for p in self.points]

    def __len__(self) -> int:
        return len(self.points)

    def to_frame(self) -> pd.DataFrame:
        """
        Tabular view of the points for report generators.

        Returns:
            DataFrame with `label`, `value` and `timestamp` columns, one row
            per point in series order.
        """
        return pd.DataFrame(
            {
                "label": [p.label for p in self.points],
                "value": pd.Series([p.value for p in self.points], dtype="float64"),
                "timestamp": [p.timestamp for p in self.points],
            }
        )


class SeriesStatistics(BaseModel):
    """Descriptive statistics of one series; all zero for an empty series."""
    model_config = ConfigDict(frozen=True)

    count: int = 0
    sum: float = 0.0
    average: float = 0.0
    min: float = 0.0
    max: float = 0.0
    stdDev: float = 0.0
    median: float = 0.0

    @property
    def range(self) -> float:
        return self.max - self.min


class OverallStatistics(BaseModel):
    """Statistics across every point of every series in a result."""
    model_config = ConfigDict(frozen=True)

    seriesCount: int = 0
    totalDataPoints: int = 0
    globalMin: Optional[float] = None
    globalMax: Optional[float] = None
    globalSum: float = 0.0
    globalAverage: float = 0.0

    @property
    def globalRange(self) -> float:
        return (self.globalMax or 0.0) - (self.globalMin or 0.0)


# =============================================================================
# Insight Models
# =============================================================================


class TrendAnalysis(BaseModel):
    """
    Linear-regression trend of a series over its point index.

    `confidence` is R² expressed as a percentage (0-100).
    """
    model_config = ConfigDict(frozen=True)

    direction: TrendDirection = TrendDirection.STABLE
    slope: float = 0.0
    intercept: float = 0.0
    rSquared: float = 0.0
    confidence: float = 0.0
    coefficientOfVariation: float = 0.0
    description: str = ""


class Insight(BaseModel):
    """A human-readable finding derived from one or more series."""
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "type": "Anomaly",
                "title": "Anomaly detected in Policy amount",
                "description": "Value 9800.00 at 'Maria Lopez' is 3.4σ above the mean (1210.50)",
                "severity": "Critical",
                "data": {"value": 9800.0, "mean": 1210.5, "deviation": 3.4, "index": 17}
            }
        }
    )

    type: InsightType
    title: str
    description: str = ""
    severity: InsightSeverity = InsightSeverity.INFO
    data: Dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Result Model
# =============================================================================


class AnalyticsResult(BaseModel):
    """
    Output of one query invocation, read-only downstream.

    Attributes:
        id: Unique identifier of this run
        generatedAt: When the result was created
        queryDescription: Human-readable summary of the configuration
        series: Produced series (sampled where needed)
        insights: Insights generated for the series (empty until analyzed)
        totalRecordsAnalyzed: Records left after filtering and the record cap
        executionTime: Wall time of the query in seconds
        metadata: Limits applied, truncation and sampling flags
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    generatedAt: datetime = Field(default_factory=datetime.now)
    queryDescription: str = ""
    series: List[DataSeries] = Field(default_factory=list)
    insights: List[Insight] = Field(default_factory=list)
    totalRecordsAnalyzed: int = 0
    executionTime: float = 0.0
    metadata: Dict[str, Any] = Field(default_factory=dict)
