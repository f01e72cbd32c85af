"""
Technical indicators and series arithmetic.

Auxiliary derived series for charts and reports, not insights. Every function
is pure: it returns a new DataSeries and leaves its input untouched. Derived
points keep the label and timestamp of the source point they end on.

Indicators:
    - Simple moving average (MA)
    - Exponential moving average (EMA), seeded with the simple average of the
      first `period` points
    - Relative strength index (RSI) over a trailing window of changes
    - Fitted linear trend line

Arithmetic:
    - combine_series: elementwise add/subtract/multiply/divide of two series,
      truncated to the shorter one; division by zero yields 0
    - apply_operation: scalar arithmetic on every point
"""

from typing import Callable, Dict, List

import numpy as np

from crm_analytics.models.enums import MathOperation, SeriesType
from crm_analytics.models.schemas import DataPoint, DataSeries
from crm_analytics.services.statistics import linear_regression


EMA_COLOR = "#e74c3c"
RSI_COLOR = "#9b59b6"
TREND_LINE_COLOR = "#ff0000"
DEFAULT_RSI_PERIOD = 14


def _check_period(period: int) -> None:
    if period < 1:
        raise ValueError(f"period must be at least 1, got {period}")


def _derived(series: DataSeries, name: str, color: str, points: List[DataPoint]) -> DataSeries:
    return DataSeries(
        name=name,
        sourceField=series.sourceField,
        type=SeriesType.LINE,
        color=color,
        points=points,
    )


def _point_like(source: DataPoint, value: float) -> DataPoint:
    return DataPoint(label=source.label, value=float(value), timestamp=source.timestamp)


# =============================================================================
# Moving Averages
# =============================================================================


def calculate_moving_average(series: DataSeries, period: int) -> DataSeries:
    """
    Simple moving average.

    Emits len(series) − period + 1 points (none if the series is shorter than
    the period).

    Raises:
        ValueError: If period is smaller than 1.
    """
    _check_period(period)
    values = np.asarray(series.values, dtype=np.float64)

    points: List[DataPoint] = []
    if len(values) >= period:
        window_means = np.convolve(values, np.ones(period) / period, mode="valid")
        points = [
            _point_like(series.points[i + period - 1], value)
            for i, value in enumerate(window_means)
        ]

    return _derived(series, f"{series.name} (MA{period})", series.color, points)


def calculate_ema(series: DataSeries, period: int) -> DataSeries:
    """
    Exponential moving average.

    The first emitted value is the simple average of the first `period`
    points; afterwards ema[i] = (value[i] − ema[i−1]) × 2/(period+1) + ema[i−1].
    Emits len(series) − period + 1 points.

    Raises:
        ValueError: If period is smaller than 1.
    """
    _check_period(period)
    values = series.values
    if len(values) < period:
        return _derived(series, f"{series.name} (EMA{period})", EMA_COLOR, [])

    multiplier = 2.0 / (period + 1)
    ema = float(np.mean(values[:period]))
    points = [_point_like(series.points[period - 1], ema)]

    for i in range(period, len(values)):
        ema = (values[i] - ema) * multiplier + ema
        points.append(_point_like(series.points[i], ema))

    return _derived(series, f"{series.name} (EMA{period})", EMA_COLOR, points)


# =============================================================================
# RSI
# =============================================================================


def calculate_rsi(series: DataSeries, period: int = DEFAULT_RSI_PERIOD) -> DataSeries:
    """
    Relative strength index.

    For each point with at least `period` preceding changes, average the gains
    and losses over the trailing `period` changes and map to
    100 − 100 / (1 + avg_gain / avg_loss). Zero average loss gives 100.
    Emits len(series) − period points.

    Raises:
        ValueError: If period is smaller than 1.
    """
    _check_period(period)
    values = np.asarray(series.values, dtype=np.float64)
    if len(values) < period + 1:
        return _derived(series, f"{series.name} (RSI{period})", RSI_COLOR, [])

    changes = np.diff(values)
    gains = np.where(changes > 0, changes, 0.0)
    losses = np.where(changes < 0, -changes, 0.0)

    points: List[DataPoint] = []
    for end in range(period, len(values)):
        # changes[k] moves point k to k + 1, so point `end` closes window [end - period, end)
        avg_gain = float(gains[end - period:end].mean())
        avg_loss = float(losses[end - period:end].mean())
        if avg_loss == 0:
            rsi = 100.0
        else:
            rsi = 100.0 - 100.0 / (1.0 + avg_gain / avg_loss)
        points.append(_point_like(series.points[end], rsi))

    return _derived(series, f"{series.name} (RSI{period})", RSI_COLOR, points)


# =============================================================================
# Trend Line
# =============================================================================


def calculate_trend_line(series: DataSeries) -> DataSeries:
    """Fitted least-squares line over the point index (empty below 2 points)."""
    values = series.values
    points: List[DataPoint] = []
    if len(values) >= 2:
        x = [float(i) for i in range(len(values))]
        slope, intercept, _r_squared = linear_regression(x, values)
        points = [
            _point_like(point, slope * i + intercept)
            for i, point in enumerate(series.points)
        ]

    trend = _derived(series, f"{series.name} (Trend)", TREND_LINE_COLOR, points)
    return trend.model_copy(update={"metadata": {"lineStyle": "dashed"}})


# =============================================================================
# Series Arithmetic
# =============================================================================

_OPERATIONS: Dict[MathOperation, Callable[[float, float], float]] = {
    MathOperation.ADD: lambda a, b: a + b,
    MathOperation.SUBTRACT: lambda a, b: a - b,
    MathOperation.MULTIPLY: lambda a, b: a * b,
    MathOperation.DIVIDE: lambda a, b: a / b if b != 0 else 0.0,
}


def combine_series(first: DataSeries, second: DataSeries, operation: MathOperation) -> DataSeries:
    """
    Elementwise arithmetic between two series.

    Both are truncated to the shorter length; labels and timestamps come from
    `first`. Dividing by a zero point yields 0 for that point.
    """
    apply = _OPERATIONS[operation]
    count = min(len(first.points), len(second.points))
    points = [
        _point_like(first.points[i], apply(first.points[i].value, second.points[i].value))
        for i in range(count)
    ]
    return DataSeries(
        name=f"{first.name} {operation.value} {second.name}",
        sourceField=first.sourceField,
        type=SeriesType.LINE,
        points=points,
    )


def apply_operation(series: DataSeries, operation: MathOperation, operand: float) -> DataSeries:
    """
    Scalar arithmetic on every point of a copy of the series.

    Dividing by zero leaves the values unchanged.
    """
    if operation == MathOperation.DIVIDE and operand == 0:
        return series.model_copy()

    apply = _OPERATIONS[operation]
    return series.model_copy(
        update={"points": [_point_like(p, apply(p.value, operand)) for p in series.points]}
    )
