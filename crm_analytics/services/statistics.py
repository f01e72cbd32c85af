"""
Statistics Engine.

Pure functions over sequences of floats shared by the query engine (for
aggregations) and every insight detector. Each function has a defined
fallback for empty or too-small inputs instead of raising, so callers can
pass whatever a query produced.

Conventions:
    - Standard deviation is the population form (ddof=0) and is 0.0 for
      fewer than 2 samples, so volatility is never asserted on a single value.
    - Coefficient of variation is std / |mean| and 0.0 when the mean is 0.

Dependencies:
    - numpy: array reductions (mean, std, median, sums of products)
"""

from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from crm_analytics.models.enums import AggregationFunction
from crm_analytics.models.schemas import (
    DataSeries,
    OverallStatistics,
    SeriesStatistics,
)


# =============================================================================
# Core Statistical Helpers
# =============================================================================


def _as_array(values: Iterable[float]) -> np.ndarray:
    return np.asarray(list(values), dtype=np.float64)


def mean(values: Sequence[float]) -> float:
    """
    Calculate the arithmetic mean of a list of values.

    Args:
        values: Numeric values

    Returns:
        Arithmetic mean, or 0.0 for an empty list
    """
    if len(values) == 0:
        return 0.0
    return float(np.mean(_as_array(values)))


def population_std_dev(values: Sequence[float]) -> float:
    """
    Calculate the population standard deviation of a list of values.

    Args:
        values: Numeric values

    Returns:
        Standard deviation, or 0.0 if fewer than 2 values
    """
    if len(values) < 2:
        return 0.0
    return float(np.std(_as_array(values)))


def median(values: Sequence[float]) -> float:
    """
    Calculate the median; even counts average the two middle elements.

    Returns:
        Median value, or 0.0 for an empty list
    """
    if len(values) == 0:
        return 0.0
    return float(np.median(_as_array(values)))


def coefficient_of_variation(values: Sequence[float]) -> float:
    """
    Scale-free volatility: population std divided by the absolute mean.

    Returns:
        CV, or 0.0 when the mean is 0 (including the empty list)
    """
    avg = mean(values)
    if avg == 0:
        return 0.0
    return population_std_dev(values) / abs(avg)


def z_score(value: float, avg: float, std: float) -> float:
    """Number of standard deviations `value` lies from `avg`; 0.0 if std is 0."""
    if std == 0:
        return 0.0
    return (value - avg) / std


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """
    Pearson correlation of two equal-length sequences.

    covariance(x, y) / (std_x * std_y), all in population form. Returns 0.0
    when either sequence has zero spread or the inputs are empty. The result
    is clipped to [-1, 1] to absorb floating-point overshoot.
    """
    if len(x) == 0 or len(x) != len(y):
        return 0.0

    x_arr = _as_array(x)
    y_arr = _as_array(y)
    dx = x_arr - x_arr.mean()
    dy = y_arr - y_arr.mean()

    std_x = float(np.sqrt(np.mean(dx * dx)))
    std_y = float(np.sqrt(np.mean(dy * dy)))
    if std_x == 0 or std_y == 0:
        return 0.0

    covariance = float(np.mean(dx * dy))
    return float(np.clip(covariance / (std_x * std_y), -1.0, 1.0))


def linear_regression(
    x: Sequence[float],
    y: Sequence[float]
) -> Tuple[float, float, float]:
    """
    Ordinary least squares fit of y on x.

    slope     = (nΣxy − ΣxΣy) / (nΣx² − (Σx)²)
    intercept = (Σy − slope·Σx) / n
    R²        = 1 − SS_residual / SS_total   (0 when SS_total is 0)

    Args:
        x: Independent values
        y: Dependent values, same length as x

    Returns:
        Tuple of (slope, intercept, r_squared). A degenerate x (fewer than two
        distinct values) yields slope 0 with the mean as intercept.
    """
    n = len(x)
    if n == 0:
        return (0.0, 0.0, 0.0)

    x_arr = _as_array(x)
    y_arr = _as_array(y)

    sum_x = float(x_arr.sum())
    sum_y = float(y_arr.sum())
    sum_xy = float(np.dot(x_arr, y_arr))
    sum_x2 = float(np.dot(x_arr, x_arr))

    denominator = n * sum_x2 - sum_x * sum_x
    if denominator == 0:
        return (0.0, sum_y / n, 0.0)

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n

    ss_total = float(np.sum((y_arr - y_arr.mean()) ** 2))
    ss_residual = float(np.sum((y_arr - (slope * x_arr + intercept)) ** 2))
    r_squared = 1 - (ss_residual / ss_total) if ss_total != 0 else 0.0

    return (slope, intercept, r_squared)


# =============================================================================
# Aggregation Dispatch
# =============================================================================

_AGGREGATORS = {
    AggregationFunction.COUNT: lambda values: float(len(values)),
    AggregationFunction.SUM: lambda values: float(np.sum(_as_array(values))),
    AggregationFunction.AVERAGE: mean,
    AggregationFunction.MIN: lambda values: float(np.min(_as_array(values))),
    AggregationFunction.MAX: lambda values: float(np.max(_as_array(values))),
    AggregationFunction.MEDIAN: median,
    AggregationFunction.STDDEV: population_std_dev,
}


def aggregate(
    values: Sequence[float],
    function: Optional[AggregationFunction]
) -> float:
    """
    Reduce numeric values with an aggregation function.

    Args:
        values: Numeric values (already filtered to numbers)
        function: Aggregation to apply; None and NONE fall back to Count

    Returns:
        Aggregated value; 0.0 for an empty list regardless of function
    """
    if len(values) == 0:
        return 0.0
    aggregator = _AGGREGATORS.get(function, _AGGREGATORS[AggregationFunction.COUNT])
    return aggregator(values)


# =============================================================================
# Series Summaries
# =============================================================================


def get_series_statistics(series: DataSeries) -> SeriesStatistics:
    """Descriptive statistics of a series' values (all zeros when empty)."""
    values = series.values
    if not values:
        return SeriesStatistics()

    arr = _as_array(values)
    return SeriesStatistics(
        count=len(values),
        sum=float(arr.sum()),
        average=float(arr.mean()),
        min=float(arr.min()),
        max=float(arr.max()),
        stdDev=population_std_dev(values),
        median=median(values),
    )


def get_overall_statistics(series_list: Sequence[DataSeries]) -> OverallStatistics:
    """
    Statistics across every point of every series.

    Empty series count towards `seriesCount` but do not influence the global
    min/max. The global average is the sum of all values over the total point
    count.
    """
    total_points = 0
    global_sum = 0.0
    global_min: Optional[float] = None
    global_max: Optional[float] = None

    for series in series_list:
        stats = get_series_statistics(series)
        total_points += stats.count
        if stats.count > 0:
            global_min = stats.min if global_min is None else min(global_min, stats.min)
            global_max = stats.max if global_max is None else max(global_max, stats.max)
            global_sum += stats.sum

    return OverallStatistics(
        seriesCount=len(series_list),
        totalDataPoints=total_points,
        globalMin=global_min,
        globalMax=global_max,
        globalSum=global_sum,
        globalAverage=global_sum / total_points if total_points > 0 else 0.0,
    )

