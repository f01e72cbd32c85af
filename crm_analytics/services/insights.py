"""
Insight Engine - human-readable findings from finished series.

Detectors:
1. TREND - Ordinary least squares over (index, value)
   - Stable when |slope| < 0.01, Volatile when CV > 0.5
   - Insight emitted only with confidence (R² × 100) >= 30
2. ANOMALY - Z-score against the series mean
   - |value − mean| > 2σ (population); Critical beyond 3σ
   - Requires at least 5 points
3. VOLATILITY - Coefficient of variation classification
   - Suppressed below 0.2; Warning above 0.3; Critical above 0.5
4. CORRELATION - Pearson r for every unordered pair of series
   - Reported when |r| > 0.7, "very strong" above 0.9
5. PERFORMANCE SUMMARY - Totals and global range across all series
6. SEASONALITY - Placeholder only, no seasonal decomposition

Severity and wording come from lookup tables keyed by enum, so the emission
logic stays declarative and can be tested apart from formatting.

All detectors degrade to "no insight" (None or an empty list) on series that
are too short; none of them raise on numeric edge cases.
"""

import logging
from typing import Dict, List, Optional, Sequence

from crm_analytics.models.enums import (
    InsightSeverity,
    InsightType,
    TrendDirection,
)
from crm_analytics.models.schemas import (
    DataSeries,
    Insight,
    TrendAnalysis,
)
from crm_analytics.services.statistics import (
    coefficient_of_variation,
    get_overall_statistics,
    linear_regression,
    mean,
    pearson_correlation,
    population_std_dev,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Thresholds
# =============================================================================

MIN_TREND_POINTS: int = 3
STABLE_SLOPE_THRESHOLD: float = 0.01
VOLATILE_TREND_CV: float = 0.5
MIN_TREND_CONFIDENCE: float = 30.0

MIN_ANOMALY_POINTS: int = 5
ANOMALY_SIGMA: float = 2.0
CRITICAL_ANOMALY_SIGMA: float = 3.0

# An extreme point inflates the standard deviation it is measured against;
# with population σ no point of an n-sample can exceed √(n−1)σ, i.e. 2σ at
# n = 5. A point is also flagged when it lies beyond this many σ of the
# remaining points.
MASKING_GUARD_SIGMA: float = 3.0

MIN_VOLATILITY_POINTS: int = 3
VOLATILITY_REPORT_CV: float = 0.2
VOLATILITY_WARNING_CV: float = 0.3
VOLATILITY_CRITICAL_CV: float = 0.5

MIN_CORRELATION_POINTS: int = 3
STRONG_CORRELATION: float = 0.7
VERY_STRONG_CORRELATION: float = 0.9

MIN_SEASONALITY_POINTS: int = 12


# =============================================================================
# Lookup Tables
# =============================================================================

TREND_SEVERITY: Dict[TrendDirection, InsightSeverity] = {
    TrendDirection.INCREASING: InsightSeverity.POSITIVE,
    TrendDirection.DECREASING: InsightSeverity.WARNING,
    TrendDirection.VOLATILE: InsightSeverity.CRITICAL,
    TrendDirection.STABLE: InsightSeverity.INFO,
}

TREND_DESCRIPTION: Dict[TrendDirection, str] = {
    TrendDirection.INCREASING: "Upward trend with slope {slope:.2f}",
    TrendDirection.DECREASING: "Downward trend with slope {slope:.2f}",
    TrendDirection.STABLE: "Stable trend with no significant change",
    TrendDirection.VOLATILE: "High volatility (CV: {cv:.0%})",
}

INSUFFICIENT_TREND_DATA = "Insufficient data for trend analysis"


def classify_trend(
    slope: float,
    cv: float,
    stable_slope: float = STABLE_SLOPE_THRESHOLD,
    volatile_cv: float = VOLATILE_TREND_CV
) -> TrendDirection:
    """Direction from slope sign, overridden to Volatile by a high CV."""
    if cv > volatile_cv:
        return TrendDirection.VOLATILE
    if abs(slope) < stable_slope:
        return TrendDirection.STABLE
    return TrendDirection.INCREASING if slope > 0 else TrendDirection.DECREASING


def classify_volatility(
    cv: float,
    warning_cv: float = VOLATILITY_WARNING_CV,
    critical_cv: float = VOLATILITY_CRITICAL_CV
) -> InsightSeverity:
    if cv > critical_cv:
        return InsightSeverity.CRITICAL
    if cv > warning_cv:
        return InsightSeverity.WARNING
    return InsightSeverity.INFO


def anomaly_severity(deviation: float, critical_sigma: float = CRITICAL_ANOMALY_SIGMA) -> InsightSeverity:
    return InsightSeverity.CRITICAL if abs(deviation) > critical_sigma else InsightSeverity.WARNING


# =============================================================================
# Trend
# =============================================================================


def analyze_trend(
    series: DataSeries,
    stable_slope: float = STABLE_SLOPE_THRESHOLD,
    volatile_cv: float = VOLATILE_TREND_CV
) -> TrendAnalysis:
    """
    Fit a linear trend over the point index.

    Args:
        series: Series to analyze
        stable_slope: |slope| below which the trend is Stable
        volatile_cv: Coefficient of variation above which it is Volatile

    Returns:
        TrendAnalysis. Fewer than 3 points yields a neutral Stable result with
        slope 0 and confidence 0.
    """
    values = series.values
    if len(values) < MIN_TREND_POINTS:
        return TrendAnalysis(
            direction=TrendDirection.STABLE,
            description=INSUFFICIENT_TREND_DATA,
        )

    x = [float(i) for i in range(len(values))]
    slope, intercept, r_squared = linear_regression(x, values)
    cv = coefficient_of_variation(values)
    direction = classify_trend(slope, cv, stable_slope, volatile_cv)

    return TrendAnalysis(
        direction=direction,
        slope=slope,
        intercept=intercept,
        rSquared=r_squared,
        confidence=r_squared * 100,
        coefficientOfVariation=cv,
        description=TREND_DESCRIPTION[direction].format(slope=slope, cv=cv),
    )


def detect_trend(
    series: DataSeries,
    min_confidence: float = MIN_TREND_CONFIDENCE,
    stable_slope: float = STABLE_SLOPE_THRESHOLD,
    volatile_cv: float = VOLATILE_TREND_CV
) -> Optional[Insight]:
    """Trend insight, or None when confidence is below `min_confidence`."""
    trend = analyze_trend(series, stable_slope, volatile_cv)
    if trend.confidence < min_confidence:
        return None

    return Insight(
        type=InsightType.TREND,
        title=f"Trend detected in {series.name}",
        description=f"{trend.description}. Confidence: {trend.confidence:.1f}%",
        severity=TREND_SEVERITY[trend.direction],
        data={
            "slope": trend.slope,
            "rSquared": trend.rSquared,
            "direction": trend.direction.value,
        },
    )


# =============================================================================
# Anomalies
# =============================================================================


def _masked_outlier(values: List[float], index: int, guard_sigma: float) -> bool:
    others = values[:index] + values[index + 1:]
    std_others = population_std_dev(others)
    if std_others == 0:
        return False
    return abs(values[index] - mean(others)) > guard_sigma * std_others


def detect_anomalies(
    series: DataSeries,
    sigma: float = ANOMALY_SIGMA,
    critical_sigma: float = CRITICAL_ANOMALY_SIGMA,
    guard_sigma: float = MASKING_GUARD_SIGMA
) -> List[Insight]:
    """
    Flag points far from the series mean.

    A point is anomalous when |value − mean| > sigma × σ, or when it lies
    beyond guard_sigma standard deviations of the other points (an outlier
    masking itself in a short series). Deviation is reported as the z-score
    against the whole series.

    Args:
        series: Series to scan (at least 5 points)
        sigma: Threshold multiple of the population standard deviation
        critical_sigma: |deviation| above which severity is Critical
        guard_sigma: Leave-one-out threshold for masked outliers

    Returns:
        One Anomaly insight per flagged point, in point order
    """
    points = series.points
    if len(points) < MIN_ANOMALY_POINTS:
        return []

    values = series.values
    avg = mean(values)
    std = population_std_dev(values)
    if std == 0:
        return []

    threshold = sigma * std
    insights: List[Insight] = []

    for index, point in enumerate(points):
        if abs(point.value - avg) <= threshold and not _masked_outlier(values, index, guard_sigma):
            continue

        deviation = (point.value - avg) / std
        side = "above" if deviation > 0 else "below"
        insights.append(
            Insight(
                type=InsightType.ANOMALY,
                title=f"Anomaly detected in {series.name}",
                description=(
                    f"Value {point.value:.2f} at '{point.label}' is "
                    f"{abs(deviation):.1f}σ {side} the mean ({avg:.2f})"
                ),
                severity=anomaly_severity(deviation, critical_sigma),
                data={
                    "value": point.value,
                    "mean": avg,
                    "deviation": deviation,
                    "index": index,
                },
            )
        )

    return insights


# =============================================================================
# Volatility
# =============================================================================


def analyze_volatility(
    series: DataSeries,
    report_cv: float = VOLATILITY_REPORT_CV,
    warning_cv: float = VOLATILITY_WARNING_CV,
    critical_cv: float = VOLATILITY_CRITICAL_CV
) -> Optional[Insight]:
    """
    Volatility insight from the coefficient of variation.

    Returns None for fewer than 3 points or a CV below `report_cv`.
    """
    values = series.values
    if len(values) < MIN_VOLATILITY_POINTS:
        return None

    cv = coefficient_of_variation(values)
    if cv < report_cv:
        return None

    std = population_std_dev(values)
    return Insight(
        type=InsightType.PATTERN,
        title=f"Volatility analysis: {series.name}",
        description=f"Coefficient of variation: {cv:.1%}. Standard deviation: {std:.2f}",
        severity=classify_volatility(cv, warning_cv, critical_cv),
        data={
            "stdDev": std,
            "mean": mean(values),
            "cv": cv,
        },
    )


# =============================================================================
# Correlations
# =============================================================================


def calculate_correlation(first: DataSeries, second: DataSeries) -> float:
    """
    Pearson correlation of two series truncated to the shorter length.

    Returns 0.0 when fewer than 3 points overlap or either side is constant.
    """
    count = min(len(first.points), len(second.points))
    if count < MIN_CORRELATION_POINTS:
        return 0.0
    return pearson_correlation(first.values[:count], second.values[:count])


def analyze_correlations(
    series_list: Sequence[DataSeries],
    threshold: float = STRONG_CORRELATION,
    very_strong: float = VERY_STRONG_CORRELATION
) -> List[Insight]:
    """
    Correlation insights for every unordered pair with |r| > threshold.

    Pairs above `very_strong` are labeled "very strong".
    """
    insights: List[Insight] = []

    for i in range(len(series_list) - 1):
        for j in range(i + 1, len(series_list)):
            first, second = series_list[i], series_list[j]
            correlation = calculate_correlation(first, second)
            if abs(correlation) <= threshold:
                continue

            kind = "positive" if correlation > 0 else "negative"
            strength = "very strong" if abs(correlation) > very_strong else "strong"
            insights.append(
                Insight(
                    type=InsightType.CORRELATION,
                    title=f"{strength.capitalize()} correlation detected",
                    description=(
                        f"{kind.capitalize()} correlation ({correlation:.2f}) between "
                        f"'{first.name}' and '{second.name}'"
                    ),
                    severity=InsightSeverity.INFO,
                    data={
                        "correlation": correlation,
                        "strength": strength,
                        "series1": first.name,
                        "series2": second.name,
                    },
                )
            )

    return insights


# =============================================================================
# Performance Summary
# =============================================================================


def analyze_performance(series_list: Sequence[DataSeries]) -> Optional[Insight]:
    """Summary of all points across all series; None when there are none."""
    stats = get_overall_statistics(series_list)
    if stats.totalDataPoints == 0:
        return None

    return Insight(
        type=InsightType.RECOMMENDATION,
        title="Analysis summary",
        description=(
            f"Analyzed {stats.totalDataPoints} data points "
            f"across {stats.seriesCount} series. "
            f"Global range: {stats.globalMin:.2f} - {stats.globalMax:.2f}. "
            f"Average: {stats.globalAverage:.2f}"
        ),
        severity=InsightSeverity.INFO,
        data={
            "totalPoints": stats.totalDataPoints,
            "seriesCount": stats.seriesCount,
            "min": stats.globalMin,
            "max": stats.globalMax,
            "average": stats.globalAverage,
            "range": stats.globalRange,
        },
    )


# =============================================================================
# Seasonality
# =============================================================================


def detect_seasonality(
    series: DataSeries,
    min_points: int = MIN_SEASONALITY_POINTS
) -> Optional[Insight]:
    """
    Placeholder seasonality check.

    No seasonal decomposition is performed. With at least 12 points an Info
    insight states that more history is required; shorter series yield None.
    Not part of generate_insights().
    """
    if len(series.points) < min_points:
        return None

    return Insight(
        type=InsightType.SEASONALITY,
        title="Seasonality analysis",
        description="More historical data is required for a reliable seasonality analysis",
        severity=InsightSeverity.INFO,
        data={"points": len(series.points)},
    )


# =============================================================================
# Insight Assembly
# =============================================================================


def generate_insights(series_list: Sequence[DataSeries]) -> List[Insight]:
    """
    Run every detector in a fixed order.

    For each series: trend, anomalies, volatility. Then correlations across
    all pairs when there is more than one series, then one performance
    summary.

    Args:
        series_list: Finished (filtered, aggregated, sampled) series

    Returns:
        New list of insights in deterministic order
    """
    per_series: List[Insight] = []
    for series in series_list:
        trend = detect_trend(series)
        per_series.extend([trend] if trend is not None else [])
        per_series.extend(detect_anomalies(series))
        volatility = analyze_volatility(series)
        per_series.extend([volatility] if volatility is not None else [])

    correlations = analyze_correlations(series_list) if len(series_list) > 1 else []
    summary = analyze_performance(series_list)

    insights = per_series + correlations + ([summary] if summary is not None else [])
    logger.info(f"Generated {len(insights)} insights for {len(series_list)} series")
    return insights
