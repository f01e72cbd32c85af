"""
Adaptive Sampler: Largest-Triangle-Three-Buckets downsampling.

Reduces an oversized series to a bounded number of chart points while keeping
its visual shape. Points are plotted against their index, so the x coordinate
of a point is its position in the series.

Algorithm Overview:
    1. Keep the first and last point.
    2. Split the interior into (target - 2) buckets of width
       (n - 2) / (target - 2).
    3. For bucket i, average the index and value of bucket i + 1; this
       centroid is the lookahead anchor.
    4. In bucket i, select the point forming the largest triangle with the
       previously selected point and the anchor:
           area = |(ax − cx)(by − ay) − (ax − bx)(cy − ay)| / 2
    5. The selected point becomes the previous point for bucket i + 1.

Guarantees:
    - Output length is exactly min(len(series), target) for target >= 2.
    - Endpoints are the original DataPoint objects, values unchanged.
    - Selected points are emitted in their original order.

Dependencies:
    - numpy: vectorized triangle areas and centroids
"""

import logging

import numpy as np

from crm_analytics.models.schemas import DataSeries

logger = logging.getLogger(__name__)


def downsample(series: DataSeries, target_points: int) -> DataSeries:
    """
    Downsample a series to at most `target_points` points with LTTB.

    Args:
        series: Series to reduce
        target_points: Maximum number of points to keep (>= 2)

    Returns:
        The same series if it already fits, otherwise a new series carrying the
        selected points and metadata `sampled`, `originalCount`, `sampledCount`.

    Raises:
        ValueError: If target_points is smaller than 2.
    """
    if target_points < 2:
        raise ValueError(f"target_points must be at least 2, got {target_points}")

    points = series.points
    n = len(points)
    if n <= target_points:
        return series

    selected = [0]

    if target_points > 2:
        values = np.asarray(series.values, dtype=np.float64)
        bucket_size = (n - 2) / (target_points - 2)
        previous = 0

        for i in range(target_points - 2):
            # Lookahead centroid over bucket i + 1 (the last point for the final bucket)
            avg_start = int(np.floor((i + 1) * bucket_size)) + 1
            avg_end = min(int(np.floor((i + 2) * bucket_size)) + 1, n)
            if avg_end <= avg_start:
                avg_start, avg_end = n - 1, n
            avg_x = (avg_start + avg_end - 1) / 2.0
            avg_y = float(values[avg_start:avg_end].mean())

            range_start = int(np.floor(i * bucket_size)) + 1
            range_end = min(int(np.floor((i + 1) * bucket_size)) + 1, n - 1)

            candidates = np.arange(range_start, range_end)
            ax = float(previous)
            ay = values[previous]
            areas = np.abs(
                (ax - avg_x) * (values[candidates] - ay)
                - (ax - candidates) * (avg_y - ay)
            ) * 0.5

            # argmax keeps the first maximum, matching a strict ">" scan
            previous = int(candidates[int(np.argmax(areas))])
            selected.append(previous)

    selected.append(n - 1)

    logger.debug(f"Sampled series '{series.name}' from {n} to {len(selected)} points")

    metadata = dict(series.metadata)
    metadata.update(
        {
            "sampled": True,
            "originalCount": n,
            "sampledCount": len(selected),
        }
    )
    return series.model_copy(
        update={
            "points": [points[index] for index in selected],
            "metadata": metadata,
        }
    )
