"""
Traffic Analyzer - compares a subset traffic series with its superset

Pairwise functions take two equal-length numeric series paired by index;
align them by timestamp first (TrafficParser.align_series). Degenerate
input (empty, mismatched lengths, zero variance) yields 0, never NaN.
"""

import math
from typing import List, Sequence

from models.data_models import Anomaly, TrafficAnalysis, TrafficPoint
from utils.helpers import round_half_up

DEFAULT_STDDEV_THRESHOLD = 2.0


def peak(series: Sequence[float]) -> float:
    return max(series, default=0)


def average(series: Sequence[float]) -> int:
    if not series:
        return 0
    return round_half_up(sum(series) / len(series))


def _mean(series: Sequence[float]) -> float:
    return sum(series) / len(series)


def correlation(a: Sequence[float], b: Sequence[float]) -> float:
    """Pearson correlation coefficient, clamped to [-1, 1]"""
    if len(a) != len(b) or not a:
        return 0.0

    mean_a, mean_b = _mean(a), _mean(b)
    numerator = 0.0
    var_a = 0.0
    var_b = 0.0
    for x, y in zip(a, b):
        dx, dy = x - mean_a, y - mean_b
        numerator += dx * dy
        var_a += dx * dx
        var_b += dy * dy

    if var_a == 0 or var_b == 0:
        return 0.0
    return max(-1.0, min(1.0, numerator / math.sqrt(var_a * var_b)))


def traffic_percentage(a: Sequence[float], b: Sequence[float]) -> int:
    total = sum(b)
    if total == 0:
        return 0
    return round_half_up(100 * sum(a) / total)


def _normalize(series: Sequence[float]) -> List[float]:
    top = max(series)
    if top == 0:
        return [0.0] * len(series)
    return [v / top for v in series]


def pattern_similarity(a: Sequence[float], b: Sequence[float]) -> int:
    """0-100 shape score: 100 * (1 - MSE) of the max-normalized series"""
    if len(a) != len(b) or not a:
        return 0
    norm_a, norm_b = _normalize(a), _normalize(b)
    mse = sum((x - y) ** 2 for x, y in zip(norm_a, norm_b)) / len(norm_a)
    return max(0, min(100, round_half_up(100 * (1 - min(mse, 1)))))


def detect_anomalies(
    points: Sequence[TrafficPoint], std_dev_threshold: float = DEFAULT_STDDEV_THRESHOLD
) -> List[Anomaly]:
    """
    Points at least `std_dev_threshold` population standard deviations from
    the mean. A flat series has no anomalies.
    """
    if not points:
        return []

    values = [p.request_count for p in points]
    mean = _mean(values)
    std_dev = math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))
    if std_dev == 0:
        return []

    anomalies: List[Anomaly] = []
    for point, value in zip(points, values):
        deviation = abs(value - mean) / std_dev
        if deviation >= std_dev_threshold:
            anomalies.append(Anomaly(timestamp=point.timestamp, value=value, deviation=round(deviation, 2)))
    return anomalies


def generate_traffic_analysis(
    subset: Sequence[TrafficPoint],
    superset: Sequence[TrafficPoint],
    std_dev_threshold: float = DEFAULT_STDDEV_THRESHOLD,
) -> TrafficAnalysis:
    """Full comparison; anomalies are looked for in the subset series"""
    a = [p.request_count for p in subset]
    b = [p.request_count for p in superset]
    return TrafficAnalysis(
        peaks={"subset": peak(a), "superset": peak(b)},
        averages={"subset": average(a), "superset": average(b)},
        correlation=round(correlation(a, b), 2),
        traffic_percentage=traffic_percentage(a, b),
        pattern_similarity=pattern_similarity(a, b),
        anomalies=detect_anomalies(subset, std_dev_threshold),
    )
