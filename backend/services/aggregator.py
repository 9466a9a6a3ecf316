"""
Aggregator - reduces parsed series to summaries, and slices them by time range

All window arithmetic is anchored to the latest timestamp in the series
being filtered (not the system clock), so historical uploads behave the same
on every run.
"""

from typing import Callable, Iterable, List, Optional, Sequence, TypeVar

from models.data_models import (
    GhostmonLogEntry,
    GhostmonMetrics,
    LogSample,
    MetricStat,
    Metrics,
    TrafficMetrics,
    TrafficPoint,
)
from utils.helpers import round_half_up

T = TypeVar("T")

TIME_RANGES = {
    "5s": 5,
    "10s": 10,
    "15s": 15,
    "30s": 30,
    "1m": 60,
    "10m": 600,
    "30m": 1800,
    "1h": 3600,
    "all": 0,
}


def aggregate(values: Iterable[float], include: Optional[Callable[[float], bool]] = None) -> MetricStat:
    """
    {min, max, avg} over values. `include` drops entries from all three
    (e.g. non-positive readings of optional fields). Empty => zeros.
    """
    kept = [v for v in values if include is None or include(v)]
    if not kept:
        return MetricStat(min=0, max=0, avg=0)
    return MetricStat(min=min(kept), max=max(kept), avg=sum(kept) / len(kept))


def _positive(value: float) -> bool:
    return value > 0


def compute_metrics(samples: Sequence[LogSample]) -> Metrics:
    """CPU / FLIT / manager-cycle stats; zeros mean "not reported" and are skipped"""
    return Metrics(
        cpu=aggregate((s.cpu_percent for s in samples), _positive),
        flit=aggregate((s.flit_percent for s in samples), _positive),
        cycle=aggregate((s.avg_manager_cycle_ms for s in samples), _positive),
    )


def unique_in_order(values: Iterable[Optional[int]]) -> List[int]:
    """Distinct truthy values in first-seen order"""
    seen = set()
    out: List[int] = []
    for v in values:
        if v and v not in seen:
            seen.add(v)
            out.append(v)
    return out


def calculate_traffic_metrics(rpm: Sequence[TrafficPoint], rps: Sequence[TrafficPoint]) -> TrafficMetrics:
    total_rpm = sum(p.request_count for p in rpm)
    total_rps = sum(p.request_count for p in rps)

    timespan = "N/A"
    if rpm:
        timespan = f"{rpm[0].formatted_time} to {rpm[-1].formatted_time}"

    return TrafficMetrics(
        max_rpm=max((p.request_count for p in rpm), default=0),
        avg_rpm=round_half_up(total_rpm / len(rpm)) if rpm else 0,
        total_requests=total_rpm,
        max_rps=max((p.request_count for p in rps), default=0),
        avg_rps=round_half_up(total_rps / len(rps)) if rps else 0,
        timespan=timespan,
    )


def calculate_ghostmon_metrics(entries: Sequence[GhostmonLogEntry]) -> GhostmonMetrics:
    if not entries:
        return GhostmonMetrics()

    count = len(entries)
    return GhostmonMetrics(
        max_flyteload=max(e.flyteload for e in entries),
        avg_flyteload=sum(e.flyteload for e in entries) / count,
        max_hits=max(e.hits for e in entries),
        avg_hits=sum(e.hits for e in entries) / count,
        max_suspendlevel=max(e.suspendlevel for e in entries),
        timespan=f"{entries[0].formatted_time} to {entries[-1].formatted_time}",
    )


def filter_by_time_range(series: Sequence[T], token: str, latest: Optional[float] = None) -> List[T]:
    """
    Suffix of `series` within TIME_RANGES[token] seconds of its own latest
    timestamp (or of `latest`, to cut a related series at the same point).
    The cutoff is inclusive and input order is preserved.
    """
    if token not in TIME_RANGES:
        raise ValueError(f"Unknown time range '{token}', expected one of {', '.join(TIME_RANGES)}")

    seconds = TIME_RANGES[token]
    if seconds == 0 or not series:
        return list(series)

    if latest is None:
        latest = max(item.timestamp for item in series)
    cutoff = latest - seconds
    return [item for item in series if item.timestamp >= cutoff]
