"""
Data Models (DTOs - Data Transfer Objects)

This module contains all dataclass definitions produced by the parsers and
consumed by the aggregator, analyzer and HTTP routes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Display sentinel for detailed-log fields with no value
NOT_AVAILABLE = "N/A"


@dataclass
class TriggerKind:
    """Overload trigger source, verbatim text plus its display group"""
    kind: str
    raw: str


@dataclass
class LogSample:
    """One system-stats observation (or a point synthesized from a trigger)"""
    timestamp: float
    cpu_percent: int = 0
    flit_percent: int = 0
    avg_manager_cycle_ms: float = 0.0
    triggered_by_percent: float = 0.0
    resource_id: int = 0


@dataclass
class OverloadEvent:
    """One overload-manager trigger with the system state around it"""
    timestamp: float
    trigger_percent: float
    trigger_kind: TriggerKind
    resource_id: Optional[int]
    rule: Optional[str]
    cpu_percent_at_trigger: int = 0
    flit_percent_at_trigger: int = 0
    avg_manager_cycle_ms_at_trigger: float = 0.0


@dataclass
class StatsLine:
    """Fields pulled from one stats line; absent fields stay at zero"""
    timestamp: float
    cpu_percent: int = 0
    flit_percent: int = 0
    avg_manager_cycle_ms: float = 0.0
    mem_rss_mb: float = 0.0
    http_accepts: int = 0
    https_accepts: int = 0


@dataclass
class TriggerLine:
    timestamp: float
    kind: TriggerKind
    ratio: float


@dataclass
class CandidateLine:
    """Fields pulled from one addCandidateTarget() line"""
    timestamp: float
    resource_id: Optional[int] = None
    rule: Optional[str] = None
    trigger_pct: float = 0.0
    deny_pct: float = 0.0
    metrics_cpu_ms: int = 0
    metrics_mem_kb: int = 0
    metrics_reqs: int = 0


@dataclass
class DetailedLogEntry:
    """Stats fields merged with candidate-rule-processing (CRP) fields"""
    timestamp: float
    http_accepts: int = 0
    https_accepts: int = 0
    flit: int = 0
    cpu_all: int = 0
    mem_rss: float = 0.0
    avg_mgr_cycle: float = 0.0
    crp_rule: str = NOT_AVAILABLE
    crp_arlid: Optional[int] = None
    crp_trigger_pct: float = 0.0
    crp_deny_pct: float = 0.0
    crp_metrics_cpu: int = 0
    crp_metrics_mem: float = 0.0
    crp_metrics_reqs: int = 0
    crp_triggered_by: str = NOT_AVAILABLE
    crp_triggered_pct: float = 0.0
    time_difference: float = 0.0

    @property
    def has_crp(self) -> bool:
        return self.crp_rule != NOT_AVAILABLE


@dataclass
class MetricStat:
    min: float = 0
    max: float = 0
    avg: float = 0


@dataclass
class Metrics:
    """Aggregated CPU / FLIT / manager-cycle statistics"""
    cpu: MetricStat
    flit: MetricStat
    cycle: MetricStat


@dataclass
class LogParseResult:
    samples: List[LogSample]
    events: List[OverloadEvent]
    metrics: Metrics
    unique_resource_ids: List[int]


@dataclass
class TrafficPoint:
    """One RPM or RPS bucket as it appears in the traffic log"""
    timestamp: float
    request_count: int
    formatted_time: str


@dataclass
class ARLData:
    resource_id: int
    requests: List[TrafficPoint] = field(default_factory=list)


@dataclass
class TrafficMetrics:
    max_rpm: int = 0
    avg_rpm: int = 0
    total_requests: int = 0
    max_rps: int = 0
    avg_rps: int = 0
    timespan: str = "N/A"


@dataclass
class GhostmonLogEntry:
    timestamp: float
    formatted_time: str
    dnsp_key: str = ""
    flyteload: int = 0
    hits: float = 0.0
    suspendflag: int = 0
    suspendlevel: int = 0
    extra: Dict[str, str] = field(default_factory=dict)


@dataclass
class GhostmonMetrics:
    max_flyteload: int = 0
    avg_flyteload: float = 0.0
    max_hits: float = 0.0
    avg_hits: float = 0.0
    max_suspendlevel: int = 0
    timespan: str = "N/A"


@dataclass
class Anomaly:
    timestamp: float
    value: float
    deviation: float


@dataclass
class TrafficAnalysis:
    """Subset-vs-superset traffic comparison"""
    peaks: Dict[str, float]
    averages: Dict[str, int]
    correlation: float
    traffic_percentage: int
    pattern_similarity: int
    anomalies: List[Anomaly]


@dataclass
class Report:
    """Shared report blob"""
    share_id: str
    data: Any
    created_at: str
    description: Optional[str] = None


@dataclass
class HealthStatus:
    """Health check response"""
    status: str
    data_dir: str
    datasets: Dict[str, int]
