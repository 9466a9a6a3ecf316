"""
Field Extractors - one raw log line in, one typed partial record (or None) out

Every extractor is a pure function and never raises on malformed input.
"""

import re
from typing import Optional

from models.data_models import CandidateLine, StatsLine, TriggerKind, TriggerLine
from utils.helpers import kb_to_mb, safe_float, safe_int, us_to_ms

TRIGGER_MARKER = "OverloadManager::processMainLoop()"
CANDIDATE_MARKER = "addCandidateTarget()"

TIMESTAMP_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)")

CPU_PATTERN = re.compile(r"CPU:\s*all\s+(\d+)%")
FLIT_PATTERN = re.compile(r"\bflit\s+(\d+)%")
CYCLE_PATTERN = re.compile(r"AVG manager cycle\s+(\d+(?:\.\d+)?)\s*us")
MEM_RSS_PATTERN = re.compile(r"Mem RSS\s+(\d+)\s*KB")
ACCEPTS_PATTERN = re.compile(r"Accepts:\s*http/https\s+(\d+)\s*/\s*(\d+)")

TRIGGER_PATTERN = re.compile(r"triggered by\s+([A-Za-z_][\w-]*)\s*:\s*(-?\d+(?:\.\d+)?)")

ARLID_PATTERN = re.compile(r"arlid:\s*(\d+)")
RULE_PATTERN = re.compile(r"rule:'([^']+)'")
TRIGGER_PCT_PATTERN = re.compile(r"trigger_pct:\s*(\d+(?:\.\d+)?)%")
DENY_PCT_PATTERN = re.compile(r"deny_pct:\s*(\d+(?:\.\d+)?)%")
METRICS_PATTERN = re.compile(r"metrics\s*\(([^)]*)\)")
METRIC_CPU_PATTERN = re.compile(r"cpu:\s*(\d+)\s*ms")
METRIC_MEM_PATTERN = re.compile(r"mem:\s*(\d+)\s*KB")
METRIC_REQS_PATTERN = re.compile(r"reqs:\s*(\d+)")

# Ordered: first substring found in the lowercased trigger name wins.
TRIGGER_GROUPS = (
    ("cpu", "cpu"),
    ("flit", "flit"),
    ("mem", "mem"),
    ("req", "reqs"),
)
OTHER_TRIGGER_GROUP = "other"


def classify_trigger(raw: str) -> TriggerKind:
    """Map a verbatim trigger name ("flits", "cpu", ...) to its display group"""
    lowered = raw.lower()
    for needle, group in TRIGGER_GROUPS:
        if needle in lowered:
            return TriggerKind(kind=group, raw=raw)
    return TriggerKind(kind=OTHER_TRIGGER_GROUP, raw=raw)


def _group(pattern: re.Pattern, line: str) -> Optional[str]:
    match = pattern.search(line)
    return match.group(1) if match else None


def extract_timestamp(line: str) -> Optional[float]:
    value = _group(TIMESTAMP_PATTERN, line)
    return safe_float(value) if value is not None else None


def is_trigger_line(line: str) -> bool:
    return TRIGGER_MARKER in line


def is_candidate_line(line: str) -> bool:
    return CANDIDATE_MARKER in line


def extract_stats(line: str) -> Optional[StatsLine]:
    """
    Stats line: leading timestamp plus at least one of CPU, flit, manager
    cycle, Mem RSS or Accepts. Each field is optional on its own.
    """
    if is_trigger_line(line) or is_candidate_line(line):
        return None
    timestamp = extract_timestamp(line)
    if timestamp is None:
        return None

    cpu = _group(CPU_PATTERN, line)
    flit = _group(FLIT_PATTERN, line)
    cycle = _group(CYCLE_PATTERN, line)
    mem = _group(MEM_RSS_PATTERN, line)
    accepts = ACCEPTS_PATTERN.search(line)
    if cpu is None and flit is None and cycle is None and mem is None and accepts is None:
        return None

    return StatsLine(
        timestamp=timestamp,
        cpu_percent=safe_int(cpu),
        flit_percent=safe_int(flit),
        avg_manager_cycle_ms=us_to_ms(safe_float(cycle)),
        mem_rss_mb=kb_to_mb(safe_float(mem)),
        http_accepts=safe_int(accepts.group(1)) if accepts else 0,
        https_accepts=safe_int(accepts.group(2)) if accepts else 0,
    )


def extract_trigger(line: str) -> Optional[TriggerLine]:
    """OverloadManager::processMainLoop() ... triggered by <type>:<ratio>"""
    if not is_trigger_line(line):
        return None
    timestamp = extract_timestamp(line)
    match = TRIGGER_PATTERN.search(line)
    if timestamp is None or match is None:
        return None
    return TriggerLine(
        timestamp=timestamp,
        kind=classify_trigger(match.group(1)),
        ratio=safe_float(match.group(2)),
    )


def extract_candidate(line: str) -> Optional[CandidateLine]:
    """addCandidateTarget() line; every field besides the timestamp is optional"""
    if not is_candidate_line(line):
        return None
    timestamp = extract_timestamp(line)
    if timestamp is None:
        return None

    arlid = _group(ARLID_PATTERN, line)
    candidate = CandidateLine(
        timestamp=timestamp,
        resource_id=safe_int(arlid) if arlid is not None else None,
        rule=_group(RULE_PATTERN, line),
        trigger_pct=safe_float(_group(TRIGGER_PCT_PATTERN, line)),
        deny_pct=safe_float(_group(DENY_PCT_PATTERN, line)),
    )

    metrics = _group(METRICS_PATTERN, line)
    if metrics:
        candidate.metrics_cpu_ms = safe_int(_group(METRIC_CPU_PATTERN, metrics))
        candidate.metrics_mem_kb = safe_int(_group(METRIC_MEM_PATTERN, metrics))
        candidate.metrics_reqs = safe_int(_group(METRIC_REQS_PATTERN, metrics))
    return candidate

