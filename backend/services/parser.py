"""
LogParser Class - server log dialect (stats, trigger and candidate-target lines)

This module turns the text of one server log into typed, time-ordered
records: stats samples, correlated overload events and the detailed
stats+CRP table.
"""

import logging
from typing import Dict, List, Sequence

from models.data_models import (
    NOT_AVAILABLE,
    CandidateLine,
    DetailedLogEntry,
    LogParseResult,
    LogSample,
    StatsLine,
    TriggerLine,
)
from services.aggregator import compute_metrics, unique_in_order
from services.correlator import DEFAULT_WINDOW_S, EventCorrelator, TimestampIndex
from services.extractors import (
    OTHER_TRIGGER_GROUP,
    TRIGGER_GROUPS,
    classify_trigger,
    extract_candidate,
    extract_stats,
    extract_trigger,
)
from utils.helpers import kb_to_mb, ratio_to_percent, split_lines

logger = logging.getLogger(__name__)

UNNAMED_RULE = "unknown"


def _by_timestamp(record) -> float:
    return record.timestamp


class LogParser:
    """
    Parses a server log into samples, events and detailed entries.
    Responsibilities:
    - Classify each line (stats / trigger / candidate-target / other)
    - Correlate triggers with candidate-target and stats lines
    - Merge stats and CRP lines into the detailed table
    """

    @staticmethod
    def scan(content: str):
        """Single pass over the text, bucketing lines by kind"""
        stats: List[StatsLine] = []
        triggers: List[TriggerLine] = []
        candidates: List[CandidateLine] = []
        skipped = 0

        for line in split_lines(content):
            if not line.strip():
                continue
            trigger = extract_trigger(line)
            if trigger is not None:
                triggers.append(trigger)
                continue
            candidate = extract_candidate(line)
            if candidate is not None:
                candidates.append(candidate)
                continue
            sample = extract_stats(line)
            if sample is not None:
                stats.append(sample)
                continue
            skipped += 1

        if skipped:
            logger.debug("Skipped %d unrecognised log lines", skipped)
        return stats, triggers, candidates

    @staticmethod
    def to_sample(stats: StatsLine) -> LogSample:
        return LogSample(
            timestamp=stats.timestamp,
            cpu_percent=stats.cpu_percent,
            flit_percent=stats.flit_percent,
            avg_manager_cycle_ms=stats.avg_manager_cycle_ms,
        )

    @staticmethod
    def parse_log_file(content: str, window: float = DEFAULT_WINDOW_S) -> LogParseResult:
        """
        Parse a server log. Every trigger line yields one OverloadEvent and
        one synthetic LogSample carrying the trigger percentage.
        """
        stats, triggers, candidates = LogParser.scan(content)

        samples = sorted((LogParser.to_sample(s) for s in stats), key=_by_timestamp)
        events, synthetic = EventCorrelator(candidates, samples, window).correlate_all(triggers)

        samples = sorted(samples + synthetic, key=_by_timestamp)
        events.sort(key=_by_timestamp)

        return LogParseResult(
            samples=samples,
            events=events,
            metrics=compute_metrics(samples),
            unique_resource_ids=unique_in_order(e.resource_id for e in events),
        )

    @staticmethod
    def parse_detailed_log(content: str, window: float = DEFAULT_WINDOW_S) -> List[DetailedLogEntry]:
        """
        Stats rows merged with CRP rows. A CRP row replaces any plain stats
        row in the same whole second; time_difference is filled last.
        """
        stats, triggers, candidates = LogParser.scan(content)
        stats_index: TimestampIndex[StatsLine] = TimestampIndex(stats)
        trigger_index: TimestampIndex[TriggerLine] = TimestampIndex(triggers)

        plain = [LogParser._stats_entry(s.timestamp, s) for s in stats]

        crp: List[DetailedLogEntry] = []
        for candidate in candidates:
            entry = LogParser._stats_entry(candidate.timestamp, stats_index.nearest(candidate.timestamp))
            entry.crp_rule = candidate.rule or UNNAMED_RULE
            entry.crp_arlid = candidate.resource_id
            entry.crp_trigger_pct = candidate.trigger_pct
            entry.crp_deny_pct = candidate.deny_pct
            entry.crp_metrics_cpu = candidate.metrics_cpu_ms
            entry.crp_metrics_mem = kb_to_mb(candidate.metrics_mem_kb)
            entry.crp_metrics_reqs = candidate.metrics_reqs

            trigger = trigger_index.first_within(candidate.timestamp, window)
            if trigger is not None:
                entry.crp_triggered_by = trigger.kind.raw
                entry.crp_triggered_pct = ratio_to_percent(trigger.ratio)
            crp.append(entry)

        crp_seconds = {int(e.timestamp) for e in crp}
        merged = [e for e in plain if int(e.timestamp) not in crp_seconds] + crp
        merged.sort(key=_by_timestamp)

        LogParser.fill_time_differences(merged)
        return merged

    @staticmethod
    def _stats_entry(timestamp: float, stats) -> DetailedLogEntry:
        if stats is None:
            return DetailedLogEntry(timestamp=timestamp)
        return DetailedLogEntry(
            timestamp=timestamp,
            http_accepts=stats.http_accepts,
            https_accepts=stats.https_accepts,
            flit=stats.flit_percent,
            cpu_all=stats.cpu_percent,
            mem_rss=stats.mem_rss_mb,
            avg_mgr_cycle=stats.avg_manager_cycle_ms,
        )

    @staticmethod
    def trigger_group(entry: DetailedLogEntry) -> str:
        if entry.crp_triggered_by == NOT_AVAILABLE:
            return OTHER_TRIGGER_GROUP
        return classify_trigger(entry.crp_triggered_by).kind

    @staticmethod
    def fill_time_differences(entries: Sequence[DetailedLogEntry]) -> None:
        """Seconds since the previous CRP row of the same trigger group"""
        last_seen: Dict[str, float] = {}
        for entry in sorted((e for e in entries if e.has_crp), key=_by_timestamp):
            group = LogParser.trigger_group(entry)
            previous = last_seen.get(group)
            entry.time_difference = round(entry.timestamp - previous, 3) if previous is not None else 0.0
            last_seen[group] = entry.timestamp

    @staticmethod
    def primary_trigger_group(entries: Sequence[DetailedLogEntry]) -> str:
        """Most frequent trigger group among CRP rows ("cpu" when there are none)"""
        counts = {group: 0 for _, group in TRIGGER_GROUPS}
        for entry in entries:
            if entry.has_crp:
                group = LogParser.trigger_group(entry)
                if group in counts:
                    counts[group] += 1

        primary, best = "cpu", 0
        for group, count in counts.items():
            if count > best:
                primary, best = group, count
        return primary
