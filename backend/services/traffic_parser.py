"""
TrafficParser Class - pre-aggregated RPM / RPS traffic logs

Line format: "<day> <Mon> <HH:MM[:SS]> <count>", e.g. "10 Apr 21:01 66".
ARL files repeat "## ARL ID: <id>" headers, each followed by such lines.
The log carries no year; callers pass one (current UTC year by default).
"""

import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from models.data_models import ARLData, TrafficPoint
from utils.helpers import safe_int, split_lines, to_epoch

logger = logging.getLogger(__name__)

TRAFFIC_LINE_PATTERN = re.compile(
    r"^(\d{1,2})\s+([A-Za-z]{3,9})\s+(\d{1,2}):(\d{2})(?::(\d{2}))?\s+(\d+)(?:\s|$)"
)
ARL_HEADER_PATTERN = re.compile(r"^(?:#+\s*)?ARL ID:\s*(\d+)")


class TrafficParser:
    """
    Parses traffic count logs into TrafficPoint series.
    Responsibilities:
    - Parse plain RPM / RPS files
    - Split ARL-sectioned files into one series per resource id
    - Pair subset and superset series on shared timestamps
    """

    @staticmethod
    def parse_line(line: str, year: Optional[int] = None) -> Optional[TrafficPoint]:
        match = TRAFFIC_LINE_PATTERN.match(line.strip())
        if not match:
            return None
        day, month, hour, minute, second, count = match.groups()
        timestamp = to_epoch(day, month, hour, minute, second or 0, year)
        if timestamp is None:
            return None

        time_str = f"{hour}:{minute}" + (f":{second}" if second is not None else "")
        return TrafficPoint(
            timestamp=timestamp,
            request_count=safe_int(count),
            formatted_time=f"{day} {month} {time_str}",
        )

    @staticmethod
    def parse_series(content: str, year: Optional[int] = None) -> List[TrafficPoint]:
        """Plain traffic file; '#' lines are comments"""
        points: List[TrafficPoint] = []
        skipped = 0
        for line in split_lines(content):
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            point = TrafficParser.parse_line(stripped, year)
            if point is None:
                skipped += 1
                continue
            points.append(point)

        if skipped:
            logger.debug("Skipped %d unrecognised traffic lines", skipped)
        points.sort(key=lambda p: p.timestamp)
        return points

    @staticmethod
    def parse_rpm(content: str, year: Optional[int] = None) -> List[TrafficPoint]:
        return TrafficParser.parse_series(content, year)

    @staticmethod
    def parse_rps(content: str, year: Optional[int] = None) -> List[TrafficPoint]:
        return TrafficParser.parse_series(content, year)

    @staticmethod
    def parse_arl_sections(content: str, year: Optional[int] = None) -> List[ARLData]:
        """
        One ARLData per header, in file order. Lines before the first header
        are ignored; sections without valid lines are dropped.
        """
        sections: List[ARLData] = []
        current: Optional[ARLData] = None

        def flush() -> None:
            if current is not None and current.requests:
                current.requests.sort(key=lambda p: p.timestamp)
                sections.append(current)

        for line in split_lines(content):
            stripped = line.strip()
            if not stripped:
                continue

            header = ARL_HEADER_PATTERN.match(stripped)
            if header:
                flush()
                current = ARLData(resource_id=safe_int(header.group(1)))
                continue

            if stripped.startswith("#") or current is None:
                continue

            point = TrafficParser.parse_line(stripped, year)
            if point is not None:
                current.requests.append(point)

        flush()
        logger.debug("Parsed %d ARL sections", len(sections))
        return sections

    @staticmethod
    def parse_arl_rpm(content: str, year: Optional[int] = None) -> List[ARLData]:
        return TrafficParser.parse_arl_sections(content, year)

    @staticmethod
    def parse_arl_rps(content: str, year: Optional[int] = None) -> List[ARLData]:
        return TrafficParser.parse_arl_sections(content, year)

    @staticmethod
    def flatten_arl(sections: Sequence[ARLData]) -> List[TrafficPoint]:
        """All sections as one series, sorted by timestamp"""
        merged = [p for section in sections for p in section.requests]
        merged.sort(key=lambda p: p.timestamp)
        return merged

    @staticmethod
    def find_arl(sections: Sequence[ARLData], resource_id: int) -> Optional[ARLData]:
        return next((s for s in sections if s.resource_id == resource_id), None)

    @staticmethod
    def combine_series(
        subset: Sequence[TrafficPoint], superset: Sequence[TrafficPoint]
    ) -> List[Dict[str, Optional[float]]]:
        """Rows of {timestamp, subset, superset}; a side is None where it has no point"""
        rows: Dict[float, Dict[str, Optional[float]]] = {}
        for name, series in (("superset", superset), ("subset", subset)):
            for p in series:
                row = rows.setdefault(p.timestamp, {"timestamp": p.timestamp, "subset": None, "superset": None})
                row[name] = p.request_count
        return [rows[ts] for ts in sorted(rows)]

    @staticmethod
    def align_series(
        subset: Sequence[TrafficPoint], superset: Sequence[TrafficPoint]
    ) -> Tuple[List[TrafficPoint], List[TrafficPoint]]:
        """Both series restricted to their common timestamps, index-paired"""
        by_ts = {p.timestamp: p for p in superset}
        paired_subset = [p for p in subset if p.timestamp in by_ts]
        paired_superset = [by_ts[p.timestamp] for p in paired_subset]
        return paired_subset, paired_superset
