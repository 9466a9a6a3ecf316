"""
GhostmonParser Class - ghost monitor key=value logs

Two dialects are accepted:

- epoch (primary): "1712780064.5 dnsp_key=S flyteload=24953936 hits=704.3 ..."
  whitespace-delimited tokens; unknown keys are kept in `extra`
- bracketed: "[04-10 20:14:24.419 I write_dnsp.cpp:2453 read_shm[S] dnsp_key=Sflyteload=..."
  tokens may run together, so each known key has its own bounded pattern;
  the year is not in the line and comes from the caller

A line counts only if it carries a dnsp_key.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence

from models.data_models import GhostmonLogEntry
from utils.helpers import format_datetime, month_day_to_epoch, safe_float, safe_int, split_lines

logger = logging.getLogger(__name__)

EPOCH_LINE_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)\s+(.*)$")
TOKEN_PATTERN = re.compile(r"(\w+)=(\S+)")

BRACKET_LINE_PATTERN = re.compile(r"^\[(\d{1,2})-(\d{1,2})\s+([\d:.]+)")
BRACKET_FIELDS = {
    "dnsp_key": re.compile(r"dnsp_key=([A-Z])"),
    "flyteload": re.compile(r"flyteload=(\d+)"),
    "hits": re.compile(r"hits=(\d+(?:\.\d+)?)"),
    "suspendflag": re.compile(r"suspendflag=(\d)"),
    "suspendlevel": re.compile(r"suspendlevel=(\d+)"),
}

KNOWN_KEYS = ("dnsp_key", "flyteload", "hits", "suspendflag", "suspendlevel")
ALL_KEYS = "all"


class GhostmonParser:
    """Parses ghostmon logs into GhostmonLogEntry records"""

    @staticmethod
    def build_entry(timestamp: float, fields: Dict[str, str]) -> Optional[GhostmonLogEntry]:
        if "dnsp_key" not in fields:
            return None
        return GhostmonLogEntry(
            timestamp=timestamp,
            formatted_time=format_datetime(timestamp),
            dnsp_key=fields["dnsp_key"],
            flyteload=safe_int(fields.get("flyteload")),
            hits=safe_float(fields.get("hits")),
            suspendflag=safe_int(fields.get("suspendflag")),
            suspendlevel=safe_int(fields.get("suspendlevel")),
            extra={k: v for k, v in fields.items() if k not in KNOWN_KEYS},
        )

    @staticmethod
    def parse_epoch_line(line: str) -> Optional[GhostmonLogEntry]:
        match = EPOCH_LINE_PATTERN.match(line)
        if not match:
            return None
        fields = dict(TOKEN_PATTERN.findall(match.group(2)))
        return GhostmonParser.build_entry(safe_float(match.group(1)), fields)

    @staticmethod
    def parse_bracketed_line(line: str, year: Optional[int] = None) -> Optional[GhostmonLogEntry]:
        match = BRACKET_LINE_PATTERN.match(line)
        if not match or "dnsp_key=" not in line:
            return None
        month, day, time_str = match.groups()
        timestamp = month_day_to_epoch(month, day, time_str, year)
        if timestamp is None:
            return None

        tail = line[line.index("dnsp_key="):]
        fields: Dict[str, str] = {}
        for key, pattern in BRACKET_FIELDS.items():
            found = pattern.search(tail)
            if found:
                fields[key] = found.group(1)
        return GhostmonParser.build_entry(timestamp, fields)

    @staticmethod
    def parse(content: str, year: Optional[int] = None) -> List[GhostmonLogEntry]:
        entries: List[GhostmonLogEntry] = []
        skipped = 0
        for line in split_lines(content):
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if stripped.startswith("["):
                entry = GhostmonParser.parse_bracketed_line(stripped, year)
            else:
                entry = GhostmonParser.parse_epoch_line(stripped)
            if entry is None:
                skipped += 1
                continue
            entries.append(entry)

        if skipped:
            logger.debug("Skipped %d unrecognised ghostmon lines", skipped)
        entries.sort(key=lambda e: e.timestamp)
        return entries

    @staticmethod
    def filter_by_dnsp_key(entries: Sequence[GhostmonLogEntry], key: str) -> List[GhostmonLogEntry]:
        if key == ALL_KEYS:
            return list(entries)
        return [e for e in entries if e.dnsp_key == key]
