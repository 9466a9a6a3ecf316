"""
Helper Functions

Time/unit normalizers and safe coercions shared by every parser.
"""

import math
from datetime import datetime, timezone
from typing import Any, List, Optional

from dateutil import parser as dtparser

MONTHS = {
    "Jan": 1, "Feb": 2, "Mar": 3, "Apr": 4, "May": 5, "Jun": 6,
    "Jul": 7, "Aug": 8, "Sep": 9, "Oct": 10, "Nov": 11, "Dec": 12,
}


def parse_ts(x: Any) -> Optional[datetime]:
    """Parse timestamp from various formats"""
    if not x:
        return None
    try:
        dt = dtparser.isoparse(str(x))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except Exception:
        return None


def safe_int(x: Any, default: int = 0) -> int:
    """Safely convert to int, falling back to default"""
    try:
        return int(x) if x is not None else default
    except (TypeError, ValueError):
        return default


def safe_float(x: Any, default: float = 0.0) -> float:
    """Safely convert to float; NaN and inf become default"""
    try:
        value = float(x) if x is not None else default
    except (TypeError, ValueError):
        return default
    return value if math.isfinite(value) else default


def reference_year(year: Optional[int] = None) -> int:
    """Year used for log lines that carry none (current UTC year by default)"""
    return year if year is not None else datetime.now(timezone.utc).year


def to_epoch(
    day: Any,
    month: str,
    hour: Any,
    minute: Any,
    second: Any = 0,
    year: Optional[int] = None,
) -> Optional[float]:
    """
    Resolve a yearless day/month/time tuple to UTC epoch seconds.
    Returns None for unknown month names or out-of-range fields.
    """
    month_no = MONTHS.get(str(month)[:3].title())
    if month_no is None:
        return None
    return _epoch(reference_year(year), month_no, day, hour, minute, second)


def month_day_to_epoch(month: Any, day: Any, time_str: str, year: Optional[int] = None) -> Optional[float]:
    """Numeric month variant of to_epoch: ("04", "10", "20:14:24.419")"""
    parts = time_str.split(":")
    if len(parts) < 2:
        return None
    second = parts[2] if len(parts) > 2 else 0
    return _epoch(reference_year(year), safe_int(month), day, parts[0], parts[1], second)


def _epoch(year: int, month_no: int, day: Any, hour: Any, minute: Any, second: Any) -> Optional[float]:
    sec = safe_float(second)
    whole = int(sec)
    try:
        dt = datetime(year, month_no, int(day), int(hour), int(minute), whole, tzinfo=timezone.utc)
    except (TypeError, ValueError):
        return None
    return dt.timestamp() + (sec - whole)


def ratio_to_percent(ratio: float) -> float:
    """0-1 trigger ratio to 0-100 percentage"""
    return round(ratio * 100, 4)


def us_to_ms(value: float) -> float:
    return value / 1000


def kb_to_mb(value: float) -> float:
    return round(value / 1024, 3)


def round_half_up(x: float) -> int:
    """Round .5 away from zero for positives (what dashboards display)"""
    return int(math.floor(x + 0.5))


def format_timestamp(timestamp: float) -> str:
    """HH:MM:SS in UTC; empty string for a zero timestamp"""
    if not timestamp:
        return ""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%H:%M:%S")


def format_datetime(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def split_lines(content: str) -> List[str]:
    """Split file text into lines, tolerating CRLF and trailing whitespace"""
    if not content:
        return []
    return [line.rstrip() for line in content.splitlines()]
