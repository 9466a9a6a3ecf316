"""
DatasetCache - the "current dataset" held by the app

Parsers are pure functions of file text; this cache re-runs one only when
the stored text (sha256 of content) or the requested year changes, so every
dashboard request after an upload reuses the same parse result. There is one
slot per (dataset, view): asking for another year replaces the slot.
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

from models.data_models import ARLData, DetailedLogEntry, GhostmonLogEntry, LogParseResult, TrafficPoint
from services.correlator import DEFAULT_WINDOW_S
from services.ghostmon_parser import GhostmonParser
from services.parser import LogParser
from services.storage import LogStore, content_hash
from services.traffic_parser import TrafficParser

logger = logging.getLogger(__name__)

TRAFFIC_CATEGORIES = ("overall", "without-arl")


class DatasetCache:
    """Memoized parse results, one per (dataset, view), tagged with content hash and year"""

    def __init__(self, store: LogStore, window: float = DEFAULT_WINDOW_S):
        self.store = store
        self.window = window
        # (dataset, view) -> ((digest, year), result)
        self._cache: Dict[Tuple[str, str], Tuple[Tuple[str, Optional[int]], Any]] = {}
        # routes run on the event loop and in the threadpool
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def _load(self, dataset: str, view: str, parse: Callable[[str], Any], year: Optional[int] = None) -> Any:
        text = self.store.read_text(dataset) or ""
        fingerprint = (content_hash(text), year)
        key = (dataset, view)

        with self._lock:
            cached = self._cache.get(key)
        if cached is not None and cached[0] == fingerprint:
            return cached[1]

        result = parse(text)
        with self._lock:
            self._cache[key] = (fingerprint, result)
        logger.debug("Parsed %s (%s, year=%s), content %s", dataset, view, year, fingerprint[0][:12])
        return result

    def invalidate(self, dataset: str) -> None:
        with self._lock:
            for key in [k for k in self._cache if k[0] == dataset]:
                del self._cache[key]

    def log(self) -> LogParseResult:
        return self._load("log", "events", lambda text: LogParser.parse_log_file(text, self.window))

    def detailed_log(self) -> List[DetailedLogEntry]:
        return self._load("log", "detailed", lambda text: LogParser.parse_detailed_log(text, self.window))

    def traffic(self, category: str, year: Optional[int] = None) -> Tuple[List[TrafficPoint], List[TrafficPoint]]:
        """(rpm, rps) series of a plain traffic category"""
        if category not in TRAFFIC_CATEGORIES:
            raise ValueError(f"Unknown traffic category '{category}'")
        rpm = self._load(f"{category}-rpm", "series", lambda t: TrafficParser.parse_rpm(t, year), year)
        rps = self._load(f"{category}-rps", "series", lambda t: TrafficParser.parse_rps(t, year), year)
        return rpm, rps

    def arl(self, year: Optional[int] = None) -> Tuple[List[ARLData], List[ARLData]]:
        """(rpm, rps) ARL sections"""
        rpm = self._load("arl-rpm", "sections", lambda t: TrafficParser.parse_arl_rpm(t, year), year)
        rps = self._load("arl-rps", "sections", lambda t: TrafficParser.parse_arl_rps(t, year), year)
        return rpm, rps

    def ghostmon(self, year: Optional[int] = None) -> List[GhostmonLogEntry]:
        return self._load("ghostmon", "entries", lambda t: GhostmonParser.parse(t, year), year)
