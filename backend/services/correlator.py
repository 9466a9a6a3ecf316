"""
Event Correlator - joins independently timestamped log lines

Trigger lines carry no resource id; the candidate-target line written around
the same moment does. The correlator pairs them by timestamp:

- candidate lookup is bounded: |candidate - trigger| < window, and when
  several qualify the one appearing first in the file wins
- stats lookup is unbounded: the sample with the smallest absolute
  difference wins, the earlier one on a tie

Both lookups go through a sorted index, O(log n) per trigger.
"""

import logging
from bisect import bisect_left, bisect_right
from typing import Callable, Generic, List, Optional, Sequence, Tuple, TypeVar

from models.data_models import CandidateLine, LogSample, OverloadEvent, TriggerLine
from utils.helpers import ratio_to_percent

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_WINDOW_S = 1.0


class TimestampIndex(Generic[T]):
    """Records sorted by timestamp, remembering their original order"""

    def __init__(self, records: Sequence[T], key: Callable[[T], float] = lambda r: r.timestamp):
        # sorted() is stable, so equal timestamps keep input order
        ordered = sorted(enumerate(records), key=lambda pair: key(pair[1]))
        self._order = [pos for pos, _ in ordered]
        self._records = [rec for _, rec in ordered]
        self._stamps = [key(rec) for rec in self._records]

    def first_within(self, timestamp: float, window: float) -> Optional[T]:
        """Earliest-in-input record with |ts - timestamp| < window"""
        lo = bisect_right(self._stamps, timestamp - window)
        hi = bisect_left(self._stamps, timestamp + window)
        if lo >= hi:
            return None
        best = min(range(lo, hi), key=lambda i: self._order[i])
        return self._records[best]

    def nearest(self, timestamp: float) -> Optional[T]:
        """Record with minimal |ts - timestamp|; earlier timestamp on a tie"""
        if not self._records:
            return None
        i = bisect_left(self._stamps, timestamp)
        if i == 0:
            return self._records[0]
        if i == len(self._stamps):
            return self._records[-1]
        before = timestamp - self._stamps[i - 1]
        after = self._stamps[i] - timestamp
        return self._records[i - 1] if before <= after else self._records[i]


class EventCorrelator:
    """Turns trigger lines into OverloadEvents plus chart-aligned samples"""

    def __init__(
        self,
        candidates: Sequence[CandidateLine],
        samples: Sequence[LogSample],
        window: float = DEFAULT_WINDOW_S,
    ):
        self.window = window
        self.candidates: TimestampIndex[CandidateLine] = TimestampIndex(
            candidates, key=lambda c: c.timestamp
        )
        self.samples: TimestampIndex[LogSample] = TimestampIndex(samples)

    def correlate(self, trigger: TriggerLine) -> Tuple[OverloadEvent, LogSample]:
        candidate = self.candidates.first_within(trigger.timestamp, self.window)
        snapshot = self.samples.nearest(trigger.timestamp)
        percent = ratio_to_percent(trigger.ratio)

        resource_id = candidate.resource_id if candidate else None
        rule = candidate.rule if candidate else None
        cpu = snapshot.cpu_percent if snapshot else 0
        flit = snapshot.flit_percent if snapshot else 0
        cycle = snapshot.avg_manager_cycle_ms if snapshot else 0.0

        event = OverloadEvent(
            timestamp=trigger.timestamp,
            trigger_percent=percent,
            trigger_kind=trigger.kind,
            resource_id=resource_id,
            rule=rule,
            cpu_percent_at_trigger=cpu,
            flit_percent_at_trigger=flit,
            avg_manager_cycle_ms_at_trigger=cycle,
        )
        synthetic = LogSample(
            timestamp=trigger.timestamp,
            cpu_percent=cpu,
            flit_percent=flit,
            avg_manager_cycle_ms=cycle,
            triggered_by_percent=percent,
            resource_id=resource_id or 0,
        )
        return event, synthetic

    def correlate_all(self, triggers: Sequence[TriggerLine]) -> Tuple[List[OverloadEvent], List[LogSample]]:
        events: List[OverloadEvent] = []
        synthetic: List[LogSample] = []
        unmatched = 0
        for trigger in triggers:
            event, sample = self.correlate(trigger)
            if event.resource_id is None and event.rule is None:
                unmatched += 1
            events.append(event)
            synthetic.append(sample)
        if unmatched:
            logger.debug("%d of %d triggers had no candidate-target line within %.3fs",
                         unmatched, len(triggers), self.window)
        return events, synthetic
