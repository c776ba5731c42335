import math
import os
import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

import psutil

from constants import MAX_EVENT_COUNT, VERSION
from logging_config import get_logger

logger = get_logger(__name__)

MIN_SPAN_SECONDS = 1.0
MAX_SERIES_BUCKETS = 200
TRIM_FRACTION = 0.2


class EventKind(Enum):
    BadJoin = "BadJoin"
    BadRoomCreation = "BadRoomCreation"
    GeneralError = "GeneralError"
    MessageSend = "MessageSend"
    MessageReceive = "MessageReceive"
    GetRequest = "GetRequest"


# These kinds are summarised per free-text category as well
_KINDS_WITH_INFO = (EventKind.GeneralError, EventKind.GetRequest)


@dataclass
class EventRecord:
    kind: EventKind
    timestamp: float
    value: Optional[float] = None
    info: Optional[str] = None


@dataclass
class SummaryDatum:
    count: int = 0
    sum: float = 0

    def to_dict(self) -> dict:
        return {"count": self.count, "sum": self.sum}


def segment_key(event: EventRecord) -> str:
    key = event.kind.value
    if event.kind in _KINDS_WITH_INFO:
        key += f"_{event.info}"
    return key


def add_to_segment(segment: Dict[str, SummaryDatum], event: EventRecord):
    datum = segment.setdefault(segment_key(event), SummaryDatum())
    datum.count += 1
    if event.value:
        datum.sum += event.value


def _segment_to_columns(segment: Dict[str, SummaryDatum]) -> List[dict]:
    return [{"label": label, "data": datum.to_dict()} for label, datum in segment.items()]


def format_uptime(seconds: float) -> str:
    seconds = int(seconds)
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    return f"{days} {hours:02d}:{minutes:02d}:{seconds:02d}"


class CpuUsageTracker:
    """Exponential moving average of this process's CPU load.

    Values are fractions of the whole machine (all cores), so 1.0 means every
    core was busy with this process for the whole sample.
    """

    def __init__(self, clock=time.monotonic, cpu_times=os.times, cpu_count: Optional[int] = None):
        self._clock = clock
        self._cpu_times = cpu_times
        self._cpu_count = cpu_count or os.cpu_count() or 1
        self.user = 0.0
        self.system = 0.0
        self._last_sample_time = clock()
        times = cpu_times()
        self._last_user = times.user
        self._last_system = times.system

    def sample(self):
        now = self._clock()
        times = self._cpu_times()
        elapsed = now - self._last_sample_time
        if elapsed <= 0:
            return

        divisor = elapsed * self._cpu_count
        new_user = (times.user - self._last_user) / divisor
        new_system = (times.system - self._last_system) / divisor
        self.user = self.user * 0.3 + new_user * 0.7
        self.system = self.system * 0.3 + new_system * 0.7

        self._last_sample_time = now
        self._last_user = times.user
        self._last_system = times.system

    def to_dict(self) -> dict:
        return {"user": self.user, "system": self.system}


def memory_usage() -> dict:
    """Current memory use of this process, in bytes."""
    info = psutil.Process().memory_info()
    return {"rss": info.rss, "vms": info.vms}


class TelemetryAggregator:
    """Append-only event log with an all-time summary and on-demand time series.

    Only used for health reporting; nothing in the routing path reads it.
    """

    def __init__(self, max_event_count: int = MAX_EVENT_COUNT, clock=time.time):
        self._clock = clock
        self.max_event_count = max_event_count
        self.start_time = clock()
        self.events: List[EventRecord] = []
        self.summary: Dict[str, SummaryDatum] = {}
        self.cpu_usage = CpuUsageTracker()

    def log_event(self, kind: EventKind, value: Optional[float] = None, info: Optional[str] = None):
        record = EventRecord(kind=kind, timestamp=self._clock(), value=value, info=info)
        self.events.append(record)
        add_to_segment(self.summary, record)

        if len(self.events) > self.max_event_count:
            drop = math.floor(len(self.events) * TRIM_FRACTION)
            logger.info(f"Event log over {self.max_event_count} entries, dropping oldest {drop}")
            del self.events[:drop]

    def get_health_data(self, earliest: float, span: float, latest: Optional[float] = None) -> dict:
        """Summarise the event log between ``earliest`` and ``latest``.

        All times are epoch seconds. ``span`` is the width of each series
        bucket. The range is clamped so a single request never produces more
        than MAX_SERIES_BUCKETS buckets.
        """
        now = self._clock()
        if not latest:
            latest = now
        span = max(span, MIN_SPAN_SECONDS)
        if latest < earliest:
            latest = earliest
        earliest = max(earliest, latest - span * MAX_SERIES_BUCKETS)

        buckets: Dict[float, Dict[str, SummaryDatum]] = {}
        for event in reversed(self.events):
            if event.timestamp < earliest:
                break
            if event.timestamp <= latest:
                bucket = math.floor(event.timestamp / span) * span
                add_to_segment(buckets.setdefault(bucket, {}), event)

        series = [
            {"date": int(bucket * 1000), "columns": _segment_to_columns(buckets[bucket])}
            for bucket in sorted(buckets)
        ]

        return {
            "version": VERSION,
            "uptime": format_uptime(now - self.start_time),
            "summary": _segment_to_columns(self.summary),
            "series": series,
            "cpuUsage": self.cpu_usage.to_dict(),
            "memoryUsage": memory_usage(),
        }
