"""
Counter Log Parser
Parses semicolon-delimited hardware counter logs (CACHE and TLB records) into typed samples.
"""

import logging
import math
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from framelens.core.errors import MalformedCounterLog
from framelens.core.schema import CACHE_RECORD_LAYOUT, CounterSample, CounterType
from framelens.core.utils import datetime_to_ns

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = ";"
TIME_SEPARATOR = ":"

CACHE_TAG = "CACHE"
TLB_TAG = "TLB"
BEGIN_MARKER = "BEGIN"

# Fields before the per-core groups: time, duration, tag
HEADER_FIELDS = 3
CACHE_GROUP_SIZE = len(CACHE_RECORD_LAYOUT)
TLB_GROUP_SIZE = 1


def _parse_number(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"non-finite value {text!r}")
    return value


def _parse_time(text: str, day: date) -> datetime:
    """Parse HH:MM:SS:mmm anchored to the given calendar day."""
    parts = text.strip().split(TIME_SEPARATOR)
    if len(parts) != 4:
        raise ValueError(f"expected 4 time fields, got {len(parts)}")

    hour, minute, second, millis = (int(p) for p in parts)
    return datetime(day.year, day.month, day.day, hour, minute, second) + timedelta(
        milliseconds=millis
    )


def _parse_line(
    fields: List[str],
    day: date,
    path: Optional[Path],
    line_number: int,
    text: str,
) -> Iterator[CounterSample]:
    tag = fields[2].strip()

    try:
        timestamp_ns = datetime_to_ns(_parse_time(fields[0], day))
        duration_ms = _parse_number(fields[1])
    except ValueError as e:
        raise MalformedCounterLog(path, line_number, text, str(e)) from e

    if tag == CACHE_TAG:
        core_count = (len(fields) - HEADER_FIELDS) // CACHE_GROUP_SIZE
        for core in range(core_count):
            offset = HEADER_FIELDS + core * CACHE_GROUP_SIZE
            group = fields[offset : offset + CACHE_GROUP_SIZE]
            try:
                values = [_parse_number(v) for v in group]
            except ValueError as e:
                raise MalformedCounterLog(
                    path, line_number, text, f"core {core}: {e}"
                ) from e

            for counter, value in zip(CACHE_RECORD_LAYOUT, values):
                yield CounterSample(timestamp_ns, core, duration_ms, counter, value)

    elif tag == TLB_TAG:
        # The TLB record always ends with one extra field that is not a core
        core_count = max(0, (len(fields) - HEADER_FIELDS) // TLB_GROUP_SIZE - 1)
        for core in range(core_count):
            raw = fields[HEADER_FIELDS + core * TLB_GROUP_SIZE]
            try:
                value = _parse_number(raw)
            except ValueError as e:
                raise MalformedCounterLog(
                    path, line_number, text, f"core {core}: {e}"
                ) from e

            yield CounterSample(timestamp_ns, core, duration_ms, CounterType.TLB_MISS, value)


def parse_counter_lines(
    lines: Iterable[str],
    day: date,
    path: Optional[Path] = None,
) -> Iterator[CounterSample]:
    """
    Lazily parse counter log lines into CounterSample records.

    Args:
        lines: Raw text lines of the log
        day: Calendar date that anchors the bare time-of-day stamps
        path: Source path, only used in error messages

    Raises:
        MalformedCounterLog: A numeric or time field of a recognised record failed to parse.
    """
    for line_number, raw in enumerate(lines, start=1):
        text = raw.rstrip("\r\n")

        if text.startswith(BEGIN_MARKER):
            continue

        fields = text.split(FIELD_SEPARATOR)
        if len(fields) < HEADER_FIELDS:
            continue

        if fields[2].strip() not in (CACHE_TAG, TLB_TAG):
            continue

        yield from _parse_line(fields, day, path, line_number, text)


def read_counter_log(path: Union[str, Path], day: date) -> Iterator[CounterSample]:
    """Lazily read a counter log file. Re-open by calling again."""
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        yield from parse_counter_lines(f, day, path)


class CounterLogParser:
    """
    Parser for hardware counter logs.
    Materialises the samples of one log and keeps summary statistics.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None, day: Optional[date] = None):
        self.path = Path(path) if path else None
        self.day = day or date.today()
        self.samples: List[CounterSample] = []

        if self.path:
            self.parse(self.path, self.day)

    def parse(self, path: Union[str, Path], day: Optional[date] = None) -> List[CounterSample]:
        """Parse the whole log. Raises MalformedCounterLog on the first bad field."""
        self.path = Path(path)
        if day is not None:
            self.day = day

        self.samples = list(read_counter_log(self.path, self.day))

        logger.info(
            f"Parsed {len(self.samples)} counter samples for {self.core_count} cores "
            f"from {self.path}"
        )
        return self.samples

    @property
    def core_count(self) -> int:
        """1 + the highest core id seen, 0 when the log has no samples."""
        if not self.samples:
            return 0
        return max(s.core for s in self.samples) + 1

    @property
    def time_range(self) -> Optional[Tuple[int, int]]:
        if not self.samples:
            return None
        stamps = [s.timestamp_ns for s in self.samples]
        return min(stamps), max(stamps)

    def count_by_type(self) -> Dict[CounterType, int]:
        counts: Dict[CounterType, int] = {}
        for sample in self.samples:
            counts[sample.counter] = counts.get(sample.counter, 0) + 1
        return counts

    def to_dataframe(self):
        """Convert samples to pandas DataFrame."""
        import pandas as pd

        if not self.samples:
            return pd.DataFrame()

        return pd.DataFrame(
            [
                {
                    "time": s.time,
                    "timestamp_ns": s.timestamp_ns,
                    "core": s.core,
                    "counter": s.counter.name,
                    "duration_ms": s.duration_ms,
                    "value": s.value,
                }
                for s in self.samples
            ]
        )

    def get_summary(self):
        """Per-core, per-counter sample count and mean value."""
        import pandas as pd

        df = self.to_dataframe()
        if df.empty:
            return pd.DataFrame()

        return (
            df.groupby(["core", "counter"])["value"]
            .agg(["count", "mean", "min", "max"])
            .reset_index()
        )
