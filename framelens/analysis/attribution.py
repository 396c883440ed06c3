"""
Counter Attribution
Selects the hardware counter samples overlapping a frame and turns them into a
per-frame estimate: absolute counts are rate-normalised and extrapolated to the
frame length, ratio/clock counters are averaged.
"""

import bisect
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from framelens.core.schema import (
    AVERAGE_COUNTERS,
    RATE_COUNTERS,
    AttributedCounters,
    CounterSample,
    CounterType,
)
from framelens.core.utils import ns_to_ms

logger = logging.getLogger(__name__)

# AttributedCounters field filled from each counter kind
COUNTER_FIELDS: Dict[CounterType, str] = {
    CounterType.L2_MISS: "l2_misses",
    CounterType.L3_MISS: "l3_misses",
    CounterType.L2_HIT: "l2_hits",
    CounterType.L3_HIT: "l3_hits",
    CounterType.TLB_MISS: "tlb_misses",
    CounterType.IPC: "ipc",
    CounterType.L2_CLOCK: "l2_clock",
    CounterType.L3_CLOCK: "l3_clock",
}


def extrapolate(samples: Sequence[CounterSample], interval_ms: float) -> float:
    """
    Estimate the count over interval_ms from samples of one counter.

    The summed values are divided by the summed sample durations (a per-ms
    rate) and scaled to the interval. No samples, or a zero duration sum, gives 0.
    """
    if not samples:
        return 0.0

    values = np.fromiter((s.value for s in samples), dtype=np.float64, count=len(samples))
    durations = np.fromiter(
        (s.duration_ms for s in samples), dtype=np.float64, count=len(samples)
    )

    total_duration = float(durations.sum())
    if total_duration <= 0:
        return 0.0

    return float(values.sum()) / total_duration * interval_ms


def average(samples: Sequence[CounterSample]) -> float:
    """Mean value of the samples, 0 when there are none."""
    if not samples:
        return 0.0
    return float(np.mean([s.value for s in samples]))


def estimate_counters(
    samples: Iterable[CounterSample], interval_ms: float
) -> AttributedCounters:
    """Build the frame estimate from samples already selected for the frame's core and window."""
    by_type: Dict[CounterType, List[CounterSample]] = {}
    for sample in samples:
        by_type.setdefault(sample.counter, []).append(sample)

    # Each kind is normalised by its own duration sum (TLB and CACHE records are not co-timed)
    values = {
        COUNTER_FIELDS[kind]: extrapolate(by_type.get(kind, []), interval_ms)
        for kind in RATE_COUNTERS
    }
    values.update(
        {COUNTER_FIELDS[kind]: average(by_type.get(kind, [])) for kind in AVERAGE_COUNTERS}
    )

    counters = AttributedCounters(**values)
    counters.l1_misses = counters.l2_misses + counters.l2_hits
    return counters


def attribute_counters(
    samples: Iterable[CounterSample],
    core: int,
    start_ns: int,
    end_ns: int,
    interval_ms: Optional[float] = None,
) -> AttributedCounters:
    """
    Attribute counters to the window [start_ns, end_ns] on one core.

    Args:
        samples: Full counter sample collection
        core: Core of the frame
        start_ns: Frame start
        end_ns: Frame end (inclusive)
        interval_ms: Length to extrapolate to, defaults to the window length
    """
    if interval_ms is None:
        interval_ms = ns_to_ms(end_ns - start_ns)

    selected = [
        s for s in samples if s.core == core and start_ns <= s.timestamp_ns <= end_ns
    ]
    return estimate_counters(selected, interval_ms)


class CounterAttributor:
    """
    Attributes counters to every frame of a FrameSet.

    The sample collection is indexed once by core and sorted by time so each
    frame only bisects its own slice. The index is read-only, frames can be
    attributed concurrently.
    """

    def __init__(self, samples: Iterable[CounterSample], workers: Optional[int] = None):
        self.workers = workers
        self._samples: Dict[int, List[CounterSample]] = {}
        self._times: Dict[int, List[int]] = {}

        for sample in samples:
            self._samples.setdefault(sample.core, []).append(sample)

        for core, items in self._samples.items():
            items.sort(key=lambda s: s.timestamp_ns)
            self._times[core] = [s.timestamp_ns for s in items]

    @property
    def sample_count(self) -> int:
        return sum(len(v) for v in self._samples.values())

    def select(self, core: int, start_ns: int, end_ns: int) -> List[CounterSample]:
        """Samples of one core with start_ns <= timestamp <= end_ns."""
        times = self._times.get(core)
        if not times:
            return []
        lo = bisect.bisect_left(times, start_ns)
        hi = bisect.bisect_right(times, end_ns)
        return self._samples[core][lo:hi]

    def attribute(self, frame) -> AttributedCounters:
        """Estimate for one frame. Does not modify the frame."""
        selected = self.select(frame.core, frame.start_ns, frame.end_ns)
        return estimate_counters(selected, ns_to_ms(frame.duration_ns))

    def attribute_all(self, frames: Sequence) -> Sequence:
        """Compute every frame's estimate and store it on the frame."""
        if not frames:
            return frames

        workers = self.workers or min(len(frames), os.cpu_count() or 1)
        with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
            estimates = list(executor.map(self.attribute, frames))

        empty = 0
        for frame, counters in zip(frames, estimates):
            frame.counters = counters
            if counters.is_zero():
                empty += 1

        if empty:
            logger.debug(f"{empty}/{len(frames)} frames had no counter samples in their window")

        return frames
