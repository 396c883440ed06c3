"""
Frame Builder
Partitions the observation window into fixed-length per-core frames and reconstructs
per-thread running time from the context-switch stream.
"""

import bisect
import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from framelens.core.schema import (
    AttributedCounters,
    ContextSwitch,
    CounterSample,
    PageFault,
    ThreadRef,
    ThreadState,
)
from framelens.core.utils import ms_to_ns, ns_to_ms
from framelens.trace.events import ThreadResolver, TraceProcess

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ObservationWindow:
    """Time span [start_ns, end_ns) covered by both the process and the counter log."""

    start_ns: int
    end_ns: int

    @property
    def duration_ns(self) -> int:
        return max(0, self.end_ns - self.start_ns)

    @property
    def duration_ms(self) -> float:
        return ns_to_ms(self.duration_ns)

    @property
    def is_empty(self) -> bool:
        return self.end_ns <= self.start_ns

    def frame_count(self, interval_ns: int) -> int:
        """Number of interval-sized buckets needed to cover the window."""
        if self.is_empty:
            return 0
        return -(-self.duration_ns // interval_ns)

    @classmethod
    def intersect(
        cls, process: TraceProcess, samples: Sequence[CounterSample]
    ) -> "ObservationWindow":
        """Intersection of the process lifetime with the counter sample timespan."""
        if not samples:
            return cls(process.start_ns, process.start_ns)

        stamps = [s.timestamp_ns for s in samples]
        return cls(
            start_ns=max(process.start_ns, min(stamps)),
            end_ns=min(process.end_ns, max(stamps)),
        )


@dataclass
class Frame:
    """
    One fixed-length time bucket on one core.

    running maps each thread to the nanoseconds it was observed running in
    the bucket; counters is filled in later by counter attribution. Events
    stamped at start_ns or end_ns both belong to the bucket.
    """

    start_ns: int
    duration_ns: int
    core: int
    running: Dict[ThreadRef, int] = field(default_factory=dict)
    states: Dict[ThreadRef, ThreadState] = field(default_factory=dict)
    counters: AttributedCounters = field(default_factory=AttributedCounters)
    page_faults: List[PageFault] = field(default_factory=list)
    switch_count: int = 0
    carried: bool = False

    @property
    def end_ns(self) -> int:
        return self.start_ns + self.duration_ns

    @property
    def total_ns(self) -> int:
        return sum(self.running.values())

    @property
    def threads(self) -> List[ThreadRef]:
        return list(self.running)

    def increment(self, thread: ThreadRef, state: ThreadState, elapsed_ns: int) -> None:
        if elapsed_ns <= 0:
            return
        self.running[thread] = self.running.get(thread, 0) + elapsed_ns
        self.states[thread] = state

    def share(self, thread: ThreadRef) -> float:
        """Fraction of the accounted time the thread was running, 0 if nothing was accounted."""
        total = self.total_ns
        if total == 0:
            return 0.0
        return self.running.get(thread, 0) / total

    def shares(self) -> Dict[ThreadRef, float]:
        return {thread: self.share(thread) for thread in self.running}


class FrameSet(Sequence[Frame]):
    """All frames of an analysis, core-major and time-ordered within each core."""

    def __init__(
        self,
        frames_by_core: Optional[Dict[int, List[Frame]]] = None,
        interval_ns: int = 0,
        window: Optional[ObservationWindow] = None,
    ):
        self.interval_ns = interval_ns
        self.window = window
        self._by_core: Dict[int, List[Frame]] = dict(sorted((frames_by_core or {}).items()))
        self._frames: List[Frame] = [f for frames in self._by_core.values() for f in frames]

    def __len__(self) -> int:
        return len(self._frames)

    def __getitem__(self, index):
        return self._frames[index]

    def __iter__(self) -> Iterator[Frame]:
        return iter(self._frames)

    @property
    def cores(self) -> List[int]:
        return list(self._by_core)

    @property
    def core_count(self) -> int:
        return len(self._by_core)

    def by_core(self, core: int) -> List[Frame]:
        return list(self._by_core.get(core, []))

    def unresolved_threads(self) -> List[ThreadRef]:
        seen = {t for frame in self._frames for t in frame.running if not t.resolved}
        return sorted(seen, key=lambda t: (t.pid, t.tid))


@dataclass(frozen=True)
class CoreState:
    """Carry-forward accumulator threaded through one core's buckets in time order."""

    core: int
    last_switch: Optional[ContextSwitch] = None


def fold_bucket(
    frame: Frame,
    switches: Sequence[ContextSwitch],
    state: CoreState,
    resolver: ThreadResolver,
) -> CoreState:
    """
    Credit running time in one bucket and return the updated core state.

    Each switch credits the thread switched out with the time elapsed since the
    previous switch (or the bucket start). If nothing was accounted, the whole
    bucket goes to the thread switched in by the last switch seen on this core,
    recorded with that switch's state.
    """
    previous = frame.start_ns

    for sw in switches:
        thread = resolver.resolve(sw.old_tid, sw.old_pid)
        frame.increment(thread, sw.state, sw.timestamp_ns - previous)
        previous = sw.timestamp_ns

    frame.switch_count = len(switches)
    if switches:
        state = replace(state, last_switch=switches[-1])

    if frame.total_ns == 0 and state.last_switch is not None:
        last = state.last_switch
        thread = resolver.resolve(last.new_tid, last.new_pid)
        frame.increment(thread, last.state, frame.duration_ns)
        frame.carried = True

    return state


def build_core_frames(
    core: int,
    switches: Sequence[ContextSwitch],
    faults: Sequence[PageFault],
    window: ObservationWindow,
    interval_ns: int,
    resolver: ThreadResolver,
) -> List[Frame]:
    """Build every frame of one core. switches and faults must be sorted by time."""
    switch_times = [sw.timestamp_ns for sw in switches]
    fault_times = [pf.timestamp_ns for pf in faults]

    state = CoreState(core=core)
    frames: List[Frame] = []

    for i in range(window.frame_count(interval_ns)):
        start = window.start_ns + i * interval_ns
        end = start + interval_ns
        frame = Frame(start_ns=start, duration_ns=interval_ns, core=core)

        lo = bisect.bisect_left(switch_times, start)
        hi = bisect.bisect_right(switch_times, end)
        state = fold_bucket(frame, switches[lo:hi], state, resolver)

        lo = bisect.bisect_left(fault_times, start)
        hi = bisect.bisect_right(fault_times, end)
        frame.page_faults = list(faults[lo:hi])

        frames.append(frame)

    return frames


class FrameBuilder:
    """
    Builds the FrameSet for one monitored process.

    Cores are independent and are folded on separate worker threads; within a
    core, buckets are always processed in time order.
    """

    def __init__(
        self,
        interval_ms: int,
        core_count: int,
        resolver: Optional[ThreadResolver] = None,
        workers: Optional[int] = None,
    ):
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")
        self.interval_ms = interval_ms
        self.interval_ns = ms_to_ns(interval_ms)
        self.core_count = core_count
        self.resolver = resolver or ThreadResolver()
        self.workers = workers

    def build(
        self,
        switches: Iterable[ContextSwitch],
        window: ObservationWindow,
        faults: Iterable[PageFault] = (),
        pid: Optional[int] = None,
    ) -> FrameSet:
        """
        Args:
            switches: Context switches of the whole trace
            window: Observation window to cover
            faults: Page faults of the whole trace
            pid: Monitored process id; faults of other processes are dropped
        """
        if window.is_empty or self.core_count <= 0:
            logger.warning(
                f"Empty observation window ({window.duration_ms:.1f} ms, "
                f"{self.core_count} cores), no frames built"
            )
            return FrameSet(interval_ns=self.interval_ns, window=window)

        switches_by_core = self._group_by_core(switches)
        faults_by_core = self._group_by_core(
            f for f in faults if pid is None or f.pid == pid
        )

        workers = self.workers or min(self.core_count, os.cpu_count() or 1)
        frames_by_core: Dict[int, List[Frame]] = {}

        with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
            future_to_core = {
                executor.submit(
                    build_core_frames,
                    core,
                    switches_by_core.get(core, []),
                    faults_by_core.get(core, []),
                    window,
                    self.interval_ns,
                    self.resolver,
                ): core
                for core in range(self.core_count)
            }

            for future in as_completed(future_to_core):
                frames_by_core[future_to_core[future]] = future.result()

        frame_set = FrameSet(frames_by_core, interval_ns=self.interval_ns, window=window)

        unresolved = frame_set.unresolved_threads()
        if unresolved:
            logger.debug(f"{len(unresolved)} threads outside the monitored process kept as synthetic")

        return frame_set

    @staticmethod
    def _group_by_core(events) -> Dict[int, list]:
        grouped: Dict[int, list] = {}
        for event in events:
            grouped.setdefault(event.core, []).append(event)
        for items in grouped.values():
            items.sort(key=lambda e: e.timestamp_ns)
        return grouped
