"""
Metric Projector
Combines each frame's per-thread time shares with its counter estimate and page faults
into named per-thread metric records.

A projection is a plain function Sequence[Frame] -> List[MetricRecord]; callers pick
one by name from PROJECTIONS.
"""

import logging
from typing import Callable, Dict, List, Sequence

from framelens.analysis.frames import Frame
from framelens.core.schema import MetricRecord, PageFaultType, ThreadRef

logger = logging.getLogger(__name__)

Projection = Callable[[Sequence[Frame]], List[MetricRecord]]

TRACKED_METRICS = (
    "l1miss",
    "l2miss",
    "l3miss",
    "tlbmiss",
    "l2perf",
    "l3perf",
    "dzf",
    "hpf",
    "ipc",
)


def count_faults(frame: Frame, thread: ThreadRef, fault_type: PageFaultType) -> int:
    """Number of the frame's page faults of the given kind raised by the thread."""
    return sum(
        1 for pf in frame.page_faults if pf.fault_type == fault_type and pf.belongs_to(thread)
    )


def project_frame(frame: Frame) -> List[MetricRecord]:
    """Metric records for every thread with a nonzero share of the frame."""
    records: List[MetricRecord] = []
    cn = frame.counters

    for thread in frame.threads:
        share = frame.share(thread)
        if share <= 0:
            continue

        values: Dict[str, float] = {
            # Discrete hardware events, rounded to whole units
            "l1miss": float(round(share * cn.l1_misses)),
            "l2miss": float(round(share * cn.l2_misses)),
            "l3miss": float(round(share * cn.l3_misses)),
            "tlbmiss": float(round(share * cn.tlb_misses)),
            # Clock-domain and ratio figures are frame-level
            "l2perf": cn.l2_clock,
            "l3perf": cn.l3_clock,
            "dzf": count_faults(frame, thread, PageFaultType.MINOR),
            "hpf": count_faults(frame, thread, PageFaultType.MAJOR),
            "ipc": cn.ipc,
        }

        records.extend(
            MetricRecord(
                metric=name,
                time_ns=frame.start_ns,
                core=frame.core,
                thread=thread,
                value=values[name],
            )
            for name in TRACKED_METRICS
        )

    return records


def simple_projection(frames: Sequence[Frame]) -> List[MetricRecord]:
    """Cache, TLB, page fault and IPC metrics per thread and frame."""
    records: List[MetricRecord] = []
    for frame in frames:
        records.extend(project_frame(frame))
    return records


def share_projection(frames: Sequence[Frame]) -> List[MetricRecord]:
    """Scheduling view only: time share and running time (ms) per thread and frame."""
    records: List[MetricRecord] = []
    for frame in frames:
        for thread, running_ns in frame.running.items():
            share = frame.share(thread)
            if share <= 0:
                continue
            records.append(MetricRecord("share", frame.start_ns, frame.core, thread, share))
            records.append(
                MetricRecord("runtime", frame.start_ns, frame.core, thread, running_ns / 1e6)
            )
    return records


PROJECTIONS: Dict[str, Projection] = {
    "simple": simple_projection,
    "share": share_projection,
}


def get_projection(name: str) -> Projection:
    """Look up a projection by name."""
    try:
        return PROJECTIONS[name]
    except KeyError:
        raise KeyError(
            f"Unknown projection '{name}'. Available: {', '.join(sorted(PROJECTIONS))}"
        ) from None
