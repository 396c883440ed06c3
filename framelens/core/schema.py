"""
Framelens Data Schema Definitions
Dataclasses for trace events, hardware counter samples, thread references and metric records.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict

from framelens.core.utils import ns_to_datetime


class CounterType(Enum):
    """Hardware counter kinds produced by the counter log."""

    IPC = "ipc"
    L2_MISS = "l2_miss"
    L3_MISS = "l3_miss"
    L2_HIT = "l2_hit"
    L3_HIT = "l3_hit"
    L2_CLOCK = "l2_clock"
    L3_CLOCK = "l3_clock"
    TLB_MISS = "tlb_miss"


# Order of the per-core fields in a CACHE record
CACHE_RECORD_LAYOUT = (
    CounterType.IPC,
    CounterType.L3_MISS,
    CounterType.L2_MISS,
    CounterType.L3_HIT,
    CounterType.L2_HIT,
    CounterType.L3_CLOCK,
    CounterType.L2_CLOCK,
)

# Counters that are absolute event counts over the sample duration
RATE_COUNTERS = (
    CounterType.L2_MISS,
    CounterType.L3_MISS,
    CounterType.L2_HIT,
    CounterType.L3_HIT,
    CounterType.TLB_MISS,
)

# Counters that are already averages (ratios, clock-domain figures)
AVERAGE_COUNTERS = (
    CounterType.IPC,
    CounterType.L2_CLOCK,
    CounterType.L3_CLOCK,
)


class PageFaultType(Enum):
    """Page fault categories."""

    MINOR = "minor"  # demand-zero
    MAJOR = "major"  # hard fault, backed by I/O


class ThreadState(Enum):
    """Resulting state of the thread switched out by a context switch."""

    INITIALIZED = "initialized"
    READY = "ready"
    RUNNING = "running"
    STANDBY = "standby"
    TERMINATED = "terminated"
    WAITING = "waiting"
    TRANSITION = "transition"
    DEFERRED_READY = "deferred_ready"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "ThreadState":
        """Parse a state given either by name or by its numeric kernel code."""
        if isinstance(value, ThreadState):
            return value
        if value is None:
            return cls.UNKNOWN
        if isinstance(value, int) or (isinstance(value, str) and value.isdigit()):
            members = list(cls)
            index = int(value)
            # Numeric codes follow the kernel's KTHREAD_STATE ordering
            if 0 <= index < len(members) - 1:
                return members[index]
            return cls.UNKNOWN

        text = str(value).strip().lower().replace(" ", "_")
        text = "deferred_ready" if text == "deferredready" else text
        try:
            return cls(text)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class ThreadRef:
    """
    Reference to a thread of the traced system.

    Equality and hashing only use (tid, pid). Threads that are not part of the
    monitored process's thread list are kept with resolved=False.
    """

    tid: int
    pid: int
    name: str = field(default="", compare=False)
    resolved: bool = field(default=True, compare=False)

    @classmethod
    def synthetic(cls, tid: int, pid: int) -> "ThreadRef":
        return cls(tid=tid, pid=pid, name="", resolved=False)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def __str__(self) -> str:
        label = self.name or "?"
        return f"{label} ({self.pid}:{self.tid})"


@dataclass(frozen=True)
class ContextSwitch:
    """A single context switch observed on a core."""

    timestamp_ns: int
    core: int
    old_tid: int
    old_pid: int
    new_tid: int
    new_pid: int
    state: ThreadState = ThreadState.UNKNOWN

    @property
    def time(self) -> datetime:
        return ns_to_datetime(self.timestamp_ns)


@dataclass(frozen=True)
class PageFault:
    """A page fault raised by a thread."""

    timestamp_ns: int
    core: int
    pid: int
    tid: int
    fault_type: PageFaultType

    @property
    def time(self) -> datetime:
        return ns_to_datetime(self.timestamp_ns)

    def belongs_to(self, thread: ThreadRef) -> bool:
        return self.tid == thread.tid and self.pid == thread.pid


@dataclass(frozen=True)
class CounterSample:
    """One hardware counter value for one core, integrated over duration_ms."""

    timestamp_ns: int
    core: int
    duration_ms: float
    counter: CounterType
    value: float

    @property
    def time(self) -> datetime:
        return ns_to_datetime(self.timestamp_ns)

    def __str__(self) -> str:
        return f"{self.counter.name}: {self.value}"


@dataclass
class AttributedCounters:
    """Hardware counter estimate for one frame (one core, one interval)."""

    l1_misses: float = 0.0
    l2_misses: float = 0.0
    l3_misses: float = 0.0
    l2_hits: float = 0.0
    l3_hits: float = 0.0
    ipc: float = 0.0
    l2_clock: float = 0.0
    l3_clock: float = 0.0
    tlb_misses: float = 0.0

    @classmethod
    def zero(cls) -> "AttributedCounters":
        return cls()

    def is_zero(self) -> bool:
        return not any(self.to_dict().values())

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


# Metrics that carry the same frame-wide value on every thread of the frame
FRAME_LEVEL_METRICS = ("ipc", "l2perf", "l3perf")


@dataclass(frozen=True)
class MetricRecord:
    """A named metric value for one thread within one frame."""

    metric: str
    time_ns: int
    core: int
    thread: ThreadRef
    value: float

    @property
    def time(self) -> datetime:
        return ns_to_datetime(self.time_ns)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric,
            "time": self.time,
            "time_ns": self.time_ns,
            "core": self.core,
            "tid": self.thread.tid,
            "pid": self.thread.pid,
            "thread_name": self.thread.name,
            "value": self.value,
        }

