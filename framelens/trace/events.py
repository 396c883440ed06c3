"""
Trace Event Adapter
Wraps a loaded trace container and yields typed context-switch and page-fault records.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol, Sequence, Tuple

from framelens.core.config import TraceConfig
from framelens.core.errors import ProcessNotFound
from framelens.core.schema import (
    ContextSwitch,
    PageFault,
    PageFaultType,
    ThreadRef,
    ThreadState,
)

logger = logging.getLogger(__name__)


@dataclass
class TraceThread:
    """A thread known to the trace container."""

    tid: int
    pid: int
    name: str = ""
    start_ns: int = 0
    end_ns: int = 0


@dataclass
class TraceProcess:
    """A process known to the trace container."""

    pid: int
    name: str
    start_ns: int
    end_ns: int
    threads: List[TraceThread] = field(default_factory=list)
    command_line: str = ""

    @property
    def duration_ns(self) -> int:
        return max(0, self.end_ns - self.start_ns)


@dataclass
class RawTraceEvent:
    """Untyped event as stored in the trace container."""

    event_name: str
    timestamp_ns: int
    cpu: int
    pid: int = -1
    tid: int = -1
    payload: Dict[str, Any] = field(default_factory=dict)


class TraceSource(Protocol):
    """Anything that exposes the processes and raw events of a loaded trace."""

    processes: Sequence[TraceProcess]
    events: Sequence[RawTraceEvent]


@dataclass
class ProcessLookup:
    """Result of looking up the monitored process by name prefix."""

    prefix: str
    process: Optional[TraceProcess] = None

    @property
    def found(self) -> bool:
        return self.process is not None

    def unwrap(self) -> TraceProcess:
        if self.process is None:
            raise ProcessNotFound(self.prefix)
        return self.process


class ThreadResolver:
    """
    Resolves (tid, pid) pairs against the monitored process's thread list.

    Pairs that are not part of the process (other processes, the idle thread)
    are returned as synthetic references instead of being dropped.
    """

    def __init__(self, process: Optional[TraceProcess] = None):
        self._known: Dict[Tuple[int, int], ThreadRef] = {}

        if process is not None:
            for thread in process.threads:
                pid = thread.pid if thread.pid >= 0 else process.pid
                self._known[(thread.tid, pid)] = ThreadRef(
                    tid=thread.tid, pid=pid, name=thread.name or process.name
                )

    def __len__(self) -> int:
        return len(self._known)

    def resolve(self, tid: int, pid: int) -> ThreadRef:
        ref = self._known.get((tid, pid))
        if ref is None:
            return ThreadRef.synthetic(tid, pid)
        return ref

    def is_known(self, tid: int, pid: int) -> bool:
        return (tid, pid) in self._known

    @property
    def threads(self) -> List[ThreadRef]:
        return list(self._known.values())


class EventAdapter:
    """
    Typed view over a TraceSource.

    Event categories are matched by name prefix (see TraceConfig); anything
    that does not match is filtered out here and never reaches the frame builder.
    """

    def __init__(self, source: TraceSource, config: Optional[TraceConfig] = None):
        self.source = source
        self.config = config or TraceConfig()

    def find_process(self, prefix: str) -> ProcessLookup:
        """Find the first process whose name starts with prefix."""
        for process in self.source.processes:
            if process.name.startswith(prefix):
                return ProcessLookup(prefix=prefix, process=process)

        logger.debug(f"No process matching '{prefix}' among {len(self.source.processes)}")
        return ProcessLookup(prefix=prefix)

    def events_by_prefix(self, prefix: str) -> Iterator[RawTraceEvent]:
        return (e for e in self.source.events if e.event_name.startswith(prefix))

    def context_switches(self) -> List[ContextSwitch]:
        """All context switches in the trace, in source order."""
        switches = [
            self._to_switch(e) for e in self.events_by_prefix(self.config.switch_event_prefix)
        ]
        logger.debug(f"Adapted {len(switches)} context switches")
        return switches

    def page_faults(self) -> List[PageFault]:
        """All page faults in the trace, in source order."""
        faults = [
            PageFault(
                timestamp_ns=e.timestamp_ns,
                core=e.cpu,
                pid=e.pid,
                tid=e.tid,
                fault_type=self.fault_type(e.event_name),
            )
            for e in self.events_by_prefix(self.config.fault_event_prefix)
        ]
        logger.debug(f"Adapted {len(faults)} page faults")
        return faults

    def fault_type(self, event_name: str) -> PageFaultType:
        if any(event_name.startswith(p) for p in self.config.major_fault_prefixes):
            return PageFaultType.MAJOR
        if any(event_name.startswith(p) for p in self.config.minor_fault_prefixes):
            return PageFaultType.MINOR
        return PageFaultType.MAJOR if "Hard" in event_name else PageFaultType.MINOR

    @staticmethod
    def _to_switch(event: RawTraceEvent) -> ContextSwitch:
        payload = event.payload
        return ContextSwitch(
            timestamp_ns=event.timestamp_ns,
            core=event.cpu,
            old_tid=int(payload.get("old_tid", event.tid)),
            old_pid=int(payload.get("old_pid", event.pid)),
            new_tid=int(payload.get("new_tid", -1)),
            new_pid=int(payload.get("new_pid", -1)),
            state=ThreadState.parse(payload.get("state")),
        )


@dataclass
class InMemoryTraceSource:
    """Plain container implementing TraceSource, used by loaders and tests."""

    processes: List[TraceProcess] = field(default_factory=list)
    events: List[RawTraceEvent] = field(default_factory=list)

    def add_process(self, process: TraceProcess) -> None:
        self.processes.append(process)

    def extend(self, events: Iterable[RawTraceEvent]) -> None:
        self.events.extend(events)
