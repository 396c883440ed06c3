"""
Framelens

Reconstructs a synchronized per-thread, per-interval view of CPU cache, TLB and
IPC behavior for a monitored process from OS context-switch traces and periodic
hardware performance counter samples.
"""

__version__ = "1.0.0"

from framelens.core.schema import (
    AttributedCounters,
    ContextSwitch,
    CounterSample,
    CounterType,
    MetricRecord,
    PageFault,
    PageFaultType,
    ThreadRef,
    ThreadState,
)
from framelens.core.errors import FramelensError, MalformedCounterLog, ProcessNotFound
from framelens.core.config import AnalysisConfig, load_config

from framelens.counters import CounterLogParser, read_counter_log

from framelens.trace import (
    EventAdapter,
    InMemoryTraceSource,
    JsonTraceSource,
    RawTraceEvent,
    TraceProcess,
    TraceThread,
)

from framelens.analysis import (
    CounterAttributor,
    Frame,
    FrameAnalyzer,
    FrameBuilder,
    FrameSet,
    ObservationWindow,
    AnalysisResult,
    attribute_counters,
    get_projection,
    simple_projection,
)

from framelens.report import MetricOutput

__all__ = [
    # Schema
    "AttributedCounters",
    "ContextSwitch",
    "CounterSample",
    "CounterType",
    "MetricRecord",
    "PageFault",
    "PageFaultType",
    "ThreadRef",
    "ThreadState",
    # Errors and config
    "FramelensError",
    "MalformedCounterLog",
    "ProcessNotFound",
    "AnalysisConfig",
    "load_config",
    # Counters
    "CounterLogParser",
    "read_counter_log",
    # Trace
    "EventAdapter",
    "InMemoryTraceSource",
    "JsonTraceSource",
    "RawTraceEvent",
    "TraceProcess",
    "TraceThread",
    # Analysis
    "CounterAttributor",
    "Frame",
    "FrameAnalyzer",
    "FrameBuilder",
    "FrameSet",
    "ObservationWindow",
    "AnalysisResult",
    "attribute_counters",
    "get_projection",
    "simple_projection",
    # Report
    "MetricOutput",
    # Version
    "__version__",
]
