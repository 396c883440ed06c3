"""
Framelens Trace Module - typed adapter over OS scheduling/page-fault traces.
"""

from framelens.trace.events import (
    EventAdapter,
    InMemoryTraceSource,
    ProcessLookup,
    RawTraceEvent,
    ThreadResolver,
    TraceProcess,
    TraceSource,
    TraceThread,
)
from framelens.trace.json_source import JsonTraceSource

__all__ = [
    "EventAdapter",
    "InMemoryTraceSource",
    "ProcessLookup",
    "RawTraceEvent",
    "ThreadResolver",
    "TraceProcess",
    "TraceSource",
    "TraceThread",
    "JsonTraceSource",
]
