"""
Framelens Core Module - Schemas, errors, configuration and utilities.
"""

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
from framelens.core.config import AnalysisConfig, OutputConfig, TraceConfig, load_config

__all__ = [
    "AttributedCounters",
    "ContextSwitch",
    "CounterSample",
    "CounterType",
    "MetricRecord",
    "PageFault",
    "PageFaultType",
    "ThreadRef",
    "ThreadState",
    "FramelensError",
    "MalformedCounterLog",
    "ProcessNotFound",
    "AnalysisConfig",
    "OutputConfig",
    "TraceConfig",
    "load_config",
]
