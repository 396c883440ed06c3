"""
Analysis Pipeline
Runs process lookup, frame building, counter attribution and metric projection
for one monitored process.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from framelens.analysis.attribution import CounterAttributor
from framelens.analysis.frames import FrameBuilder, FrameSet, ObservationWindow
from framelens.analysis.projector import Projection, get_projection
from framelens.core.config import AnalysisConfig
from framelens.core.schema import CounterSample, MetricRecord
from framelens.core.utils import Timer, format_duration, ms_to_ns
from framelens.report.output import MetricOutput
from framelens.trace.events import EventAdapter, ThreadResolver, TraceProcess, TraceSource

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Everything produced by one analysis run."""

    process: TraceProcess
    window: ObservationWindow
    core_count: int
    interval_ms: int
    frames: FrameSet
    records: List[MetricRecord]
    output: MetricOutput

    def summary(self) -> Dict[str, Any]:
        return {
            "process": self.process.name,
            "pid": self.process.pid,
            "threads": len(self.process.threads),
            "duration_ms": self.window.duration_ms,
            "cores": self.core_count,
            "interval_ms": self.interval_ms,
            "frames": len(self.frames),
            "records": len(self.records),
        }


class FrameAnalyzer:
    """
    Fuses a scheduling trace with hardware counter samples.

    Usage:
        analyzer = FrameAnalyzer(source, samples)
        result = analyzer.analyze("Matmul", interval_ms=100)
        result.output.save("output.csv")
    """

    def __init__(
        self,
        source: TraceSource,
        counters: Iterable[CounterSample],
        config: Optional[AnalysisConfig] = None,
        projection: Optional[Projection] = None,
    ):
        self.config = config or AnalysisConfig()
        self.adapter = EventAdapter(source, self.config.trace)
        self.counters: List[CounterSample] = list(counters)
        self.projection = projection or get_projection(self.config.projection)

        # Core count comes from the counter log, not from the trace
        self.core_count = max((c.core for c in self.counters), default=-1) + 1

    def analyze(
        self,
        process_name: Optional[str] = None,
        interval_ms: Optional[int] = None,
    ) -> AnalysisResult:
        """
        Analyze the process whose name starts with process_name.

        Raises:
            ProcessNotFound: No process in the trace matches.
            ValueError: No process name was given, or the interval is not positive.
        """
        process_name = process_name or self.config.process
        if not process_name:
            raise ValueError("A process name is required")
        if interval_ms is None:
            interval_ms = self.config.interval_ms
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")

        process = self.adapter.find_process(process_name).unwrap()
        resolver = ThreadResolver(process)
        window = ObservationWindow.intersect(process, self.counters)
        frame_count = window.frame_count(ms_to_ns(interval_ms))

        logger.info(f"Analyzing {process.name} process with {len(process.threads)} threads")
        logger.info(f"Duration = {format_duration(window.duration_ns / 1e9)}")
        logger.info(f"#cores = {self.core_count}")
        logger.info(f"Creating #{frame_count} frames per core for {interval_ms}ms interval")

        with Timer("frame building"):
            builder = FrameBuilder(
                interval_ms=interval_ms,
                core_count=self.core_count,
                resolver=resolver,
                workers=self.config.workers,
            )
            frames = builder.build(
                self.adapter.context_switches(),
                window,
                faults=self.adapter.page_faults(),
                pid=process.pid,
            )

        with Timer("counter attribution"):
            CounterAttributor(self.counters, workers=self.config.workers).attribute_all(frames)

        with Timer("metric projection"):
            records = self.projection(frames)

        logger.info(f"Projected {len(records)} metric records from {len(frames)} frames")

        return AnalysisResult(
            process=process,
            window=window,
            core_count=self.core_count,
            interval_ms=interval_ms,
            frames=frames,
            records=records,
            output=MetricOutput(records),
        )
