"""
Framelens Analysis Module - frame resampling, counter attribution and metric projection.
"""

from framelens.analysis.frames import (
    CoreState,
    Frame,
    FrameBuilder,
    FrameSet,
    ObservationWindow,
    build_core_frames,
    fold_bucket,
)
from framelens.analysis.attribution import (
    CounterAttributor,
    attribute_counters,
    estimate_counters,
)
from framelens.analysis.projector import (
    PROJECTIONS,
    TRACKED_METRICS,
    get_projection,
    share_projection,
    simple_projection,
)
from framelens.analysis.pipeline import AnalysisResult, FrameAnalyzer

__all__ = [
    "CoreState",
    "Frame",
    "FrameBuilder",
    "FrameSet",
    "ObservationWindow",
    "build_core_frames",
    "fold_bucket",
    "CounterAttributor",
    "attribute_counters",
    "estimate_counters",
    "PROJECTIONS",
    "TRACKED_METRICS",
    "get_projection",
    "share_projection",
    "simple_projection",
    "AnalysisResult",
    "FrameAnalyzer",
]
