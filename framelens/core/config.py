"""
Analysis Configuration
Dataclasses for analysis, trace and output settings, loadable from a YAML file.
"""

import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

logger = logging.getLogger(__name__)


@dataclass
class TraceConfig:
    """Event-name prefixes used to classify raw trace events."""

    switch_event_prefix: str = "Thread/CSwitch"
    fault_event_prefix: str = "PageFault"
    major_fault_prefixes: List[str] = field(
        default_factory=lambda: ["PageFault/HardPageFault"]
    )
    minor_fault_prefixes: List[str] = field(
        default_factory=lambda: ["PageFault/DemandZeroFault"]
    )


@dataclass
class OutputConfig:
    """File names of the exported result tables."""

    aggregate_file: str = "output.csv"
    by_thread_file: str = "outputByThread.csv"


@dataclass
class AnalysisConfig:
    """Top-level analysis configuration."""

    process: Optional[str] = None
    interval_ms: int = 100
    projection: str = "simple"
    workers: Optional[int] = None
    trace: TraceConfig = field(default_factory=TraceConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    def __post_init__(self):
        if self.interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {self.interval_ms}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisConfig":
        """Build a config from a parsed YAML mapping, ignoring unknown keys."""
        analysis = data.get("analysis", {}) or {}
        trace = data.get("trace", {}) or {}
        output = data.get("output", {}) or {}

        return cls(
            process=analysis.get("process"),
            interval_ms=int(analysis.get("interval_ms", 100)),
            projection=analysis.get("projection", "simple"),
            workers=analysis.get("workers"),
            trace=TraceConfig(
                **{k: v for k, v in trace.items() if k in TraceConfig.__dataclass_fields__}
            ),
            output=OutputConfig(
                **{k: v for k, v in output.items() if k in OutputConfig.__dataclass_fields__}
            ),
        )


def load_config(config_path: Optional[Union[str, Path]] = None) -> AnalysisConfig:
    """Load analysis configuration from YAML, falling back to defaults."""
    if config_path is None:
        return AnalysisConfig()

    path = Path(config_path)

    if not path.exists():
        logger.warning(f"Analysis config not found: {config_path}, using defaults")
        return AnalysisConfig()

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    config = AnalysisConfig.from_dict(data)
    logger.info(f"Loaded analysis config from {config_path}")
    return config
