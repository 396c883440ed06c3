"""
Metric Output
Accumulates per-thread metric records and exports aggregate and per-thread tables.
"""

import logging
from pathlib import Path
from typing import Iterable, Iterator, List, Union

import pandas as pd

from framelens.core.schema import FRAME_LEVEL_METRICS, MetricRecord, ThreadRef

logger = logging.getLogger(__name__)

RECORD_COLUMNS = ["metric", "time", "time_ns", "core", "tid", "pid", "thread_name", "value"]
AGGREGATE_COLUMNS = ["metric", "time", "core", "value", "threads"]
THREAD_KEY_COLUMNS = ["time", "core", "pid", "tid", "thread_name"]


class MetricOutput:
    """
    Result sink keyed by (metric, frame, thread).

    save() writes one row per metric and frame (values summed across threads);
    write_by_thread() writes one row per frame and thread with a column per metric.
    """

    def __init__(self, records: Iterable[MetricRecord] = ()):
        self.records: List[MetricRecord] = list(records)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[MetricRecord]:
        return iter(self.records)

    def record(self, metric: str, frame, thread: ThreadRef, value: float) -> None:
        """Add one value for a metric, frame and thread."""
        self.records.append(
            MetricRecord(
                metric=metric,
                time_ns=frame.start_ns,
                core=frame.core,
                thread=thread,
                value=value,
            )
        )

    def extend(self, records: Iterable[MetricRecord]) -> None:
        self.records.extend(records)

    @property
    def metrics(self) -> List[str]:
        seen = []
        for r in self.records:
            if r.metric not in seen:
                seen.append(r.metric)
        return seen

    def to_dataframe(self) -> pd.DataFrame:
        """One row per record."""
        if not self.records:
            return pd.DataFrame(columns=RECORD_COLUMNS)
        return pd.DataFrame([r.to_dict() for r in self.records], columns=RECORD_COLUMNS)

    def aggregate(self) -> pd.DataFrame:
        """
        Per metric and frame: the value across threads and the number of threads.

        Share-weighted counts and fault counts are summed. Frame-level metrics
        (FRAME_LEVEL_METRICS) repeat the same value on every thread and are
        reported once.
        """
        df = self.to_dataframe()
        if df.empty:
            return pd.DataFrame(columns=AGGREGATE_COLUMNS)

        grouped = (
            df.groupby(["metric", "time", "core"], sort=True)
            .agg(total=("value", "sum"), first=("value", "first"), threads=("tid", "count"))
            .reset_index()
        )
        frame_level = grouped["metric"].isin(FRAME_LEVEL_METRICS)
        grouped["value"] = grouped["first"].where(frame_level, grouped["total"])
        return grouped[AGGREGATE_COLUMNS]

    def by_thread(self) -> pd.DataFrame:
        """Per frame and thread, one column per metric."""
        df = self.to_dataframe()
        if df.empty:
            return pd.DataFrame(columns=THREAD_KEY_COLUMNS)

        table = df.pivot_table(
            index=THREAD_KEY_COLUMNS,
            columns="metric",
            values="value",
            aggfunc="sum",
        ).reset_index()
        table.columns.name = None

        ordered = THREAD_KEY_COLUMNS + [m for m in self.metrics if m in table.columns]
        return table[ordered].sort_values(["core", "time", "pid", "tid"]).reset_index(drop=True)

    def save(self, path: Union[str, Path]) -> Path:
        """Write the aggregate view as CSV."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.aggregate().to_csv(path, index=False)
        logger.info(f"Wrote aggregate output ({len(self.records)} records) to {path}")
        return path

    def write_by_thread(self, path: Union[str, Path]) -> Path:
        """Write the per-thread view as CSV."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.by_thread().to_csv(path, index=False)
        logger.info(f"Wrote per-thread output to {path}")
        return path
