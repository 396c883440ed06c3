"""
Framelens Test Configuration and Fixtures
=========================================
Shared fixtures and configuration for all tests.
"""

import json
import shutil
import tempfile
from datetime import date, datetime
from pathlib import Path
from typing import Generator

import pytest

from framelens.core.schema import ContextSwitch, CounterSample, CounterType, ThreadState
from framelens.core.utils import datetime_to_ns, ms_to_ns
from framelens.trace.events import (
    InMemoryTraceSource,
    RawTraceEvent,
    TraceProcess,
    TraceThread,
)
from framelens.trace.json_source import JsonTraceSource

MONITORED_PID = 100
OTHER_PID = 200


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    path = Path(tempfile.mkdtemp(prefix="framelens_test_"))
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def day() -> date:
    """Calendar date the synthetic counter logs are anchored to."""
    return date(2024, 5, 1)


@pytest.fixture
def t0_ns(day) -> int:
    """12:00:00.000 on the test day, in nanoseconds."""
    return datetime_to_ns(datetime(day.year, day.month, day.day, 12, 0, 0))


@pytest.fixture
def at(t0_ns):
    """Convert an offset in milliseconds from t0 to an absolute timestamp."""
    def _at(offset_ms: float) -> int:
        return t0_ns + ms_to_ns(offset_ms)
    return _at


@pytest.fixture
def make_switch(at):
    """Factory for context switches given as millisecond offsets from t0."""
    def _make(
        offset_ms: float,
        old_tid: int,
        new_tid: int,
        core: int = 0,
        old_pid: int = MONITORED_PID,
        new_pid: int = MONITORED_PID,
        state: ThreadState = ThreadState.WAITING,
    ) -> ContextSwitch:
        return ContextSwitch(
            timestamp_ns=at(offset_ms),
            core=core,
            old_tid=old_tid,
            old_pid=old_pid,
            new_tid=new_tid,
            new_pid=new_pid,
            state=state,
        )
    return _make


@pytest.fixture
def make_sample(at):
    """Factory for counter samples given as millisecond offsets from t0."""
    def _make(
        offset_ms: float,
        counter: CounterType,
        value: float,
        duration_ms: float = 100.0,
        core: int = 0,
    ) -> CounterSample:
        return CounterSample(
            timestamp_ns=at(offset_ms),
            core=core,
            duration_ms=duration_ms,
            counter=counter,
            value=value,
        )
    return _make


@pytest.fixture
def monitored_process(at) -> TraceProcess:
    """Process 'Matmul' with threads 1 (main) and 2 (worker), alive for 1s."""
    return TraceProcess(
        pid=MONITORED_PID,
        name="Matmul.exe",
        start_ns=at(0),
        end_ns=at(1000),
        threads=[
            TraceThread(tid=1, pid=MONITORED_PID, name="main"),
            TraceThread(tid=2, pid=MONITORED_PID, name="worker"),
        ],
    )


@pytest.fixture
def trace_source(at, monitored_process) -> InMemoryTraceSource:
    """
    Two-core trace of the monitored process.

    Core 0: main runs [0, 50), worker runs [50, 100), then the idle thread.
    Core 1: worker runs until 150, then a foreign thread.
    """
    other = TraceProcess(pid=OTHER_PID, name="explorer.exe", start_ns=at(0), end_ns=at(1000))
    source = InMemoryTraceSource(processes=[other, monitored_process])

    def switch(offset_ms, cpu, old, new, state="Waiting"):
        old_tid, old_pid = old
        new_tid, new_pid = new
        return RawTraceEvent(
            event_name="Thread/CSwitch",
            timestamp_ns=at(offset_ms),
            cpu=cpu,
            pid=new_pid,
            tid=new_tid,
            payload={
                "old_tid": old_tid,
                "old_pid": old_pid,
                "new_tid": new_tid,
                "new_pid": new_pid,
                "state": state,
            },
        )

    source.extend([
        switch(50, 0, (1, MONITORED_PID), (2, MONITORED_PID)),
        switch(100, 0, (2, MONITORED_PID), (0, 0)),
        switch(150, 1, (2, MONITORED_PID), (7, OTHER_PID), state="Ready"),
        RawTraceEvent("PageFault/DemandZeroFault", at(20), 0, MONITORED_PID, 1),
        RawTraceEvent("PageFault/DemandZeroFault", at(30), 0, MONITORED_PID, 1),
        RawTraceEvent("PageFault/HardPageFault", at(60), 0, MONITORED_PID, 2),
        RawTraceEvent("PageFault/DemandZeroFault", at(40), 0, OTHER_PID, 7),
        RawTraceEvent("DiskIO/Read", at(10), 0, MONITORED_PID, 1),
    ])
    return source


@pytest.fixture
def counter_log_text() -> str:
    """Two-core counter log covering 12:00:00.000 to 12:00:00.200."""
    return "\n".join([
        "BEGIN;pcm",
        "Time;Duration;Type;values",
        "12:00:00:0;100;CACHE;1.5;40;100;10;20;0.3;0.6;2.0;80;200;20;40;0.4;0.7",
        "12:00:00:0;100;TLB;30;60;",
        "12:00:00:200;100;CACHE;1.0;20;50;10;10;0.5;0.8;1.0;40;100;20;20;0.2;0.5",
        "12:00:00:200;100;TLB;10;20;",
        "",
    ])


@pytest.fixture
def counter_log(temp_dir, counter_log_text) -> Path:
    """Counter log written to disk."""
    path = temp_dir / "raw-pcm.csv"
    path.write_text(counter_log_text)
    return path


@pytest.fixture
def trace_file(temp_dir, trace_source) -> Path:
    """The two-core trace exported as a JSON document."""
    exported = JsonTraceSource(
        processes=trace_source.processes, events=trace_source.events
    ).to_records()
    path = temp_dir / "trace.json"
    path.write_text(json.dumps(exported))
    return path


# =============================================================================
# Test Markers
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow running")
    config.addinivalue_line("markers", "integration: marks integration tests")
