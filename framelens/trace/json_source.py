"""
JSON Trace Source
Loads processes and raw events exported as JSON (or JSON lines) into an in-memory trace source.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from framelens.core.utils import datetime_to_ns
from framelens.trace.events import (
    InMemoryTraceSource,
    RawTraceEvent,
    TraceProcess,
    TraceThread,
)

logger = logging.getLogger(__name__)

# Scheduler collector event types and the trace event names they map to
EVENT_TYPE_NAMES = {
    "SCHED_SWITCH": "Thread/CSwitch",
    "PAGE_FAULT": "PageFault/DemandZeroFault",
    "MINOR_FAULT": "PageFault/DemandZeroFault",
    "MAJOR_FAULT": "PageFault/HardPageFault",
}

# Linux naming: a "pid" in sched_switch is a thread id, the tgid is the process id
SWITCH_FIELD_ALIASES = {
    "prev_pid": "old_tid",
    "prev_tgid": "old_pid",
    "next_pid": "new_tid",
    "next_tgid": "new_pid",
    "prev_state": "state",
}

SWITCH_FIELDS = ("old_tid", "old_pid", "new_tid", "new_pid", "state")


def _timestamp_ns(record: Dict[str, Any], *keys: str) -> int:
    """Read a timestamp given in nanoseconds or as an ISO-8601 string."""
    for key in keys:
        value = record.get(key)
        if value is None:
            continue
        if isinstance(value, str):
            # fromisoformat only accepts a trailing Z from Python 3.11 on
            if value.endswith("Z"):
                value = value[:-1] + "+00:00"
            return datetime_to_ns(datetime.fromisoformat(value))
        return int(value)
    raise KeyError(f"None of {keys} present in record")


def _parse_process(record: Dict[str, Any]) -> TraceProcess:
    pid = int(record["pid"])
    threads = [
        TraceThread(
            tid=int(t["tid"]),
            pid=int(t.get("pid", pid)),
            name=t.get("name", ""),
            start_ns=int(t.get("start_ns", 0)),
            end_ns=int(t.get("end_ns", 0)),
        )
        for t in record.get("threads", [])
    ]
    return TraceProcess(
        pid=pid,
        name=record.get("name", ""),
        start_ns=_timestamp_ns(record, "start_ns", "start"),
        end_ns=_timestamp_ns(record, "end_ns", "end"),
        threads=threads,
        command_line=record.get("command_line", ""),
    )


def _parse_event(record: Dict[str, Any]) -> Optional[RawTraceEvent]:
    name = record.get("event_name") or EVENT_TYPE_NAMES.get(record.get("event_type", ""))
    if not name:
        return None

    payload = {
        SWITCH_FIELD_ALIASES.get(k, k): v
        for k, v in record.items()
        if k in SWITCH_FIELDS or k in SWITCH_FIELD_ALIASES
    }

    return RawTraceEvent(
        event_name=name,
        timestamp_ns=_timestamp_ns(record, "t_ns", "timestamp_ns", "time"),
        cpu=int(record.get("cpu", 0)),
        pid=int(record.get("pid", -1)),
        tid=int(record.get("tid", -1)),
        payload=payload,
    )


class JsonTraceSource(InMemoryTraceSource):
    """
    Trace source backed by a JSON export.

    Accepts either a document {"processes": [...], "events": [...]} or a JSON
    lines file where process records carry "record": "process".
    """

    @classmethod
    def from_records(
        cls,
        processes: Iterable[Dict[str, Any]],
        events: Iterable[Dict[str, Any]],
    ) -> "JsonTraceSource":
        source = cls()
        for record in processes:
            source.add_process(_parse_process(record))

        skipped = 0
        for record in events:
            event = _parse_event(record)
            if event is None:
                skipped += 1
                continue
            source.events.append(event)

        if skipped:
            logger.debug(f"Skipped {skipped} events with unknown type")
        return source

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "JsonTraceSource":
        path = Path(path)

        with open(path, "r") as f:
            if path.suffix == ".jsonl":
                records = [json.loads(line) for line in f if line.strip()]
                processes = [r for r in records if r.get("record") == "process"]
                events = [r for r in records if r.get("record") != "process"]
            else:
                data = json.load(f)
                processes = data.get("processes", [])
                events = data.get("events", [])

        source = cls.from_records(processes, events)
        logger.info(
            f"Loaded {len(source.processes)} processes and {len(source.events)} events from {path}"
        )
        return source

    def to_records(self) -> Dict[str, List[Dict[str, Any]]]:
        """Export in the document shape accepted by from_records."""
        return {
            "processes": [
                {
                    "pid": p.pid,
                    "name": p.name,
                    "start_ns": p.start_ns,
                    "end_ns": p.end_ns,
                    "command_line": p.command_line,
                    "threads": [
                        {"tid": t.tid, "pid": t.pid, "name": t.name} for t in p.threads
                    ],
                }
                for p in self.processes
            ],
            "events": [
                {
                    "event_name": e.event_name,
                    "t_ns": e.timestamp_ns,
                    "cpu": e.cpu,
                    "pid": e.pid,
                    "tid": e.tid,
                    **e.payload,
                }
                for e in self.events
            ],
        }
