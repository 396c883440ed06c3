"""
Framelens Counters Module - hardware counter log ingestion.
"""

from framelens.counters.pcm_parse import CounterLogParser, parse_counter_lines, read_counter_log

__all__ = ["CounterLogParser", "parse_counter_lines", "read_counter_log"]
