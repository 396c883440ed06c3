"""
Framelens Report Module - result sink and CSV export.
"""

from framelens.report.output import MetricOutput

__all__ = ["MetricOutput"]
