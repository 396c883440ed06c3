"""
Framelens Errors
Fatal conditions that abort an analysis run.
"""

from pathlib import Path
from typing import Optional, Union


class FramelensError(Exception):
    """Base class for all fatal analysis errors."""


class ProcessNotFound(FramelensError):
    """No process in the trace has a name starting with the requested prefix."""

    def __init__(self, prefix: str):
        self.prefix = prefix
        super().__init__(f"No process matching '{prefix}' found in the trace")


class MalformedCounterLog(FramelensError):
    """The counter log contains a field that cannot be parsed."""

    def __init__(
        self,
        path: Optional[Union[str, Path]],
        line_number: int,
        text: str,
        reason: str = "",
    ):
        self.path = path
        self.line_number = line_number
        self.text = text
        self.reason = reason

        location = f"{path}:{line_number}" if path else f"line {line_number}"
        message = f"Malformed counter log at {location}: {text!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
