"""Exceptions raised while sampling CPU frequency residency."""


class CpuStateError(Exception):
    """Base class for failures reported to the caller."""


class SourceUnavailable(CpuStateError):
    """A data source could not be opened or read."""

    def __init__(self, path: str, reason: str = "") -> None:
        self.path = path
        self.reason = reason
        message = f"cannot read {path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ParseError(CpuStateError):
    """A line of the time-in-state table is not a valid "<freq> <ticks>" pair."""

    def __init__(self, line_number: int, line: str, reason: str) -> None:
        self.line_number = line_number
        self.line = line
        self.reason = reason
        super().__init__(f"line {line_number}: {reason}: {line!r}")
