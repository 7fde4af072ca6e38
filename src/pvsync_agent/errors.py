"""
Exception hierarchy for the agent.

Per-tick errors (record source, parse, sensor, transport) are recovered inside
the tick that raised them. StartupError aborts the process before the loop runs.
"""


class PvSyncError(Exception):
    """Base class for all agent errors."""


class RecordSourceError(PvSyncError, OSError):
    """The sensor record file could not be opened or sized."""


class ParseError(PvSyncError, ValueError):
    """A raw record is malformed."""

    def __init__(self, message: str, raw: bytes | str = b""):
        super().__init__(message)
        self.raw = raw


class SensorDomainError(ParseError):
    """The sensor itself reported an error token instead of a value."""


class TransportError(PvSyncError):
    """Submission to the remote collection endpoint failed."""


class StartupError(PvSyncError):
    """Agent could not be brought up; the process exits non-zero."""
