"""
Read the current sensor record from its well-known location.
"""

import os
from pathlib import Path

from pvsync_agent.errors import RecordSourceError


def read_current_record(path: Path) -> bytes:
    """
    Read the record file and return its first line, without the line terminator.

    The file is rewritten externally between sampling ticks, so there is no retry:
    a failure simply skips the current cycle.

    Args:
        path: Sensor record file

    Returns:
        Raw record bytes

    Raises:
        RecordSourceError: file cannot be opened or its size cannot be determined
    """
    try:
        with Path(path).open("rb") as f:
            size = os.fstat(f.fileno()).st_size
            data = f.read(size)
    except OSError as e:
        raise RecordSourceError(f"failed to read a record from {path}: {e}") from e
    # Only the first line is the record; anything after a \n or \r is ignored
    lines = data.splitlines()
    return lines[0] if lines else b""
