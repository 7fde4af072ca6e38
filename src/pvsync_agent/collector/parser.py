"""
Parse a raw sensor record into a Reading.

Record format (one line, ASCII):  <channel> <value>[L] <unit>
The unit is everything after the second delimiter.
"""

import math
import re
import time

from pvsync_agent.collector.models import Reading
from pvsync_agent.errors import ParseError, SensorDomainError

COLUMN_DELIMITER = " "
ERROR_MARKER = "L"
MAX_RECORD_LENGTH = 256

# Leading prefixes strtod would consume, tried in this order
_HEX_PREFIX = re.compile(
    r"\s*([+-]?0[xX](?:[0-9a-fA-F]+\.?[0-9a-fA-F]*|\.[0-9a-fA-F]+)(?:[pP][+-]?\d+)?)"
)
_SPECIAL_PREFIX = re.compile(r"\s*([+-]?)(inf(?:inity)?|nan)", re.IGNORECASE)
_FLOAT_PREFIX = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def parse_value(token: str) -> float:
    """
    Best-effort float from the leading numeric prefix, as C strtod reads it.

    Accepts decimal and hexadecimal floats, ``inf``/``infinity`` and ``nan``.
    Returns 0.0 when the token has no numeric prefix.
    """
    match = _HEX_PREFIX.match(token)
    if match is not None:
        try:
            return float.fromhex(match.group(1))
        except OverflowError:
            return -math.inf if match.group(1).startswith("-") else math.inf

    match = _SPECIAL_PREFIX.match(token)
    if match is not None:
        return float(match.group(1) + match.group(2))

    match = _FLOAT_PREFIX.match(token)
    if match is None:
        return 0.0
    return float(match.group())


def now_ms() -> int:
    """Current wall-clock time in milliseconds since epoch."""
    return time.time_ns() // 1_000_000


def parse_record(raw: bytes | str, timestamp_ms: int | None = None) -> Reading:
    """
    Parse one record.

    Args:
        raw: Record bytes (or text) with trailing line terminators already stripped
        timestamp_ms: Override for the reading timestamp; defaults to now

    Returns:
        Reading stamped with the current wall-clock time

    Raises:
        ParseError: record is oversized, not ASCII, or missing a field
        SensorDomainError: value token carries the sensor error marker
    """
    if len(raw) >= MAX_RECORD_LENGTH:
        raise ParseError(f"record too long ({len(raw)} bytes)", raw)

    if isinstance(raw, bytes):
        try:
            text = raw.decode("ascii")
        except UnicodeDecodeError as e:
            raise ParseError(f"record is not ASCII: {e}", raw) from e
    else:
        text = raw

    channel, sep, remainder = text.partition(COLUMN_DELIMITER)
    if not sep or not channel or not remainder:
        raise ParseError("missing channel designator or value", raw)

    value_token, sep, unit = remainder.partition(COLUMN_DELIMITER)
    if not sep or not value_token or not unit:
        raise ParseError("missing value or unit", raw)

    if ERROR_MARKER in value_token:
        raise SensorDomainError(f"sensor reported error value '{value_token}'", raw)

    return Reading(
        timestamp=now_ms() if timestamp_ms is None else timestamp_ms,
        channel_id=channel,
        value=parse_value(value_token),
        unit=unit,
    )
