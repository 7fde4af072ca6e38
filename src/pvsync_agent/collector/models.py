"""
Reading and Batch data model.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class Reading:
    """One parsed sensor observation."""

    timestamp: int  # milliseconds since epoch
    channel_id: str
    value: float
    unit: str

    @property
    def time(self) -> datetime:
        """Timestamp as an aware UTC datetime."""
        return datetime.fromtimestamp(self.timestamp / 1000, tz=timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Serialise with the field names the collection endpoint expects."""
        return {
            "timestamp": self.timestamp,
            "da": self.channel_id,
            "value": self.value,
            "unit": self.unit,
        }


@dataclass(frozen=True)
class Batch:
    """Snapshot of buffered readings, in insertion order, taken at flush time."""

    entries: tuple[tuple[str, Reading], ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[tuple[str, Reading]]:
        return iter(self.entries)

    @property
    def keys(self) -> list[str]:
        return [key for key, _ in self.entries]

    @property
    def readings(self) -> list[Reading]:
        return [reading for _, reading in self.entries]

    def to_records(self) -> list[dict[str, Any]]:
        """Flat rows (key plus reading fields), one per entry."""
        return [{"key": key, **reading.to_dict()} for key, reading in self.entries]
