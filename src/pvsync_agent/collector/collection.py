"""
Bounded, insertion-ordered store of buffered readings.
"""

from collections import OrderedDict
from collections.abc import Iterator

from pvsync_agent.collector.models import Batch, Reading

MAX_COUNT = 100


class BoundedCollection:
    """
    Key -> Reading mapping capped at ``max_count`` entries.

    When full, inserting evicts the single oldest entry (strict FIFO by insertion
    order, not by timestamp). Mutated only from event-loop callbacks, so it has
    no lock.
    """

    def __init__(self, max_count: int = MAX_COUNT):
        if max_count < 1:
            raise ValueError("max_count must be at least 1")
        self.max_count = max_count
        self._entries: OrderedDict[str, Reading] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def oldest_key(self) -> str | None:
        return next(iter(self._entries), None)

    def insert(self, key: str, reading: Reading) -> str | None:
        """
        Insert a reading as the most recent entry.

        Returns:
            The evicted key when the collection was full, otherwise None

        Raises:
            KeyError: key is already present
        """
        if key in self._entries:
            raise KeyError(f"duplicate collection key {key}")

        evicted = None
        if len(self._entries) >= self.max_count:
            evicted, _ = self._entries.popitem(last=False)
        self._entries[key] = reading
        return evicted

    def drain_all(self) -> Batch:
        """Snapshot every entry in insertion order. Does not clear."""
        return Batch(entries=tuple(self._entries.items()))

    def clear(self) -> None:
        self._entries.clear()
