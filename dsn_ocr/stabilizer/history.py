"""Rolling frame history owned by one scan session."""

from collections import deque
from typing import Iterator, Optional

from dsn_ocr.core.models import FrameHistoryEntry

DEFAULT_CAPACITY = 64
DEFAULT_TIMEOUT = 1.5  # seconds


class FrameHistory:
    """Bounded, time-pruned buffer of recent normalized readings.

    Owned by exactly one analysis worker. Readers on other threads must
    use `snapshot()`, which returns an immutable copy.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout
        self._entries: deque[FrameHistoryEntry] = deque(maxlen=max(1, capacity))

    def append(self, entry: FrameHistoryEntry) -> None:
        self._entries.append(entry)

    def prune(self, now: float, timeout: Optional[float] = None) -> int:
        """Drop entries older than the timeout.

        Returns:
            Number of entries removed.
        """
        cutoff = now - (self.timeout if timeout is None else timeout)
        kept = [entry for entry in self._entries if entry.timestamp >= cutoff]
        removed = len(self._entries) - len(kept)
        if removed:
            self._entries.clear()
            self._entries.extend(kept)
        return removed

    def snapshot(self) -> tuple[FrameHistoryEntry, ...]:
        return tuple(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[FrameHistoryEntry]:
        return iter(tuple(self._entries))
