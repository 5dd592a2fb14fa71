"""Per-session buffers read by the fusion engine."""

from collections import deque
from typing import Optional

from dsn_ocr.core.models import BoundingBox
from dsn_ocr.core.utils import mean

DEFAULT_BOX_CAPACITY = 32
DEFAULT_CONFIDENCE_CAPACITY = 10


class BoxHistory:
    """Recent bounding boxes per reading, used for centroid drift.

    Boxes are keyed by normalized text so that two fragments in the
    same frame do not look like one box jumping around the screen.
    """

    def __init__(self, capacity: int = DEFAULT_BOX_CAPACITY) -> None:
        self.capacity = max(1, capacity)
        self._boxes: dict[str, deque[tuple[BoundingBox, float]]] = {}

    def record(self, key: str, box: BoundingBox, timestamp: float) -> None:
        frames = self._boxes.setdefault(key, deque(maxlen=self.capacity))
        frames.append((box, timestamp))

    def window(self, key: str, now: float, span: float) -> list[BoundingBox]:
        """Boxes for `key` seen within `span` seconds before `now`, oldest first."""
        frames = self._boxes.get(key)
        if not frames:
            return []
        cutoff = now - span
        return [box for box, ts in frames if cutoff <= ts <= now]

    def prune(self, now: float, span: float) -> None:
        cutoff = now - span
        for key in list(self._boxes):
            frames = self._boxes[key]
            while frames and frames[0][1] < cutoff:
                frames.popleft()
            if not frames:
                del self._boxes[key]

    def clear(self) -> None:
        self._boxes.clear()

    def __len__(self) -> int:
        return sum(len(frames) for frames in self._boxes.values())


class ConfidenceHistory:
    """Bounded trail of composite scores for trend display."""

    def __init__(self, capacity: int = DEFAULT_CONFIDENCE_CAPACITY) -> None:
        self._values: deque[float] = deque(maxlen=max(1, capacity))

    @property
    def capacity(self) -> int:
        return self._values.maxlen or 1

    def resize(self, capacity: int) -> None:
        """Change capacity, keeping the newest values."""
        capacity = max(1, capacity)
        if capacity != self.capacity:
            self._values = deque(self._values, maxlen=capacity)

    def append(self, value: float) -> None:
        self._values.append(value)

    def snapshot(self) -> tuple[float, ...]:
        return tuple(self._values)

    def average(self) -> Optional[float]:
        return mean(self._values)

    def clear(self) -> None:
        self._values.clear()

    def __len__(self) -> int:
        return len(self._values)
