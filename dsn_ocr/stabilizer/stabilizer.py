"""Multi-frame stabilization of OCR readings.

A single noisy frame should not trigger a false accept, and a single
excellent frame should not be punished for lacking history:

1. Every current-frame reading is appended to the rolling history and
   stale entries are pruned.
2. History entries are grouped by OCR-aware text similarity.
3. A current reading whose group has corroboration (2+ members) gets
   the mean of its own confidence and the group average, and its text
   is promoted to the group's consensus value.
4. A first-seen reading above the high-confidence cutoff passes
   through unchanged; other first-seen readings stay flagged.
"""

from collections import Counter
from typing import Iterable, Optional, Sequence

import structlog

from dsn_ocr.core.config import OcrConfidenceConfig
from dsn_ocr.core.models import (
    ComponentType,
    FrameHistoryEntry,
    ReadingGroup,
    RecognizedCandidate,
    StabilizedCandidate,
)
from dsn_ocr.core.utils import coerce_confidence, mean
from dsn_ocr.patterns.classifier import DsnClassifier
from dsn_ocr.patterns.corrections import is_similar_text
from .history import FrameHistory

logger = structlog.get_logger(__name__)


class MultiFrameStabilizer:
    """Merges per-frame readings with recent history."""

    def __init__(
        self,
        config: Optional[OcrConfidenceConfig] = None,
        classifier: Optional[DsnClassifier] = None,
    ) -> None:
        self._config = config or OcrConfidenceConfig()
        self.classifier = classifier or DsnClassifier(
            similarity_threshold=self._config.similarity_threshold,
            minimum_dsn_length=self._config.minimum_dsn_length,
        )

    @property
    def config(self) -> OcrConfidenceConfig:
        return self._config

    def update_config(self, config: OcrConfidenceConfig) -> None:
        self._config = config
        self.classifier.configure(config.similarity_threshold, config.minimum_dsn_length)

    # -------------------------------------------------------------------------
    # Grouping
    # -------------------------------------------------------------------------

    def group(
        self,
        entries: Iterable[FrameHistoryEntry],
        config: Optional[OcrConfidenceConfig] = None,
    ) -> list[ReadingGroup]:
        """Group entries that read the same underlying value.

        Entries are visited oldest first; each joins the first group whose
        seed reading is similar, otherwise it seeds a new group.
        """
        config = config or self._config
        return [self._build_group(bucket, config) for bucket in self._bucket(entries, config)]

    def _bucket(
        self,
        entries: Iterable[FrameHistoryEntry],
        config: OcrConfidenceConfig,
    ) -> list[list[FrameHistoryEntry]]:
        buckets: list[list[FrameHistoryEntry]] = []

        for entry in sorted(entries, key=lambda e: e.timestamp):
            for bucket in buckets:
                if is_similar_text(
                    bucket[0].normalized_text,
                    entry.normalized_text,
                    threshold=config.similarity_threshold,
                    corrector=self.classifier.corrector,
                ):
                    bucket.append(entry)
                    break
            else:
                buckets.append([entry])

        return buckets

    def _build_group(
        self,
        members: list[FrameHistoryEntry],
        config: OcrConfidenceConfig,
    ) -> ReadingGroup:
        average = mean(m.confidence or 0.0 for m in members) or 0.0

        counts = Counter(m.normalized_text for m in members)
        best_confidence: dict[str, float] = {}
        for member in members:
            best_confidence[member.normalized_text] = max(
                best_confidence.get(member.normalized_text, 0.0),
                member.confidence or 0.0,
            )
        # Most frequent reading wins; ties go to the most confident one
        consensus = max(counts, key=lambda text: (counts[text], best_confidence[text]))

        frames = config.bounding_box_stability_frames
        return ReadingGroup(
            text=consensus,
            members=list(members),
            average_confidence=average,
            stability_score=min(1.0, len(members) / frames),
        )

    def consensus(
        self,
        history: FrameHistory,
        now: float,
        config: Optional[OcrConfidenceConfig] = None,
    ) -> list[ReadingGroup]:
        """Rank the groups currently in the history.

        Larger groups first, then higher average confidence.
        """
        config = config or self._config
        history.prune(now, config.frame_history_timeout)
        groups = self.group(history.snapshot(), config)
        groups.sort(key=lambda g: (g.size, g.average_confidence), reverse=True)
        return groups

    # -------------------------------------------------------------------------
    # Stabilization
    # -------------------------------------------------------------------------

    def stabilize(
        self,
        candidates: Sequence[RecognizedCandidate],
        history: FrameHistory,
        now: float,
        component_type: Optional[ComponentType] = None,
        config: Optional[OcrConfidenceConfig] = None,
    ) -> list[StabilizedCandidate]:
        """Fold the current frame into history and merge readings.

        Args:
            candidates: Readings from the current frame
            history: Caller-owned rolling history (mutated)
            now: Current frame timestamp in seconds
            component_type: Expected type for the session, if fixed
            config: Snapshot to use (defaults to the stabilizer's own)

        Returns:
            Stabilized readings ranked by group size then confidence.
        """
        config = config or self._config

        current: list[FrameHistoryEntry] = []
        for candidate in candidates:
            normalized = self.classifier.normalize(candidate.text)
            if not normalized:
                logger.debug("empty_reading_skipped", raw=candidate.text)
                continue
            entry = FrameHistoryEntry(
                normalized_text=normalized,
                confidence=coerce_confidence(candidate.confidence),
                timestamp=now,
                bounding_box=candidate.bounding_box,
            )
            history.append(entry)
            current.append(entry)

        history.prune(now, config.frame_history_timeout)
        buckets = self._bucket(history.snapshot(), config)
        groups = [self._build_group(bucket, config) for bucket in buckets]

        results = []
        for entry in current:
            index = next((i for i, bucket in enumerate(buckets) if any(m is entry for m in bucket)), None)
            # Evicted already when one frame overflows the history capacity
            group = groups[index] if index is not None else self._build_group([entry], config)
            results.append(self._merge(entry, group, component_type, config))

        results.sort(
            key=lambda r: (r.group_size, r.confidence or 0.0),
            reverse=True,
        )

        logger.debug(
            "frame_stabilized",
            candidates=len(current),
            groups=len(groups),
            history_size=len(history),
        )
        return results

    def _merge(
        self,
        entry: FrameHistoryEntry,
        group: ReadingGroup,
        component_type: Optional[ComponentType],
        config: OcrConfidenceConfig,
    ) -> StabilizedCandidate:
        native = entry.confidence

        if group.size >= 2:
            expected = component_type or self.classifier.classify(group.text).component_type
            threshold = config.threshold_for(expected).manual_verification_threshold
            merged = None if native is None else (native + group.average_confidence) / 2
            return StabilizedCandidate(
                text=group.text,
                normalized_text=entry.normalized_text,
                confidence=merged,
                native_confidence=native,
                bounding_box=entry.bounding_box,
                timestamp=entry.timestamp,
                group_size=group.size,
                group_average=group.average_confidence,
                stability_score=group.stability_score,
                requires_manual_verification=(
                    native is None or group.average_confidence < threshold
                ),
            )

        # First sighting: no corroboration to draw on
        passes_through = native is not None and native > config.high_confidence_cutoff
        return StabilizedCandidate(
            text=entry.normalized_text,
            normalized_text=entry.normalized_text,
            confidence=native,
            native_confidence=native,
            bounding_box=entry.bounding_box,
            timestamp=entry.timestamp,
            group_size=1,
            group_average=native,
            stability_score=group.stability_score,
            requires_manual_verification=not passes_through,
        )
