"""Per-session frame analysis.

One `FrameAnalyzer` per active scan session, driven by a single worker:

    candidates -> classify/normalize -> stabilize -> fuse -> decide

Frames arriving faster than the analysis interval are dropped, not
queued. Configuration changes are staged and applied between frames so
an in-flight pass always sees one snapshot.
"""

import threading
import uuid
from typing import Any, Iterable, Optional, Sequence

import structlog

from dsn_ocr.core.config import OcrConfidenceConfig
from dsn_ocr.core.logging import bind_scan_context, unbind_scan_context
from dsn_ocr.core.models import (
    BoundingBox,
    ComponentType,
    FrameHistoryEntry,
    ManualEntryValidation,
    RecognizedCandidate,
    StabilizedCandidate,
)
from dsn_ocr.environment.scorer import EnvironmentalScorer
from dsn_ocr.fusion.decision import FrameOutcome, ScanDecision, ScanStateMachine, decide
from dsn_ocr.fusion.engine import ConfidenceFusionEngine
from dsn_ocr.patterns.classifier import DsnClassifier
from dsn_ocr.stabilizer.history import DEFAULT_CAPACITY, FrameHistory
from dsn_ocr.stabilizer.stabilizer import MultiFrameStabilizer

logger = structlog.get_logger(__name__)


def to_candidate(item: Any, timestamp: float) -> Optional[RecognizedCandidate]:
    """Accept a RecognizedCandidate or a (text, confidence?, box?) tuple.

    Boxes may be a BoundingBox or a [left, top, right, bottom] sequence.
    Returns None for anything unusable.
    """
    if isinstance(item, RecognizedCandidate):
        return item
    if isinstance(item, str):
        return RecognizedCandidate(text=item, timestamp=timestamp)
    if not isinstance(item, (tuple, list)) or not item:
        logger.debug("unusable_candidate", item_type=type(item).__name__)
        return None

    text = item[0] if isinstance(item[0], str) else ""
    confidence = item[1] if len(item) > 1 else None
    box = item[2] if len(item) > 2 else None

    if box is not None and not isinstance(box, BoundingBox):
        coerced = BoundingBox.coerce(box)
        if coerced is None:
            logger.debug("unusable_bounding_box", box=repr(box))
        box = coerced

    try:
        return RecognizedCandidate(
            text=text,
            confidence=confidence if isinstance(confidence, (int, float)) else None,
            bounding_box=box,
            timestamp=timestamp,
        )
    except ValueError:
        logger.debug("unusable_candidate", text=text)
        return None


class FrameAnalyzer:
    """Runs the full scoring pipeline for one scan session.

    Example:
        >>> analyzer = FrameAnalyzer(expected_type=ComponentType.CONTROLLER)
        >>> outcome = analyzer.process_frame([("G0G46K123456789", 0.95, None)], 0.0)
        >>> outcome.best.state
        <DecisionState.AUTO_ACCEPTED: 'auto_accepted'>
    """

    def __init__(
        self,
        config: Optional[OcrConfidenceConfig] = None,
        expected_type: Optional[ComponentType] = None,
        environment: Optional[EnvironmentalScorer] = None,
        classifier: Optional[DsnClassifier] = None,
        history_capacity: int = DEFAULT_CAPACITY,
        session_id: Optional[str] = None,
    ) -> None:
        self._config = config or OcrConfidenceConfig()
        self.expected_type = expected_type
        self.session_id = session_id or uuid.uuid4().hex[:12]

        self.classifier = classifier or DsnClassifier(
            similarity_threshold=self._config.similarity_threshold,
            minimum_dsn_length=self._config.minimum_dsn_length,
        )
        self.environment = environment
        self.stabilizer = MultiFrameStabilizer(self._config, self.classifier)
        self.engine = ConfidenceFusionEngine(
            self._config,
            classifier=self.classifier,
            environment=environment,
        )
        self.history = FrameHistory(history_capacity, self._config.frame_history_timeout)
        self.state_machine = ScanStateMachine()

        self._lock = threading.Lock()
        self._staged_config: Optional[OcrConfidenceConfig] = None
        self._last_analyzed: Optional[float] = None

    @property
    def config(self) -> OcrConfidenceConfig:
        return self._config

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def update_config(self, config: OcrConfidenceConfig) -> None:
        """Stage a new snapshot; it takes effect on the next frame.

        Safe to call from any thread.
        """
        with self._lock:
            self._staged_config = config
        logger.info("config_staged", session=self.session_id, version=config.version)

    def _apply_staged_config(self) -> OcrConfidenceConfig:
        with self._lock:
            staged, self._staged_config = self._staged_config, None

        if staged is not None:
            self._config = staged
            self.stabilizer.update_config(staged)
            self.engine.update_config(staged)
            self.history.timeout = staged.frame_history_timeout
            logger.info("config_applied", version=staged.version)
        return self._config

    # -------------------------------------------------------------------------
    # Frame processing
    # -------------------------------------------------------------------------

    def should_analyze(self, timestamp: float) -> bool:
        if self._last_analyzed is None:
            return True
        return timestamp - self._last_analyzed >= self._config.analysis_interval

    def process_frame(
        self,
        candidates: Iterable[Any],
        timestamp: float,
    ) -> Optional[FrameOutcome]:
        """Analyze one frame of recognition output.

        Args:
            candidates: RecognizedCandidate objects or (text, confidence, box) tuples
            timestamp: Frame timestamp in seconds

        Returns:
            Ranked decisions for the frame, or None when the frame arrived
            inside the analysis interval and was dropped.
        """
        bind_scan_context(self.session_id)
        try:
            config = self._apply_staged_config()

            if not self.should_analyze(timestamp):
                logger.debug(
                    "frame_dropped",
                    timestamp=timestamp,
                    since_last=timestamp - (self._last_analyzed or 0.0),
                    interval=config.analysis_interval,
                )
                return None
            self._last_analyzed = timestamp

            readings = [c for c in (to_candidate(item, timestamp) for item in candidates) if c is not None]
            stabilized = self.stabilizer.stabilize(
                readings,
                self.history,
                timestamp,
                component_type=self.expected_type,
                config=config,
            )

            decisions = [self._score(candidate, timestamp) for candidate in stabilized]
            for candidate in stabilized:
                self.engine.observe(candidate.text, candidate.bounding_box, timestamp)

            decisions.sort(
                key=lambda d: (d.is_valid_dsn, d.group_size, d.result.composite_confidence),
                reverse=True,
            )
            self._advance_state(decisions)

            outcome = FrameOutcome(
                timestamp=timestamp,
                decisions=decisions,
                config_version=config.version,
            )
            best = outcome.best
            logger.debug(
                "frame_analyzed",
                timestamp=timestamp,
                candidates=len(readings),
                decisions=len(decisions),
                best_text=best.result.text if best else None,
                best_state=best.state.value if best else None,
            )
            return outcome
        finally:
            unbind_scan_context()

    def _score(self, candidate: StabilizedCandidate, timestamp: float) -> ScanDecision:
        classification = self.classifier.classify(candidate.text)
        component_type = self.expected_type or classification.component_type

        result = self.engine.score(
            candidate.confidence,
            candidate.text,
            candidate.bounding_box,
            component_type,
            timestamp,
        )
        # An uncorroborated reading can never skip confirmation
        if candidate.requires_manual_verification and not result.requires_manual_verification:
            result = result.model_copy(update={"requires_manual_verification": True})

        decision = decide(result, classification.is_valid_dsn)
        return decision.model_copy(update={"group_size": candidate.group_size})

    def _advance_state(self, decisions: Sequence[ScanDecision]) -> None:
        """Resolve the state machine on the best valid reading.

        An outcome is held until the host disposes of it.
        """
        if self.state_machine.is_resolved:
            return
        best = next((d for d in decisions if d.is_valid_dsn), None)
        if best is not None:
            self.state_machine.resolve(best)

    # -------------------------------------------------------------------------
    # Diagnostics & session control
    # -------------------------------------------------------------------------

    def history_snapshot(self) -> tuple[FrameHistoryEntry, ...]:
        return self.history.snapshot()

    def confidence_history(self) -> tuple[float, ...]:
        return self.engine.confidence_history()

    def validate_manual_entry(self, text: str) -> ManualEntryValidation:
        return self.classifier.validate_manual_entry(text)

    def reset(self) -> None:
        """Start the session over."""
        self.history.clear()
        self.engine.reset()
        self.state_machine.reset()
        self._last_analyzed = None
        logger.info("scan_session_reset", session=self.session_id)
