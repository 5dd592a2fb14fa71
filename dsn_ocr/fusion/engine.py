"""Multi-factor confidence fusion.

Blends four independent signals into one composite confidence:

    composite = native * Wn + pattern * Wp + stability * Ws + environment * We

then applies the sensitivity-mode multiplier, clamps to [0, 1] and
compares against the component's manual-verification threshold.

Every pass reads a single configuration snapshot taken when it starts.
`score()` only reads the bounding-box history; the caller records boxes
with `observe()` once the frame has been scored.
"""

from typing import Optional

import structlog

from dsn_ocr.core.config import OcrConfidenceConfig
from dsn_ocr.core.models import (
    BoundingBox,
    ComponentThreshold,
    ComponentType,
    ConfidenceFactors,
    EnhancedResult,
    PatternStrictness,
)
from dsn_ocr.core.utils import clamp_unit, coerce_confidence, is_finite_number, mean, truncate_text
from dsn_ocr.environment.scorer import EnvironmentalScorer
from dsn_ocr.patterns.classifier import DsnClassifier
from dsn_ocr.patterns.patterns import has_known_prefix, is_plausible_length, match_product_dsn
from .history import BoxHistory, ConfidenceHistory

logger = structlog.get_logger(__name__)


# =============================================================================
# Scoring Tables
# =============================================================================

# Fallback native confidence when the engine supplies none
FALLBACK_SHORT_TEXT = 0.5
FALLBACK_SPECIAL_CHARS = 0.7
FALLBACK_DEFAULT = 0.8
FALLBACK_STRICT_FACTOR = 0.9

# Pattern score
PATTERN_NO_MATCH = 0.3
PATTERN_NO_MATCH_STRICT = 0.2
PATTERN_LOOSE_MATCH = 0.9
PATTERN_PRODUCT_FORMAT = 1.0
PATTERN_PREFIX_AND_LENGTH = 0.9
PATTERN_LENGTH_ONLY = 0.85
PATTERN_ANY_MATCH = 0.75
PATTERN_STRICT_TYPE_MATCH = 1.0
PATTERN_STRICT_TYPE_MISMATCH = 0.7

# Bounding-box stability
STABILITY_NO_BOX = 0.7
STABILITY_ADAPTATION_OFF = 0.8
STABILITY_WARMING_UP = 0.7
# (upper bound on mean centroid deviation in pixels, score)
DRIFT_BANDS: list[tuple[float, float]] = [
    (10, 1.0),    # Very stable
    (25, 0.9),    # Stable
    (50, 0.8),    # Moderate
    (100, 0.6),   # Unstable
]
DRIFT_MAX_SCORE = 0.4


def fallback_confidence(text: str, strictness: PatternStrictness, minimum_length: int) -> float:
    """Estimate a native confidence from the text alone.

    Short text scores 0.5 and text with special characters 0.7; anything
    else 0.8. Components under STRICT pattern policy take a further 10%
    haircut.
    """
    stripped = text.strip()
    if len(stripped) < minimum_length:
        confidence = FALLBACK_SHORT_TEXT
    elif not stripped.isalnum() or not stripped.isascii():
        confidence = FALLBACK_SPECIAL_CHARS
    else:
        confidence = FALLBACK_DEFAULT

    if strictness is PatternStrictness.STRICT:
        confidence *= FALLBACK_STRICT_FACTOR
    return clamp_unit(confidence)


def centroid_drift(boxes: list[BoundingBox]) -> float:
    """Mean Manhattan distance of box centroids from their average centroid."""
    avg_x = sum(box.center_x for box in boxes) / len(boxes)
    avg_y = sum(box.center_y for box in boxes) / len(boxes)
    total = sum(abs(box.center_x - avg_x) + abs(box.center_y - avg_y) for box in boxes)
    return total / len(boxes)


def score_drift(deviation: float) -> float:
    for upper, score in DRIFT_BANDS:
        if deviation < upper:
            return score
    return DRIFT_MAX_SCORE


class ConfidenceFusionEngine:
    """Scores readings for one scan session.

    The engine owns its bounding-box and confidence histories; create one
    engine per active session.

    Example:
        >>> engine = ConfidenceFusionEngine()
        >>> result = engine.score(0.95, "G0G46K123456789", None, ComponentType.CONTROLLER, 0.0)
        >>> round(result.composite_confidence, 3), result.requires_manual_verification
        (0.93, False)
    """

    def __init__(
        self,
        config: Optional[OcrConfidenceConfig] = None,
        classifier: Optional[DsnClassifier] = None,
        environment: Optional[EnvironmentalScorer] = None,
        box_history: Optional[BoxHistory] = None,
        confidence_history: Optional[ConfidenceHistory] = None,
    ) -> None:
        self._config = config or OcrConfidenceConfig()
        self.classifier = classifier or DsnClassifier(
            similarity_threshold=self._config.similarity_threshold,
            minimum_dsn_length=self._config.minimum_dsn_length,
        )
        self.environment = environment
        self.box_history = box_history or BoxHistory()
        self._confidence_history = confidence_history or ConfidenceHistory(
            self._config.confidence_history_size
        )
        self._environmental_factor: Optional[float] = None

    @property
    def config(self) -> OcrConfidenceConfig:
        return self._config

    def update_config(self, config: OcrConfidenceConfig) -> None:
        """Swap in a new configuration snapshot.

        Passes already running keep the snapshot they started with.
        """
        self._config = config
        self._confidence_history.resize(config.confidence_history_size)
        self.classifier.configure(config.similarity_threshold, config.minimum_dsn_length)
        logger.info(
            "fusion_config_updated",
            version=config.version,
            sensitivity_mode=config.sensitivity_mode.value,
        )

    def update_environmental_factor(self, factor: float) -> None:
        """Push an externally computed environmental score (0-1)."""
        value = coerce_confidence(factor)
        if value is None:
            logger.warning("invalid_environmental_factor", factor=repr(factor))
            return
        self._environmental_factor = value

    # -------------------------------------------------------------------------
    # Individual factors
    # -------------------------------------------------------------------------

    def pattern_score(
        self,
        text: str,
        component_type: Optional[ComponentType],
        config: Optional[OcrConfidenceConfig] = None,
    ) -> float:
        """Score DSN format conformance under the component's strictness."""
        config = config or self._config
        strictness = config.strictness_for(component_type)
        classification = self.classifier.classify(text)

        if not classification.is_valid_dsn:
            if strictness is PatternStrictness.STRICT:
                return PATTERN_NO_MATCH_STRICT
            return PATTERN_NO_MATCH

        if strictness is PatternStrictness.LOOSE:
            return PATTERN_LOOSE_MATCH

        normalized = classification.normalized_text
        if strictness is PatternStrictness.MEDIUM:
            if match_product_dsn(normalized) is not None:
                return PATTERN_PRODUCT_FORMAT
            if is_plausible_length(normalized):
                if has_known_prefix(normalized):
                    return PATTERN_PREFIX_AND_LENGTH
                return PATTERN_LENGTH_ONLY
            return PATTERN_ANY_MATCH

        # STRICT: the inferred type has to agree with the expected one
        if component_type is None:
            return PATTERN_STRICT_TYPE_MISMATCH
        if classification.component_type is component_type:
            return PATTERN_STRICT_TYPE_MATCH
        if component_type.is_battery and self.classifier.is_likely_battery(normalized):
            return PATTERN_STRICT_TYPE_MATCH
        return PATTERN_STRICT_TYPE_MISMATCH

    def stability_score(
        self,
        key: str,
        bounding_box: Optional[BoundingBox],
        timestamp: float,
        config: Optional[OcrConfidenceConfig] = None,
    ) -> float:
        """Score bounding-box centroid drift over the last N frames.

        Reads the box history for `key` plus the current box; never
        records anything.
        """
        config = config or self._config
        if bounding_box is None:
            return STABILITY_NO_BOX
        if not config.enable_environmental_adaptation:
            return STABILITY_ADAPTATION_OFF

        boxes = self.box_history.window(key, timestamp, config.bounding_box_window)
        boxes.append(bounding_box)

        frames = config.bounding_box_stability_frames
        if len(boxes) < frames:
            return STABILITY_WARMING_UP
        return score_drift(centroid_drift(boxes[-frames:]))

    def environmental_score(self, config: Optional[OcrConfidenceConfig] = None) -> float:
        config = config or self._config
        if not config.enable_environmental_adaptation:
            return config.environment_neutral_score
        if self.environment is not None:
            return self.environment.score()
        if self._environmental_factor is not None:
            return self._environmental_factor
        return config.environment_neutral_score

    # -------------------------------------------------------------------------
    # Scoring
    # -------------------------------------------------------------------------

    def score(
        self,
        native_confidence: Optional[float],
        text: str,
        bounding_box: Optional[BoundingBox] = None,
        component_type: Optional[ComponentType] = None,
        timestamp: float = 0.0,
    ) -> EnhancedResult:
        """Compute the composite confidence for one reading.

        Args:
            native_confidence: Recognition engine confidence, if any
            text: Raw or normalized reading
            bounding_box: Screen-space box of the reading, if any
            component_type: Expected component type, if known
            timestamp: Frame timestamp in seconds

        Returns:
            EnhancedResult with factors and the threshold pair applied.
            Never raises for malformed input.
        """
        config = self._config
        bounding_box = BoundingBox.coerce(bounding_box)
        if not is_finite_number(timestamp):
            logger.debug("invalid_timestamp", timestamp=repr(timestamp))
            timestamp = 0.0
        raw = text if isinstance(text, str) else ""
        normalized = self.classifier.normalize(raw)
        threshold: ComponentThreshold = config.threshold_for(component_type)

        native = coerce_confidence(native_confidence)
        used_fallback = native is None
        if used_fallback:
            native = fallback_confidence(
                raw,
                threshold.pattern_strictness,
                config.minimum_text_length,
            )
            logger.debug(
                "fallback_confidence_used",
                text=truncate_text(raw),
                fallback=native,
            )

        factors = ConfidenceFactors(
            native_confidence=native,
            pattern_score=self.pattern_score(raw, component_type, config),
            stability_score=self.stability_score(normalized, bounding_box, timestamp, config),
            environmental_score=self.environmental_score(config),
            used_fallback_confidence=used_fallback,
        )

        weighted = (
            factors.native_confidence * config.native_weight
            + factors.pattern_score * config.pattern_weight
            + factors.stability_score * config.stability_weight
            + factors.environmental_score * config.environmental_weight
        )
        composite = clamp_unit(weighted * config.sensitivity_mode.multiplier)

        requires_manual = composite < threshold.manual_verification_threshold
        if used_fallback and not config.trust_fallback_confidence:
            requires_manual = True
        if not normalized:
            requires_manual = True

        if config.enable_confidence_history:
            self._confidence_history.append(composite)

        tier = self.classifier.classify(raw).tier
        logger.debug(
            "confidence_scored",
            text=truncate_text(normalized),
            native=factors.native_confidence,
            pattern=factors.pattern_score,
            stability=factors.stability_score,
            environmental=factors.environmental_score,
            composite=composite,
            component_type=component_type.value if component_type else None,
            requires_manual_verification=requires_manual,
            config_version=config.version,
        )

        return EnhancedResult(
            text=normalized,
            composite_confidence=composite,
            requires_manual_verification=requires_manual,
            factors=factors,
            component_type=component_type,
            threshold_used=threshold,
            tier=tier,
            timestamp=timestamp,
        )

    def observe(self, text: str, bounding_box: Optional[BoundingBox], timestamp: float) -> None:
        """Record a reading's box for later stability scoring."""
        bounding_box = BoundingBox.coerce(bounding_box)
        if bounding_box is None or not is_finite_number(timestamp):
            return
        key = self.classifier.normalize(text if isinstance(text, str) else "")
        if not key:
            return
        self.box_history.record(key, bounding_box, timestamp)
        self.box_history.prune(timestamp, self._config.bounding_box_window)

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def confidence_history(self) -> tuple[float, ...]:
        return self._confidence_history.snapshot()

    def average_confidence(self) -> float:
        """Average recent composite, or the base threshold with no history."""
        average = mean(self._confidence_history.snapshot())
        if average is None:
            return self._config.base_confidence_threshold
        return average

    def reset(self) -> None:
        """Clear all per-session state."""
        self.box_history.clear()
        self._confidence_history.clear()
        self._environmental_factor = None
        if self.environment is not None:
            self.environment.reset()
