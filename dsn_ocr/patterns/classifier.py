"""DSN classification: normalization, validation and type inference.

The classifier is pure: every method is a deterministic function of its
input text and the classifier's current settings.
"""

import re
from functools import lru_cache
from typing import Iterable, Optional

import structlog

from dsn_ocr.core.models import (
    ClassificationResult,
    ComponentType,
    ConfidenceTier,
    DsnCandidate,
    ManualEntryValidation,
    RecognizedCandidate,
)
from dsn_ocr.core.utils import coerce_confidence
from .corrections import (
    CHARACTER_CONFUSIONS,
    DEFAULT_SIMILARITY_THRESHOLD,
    SYMBOL_CONFUSIONS,
    OcrCorrector,
    is_similar_text,
)
from .patterns import (
    BATTERY_PATTERNS,
    MANUAL_ENTRY_PATTERN,
    infer_type_band,
    match_generic_dsn,
    match_product_dsn,
)

logger = structlog.get_logger(__name__)

WHITESPACE_RUN = re.compile(r"\s+")
DISALLOWED_CHARS = re.compile(r"[^A-Z0-9\-_/.]")

# OCR confidence required before a reading counts as a DSN in `find_dsns`
MIN_DSN_CONFIDENCE = 0.8
HIGH_DETECTION_CONFIDENCE = 0.9
MEDIUM_DETECTION_CONFIDENCE = 0.7

DEFAULT_MINIMUM_DSN_LENGTH = 6

BAND_RANK = {ConfidenceTier.HIGH: 0, ConfidenceTier.MEDIUM: 1, ConfidenceTier.LOW: 2}


class DsnClassifier:
    """Validates DSN text and infers component type with a confidence tier.

    Example:
        >>> classifier = DsnClassifier()
        >>> result = classifier.classify("g0g46k123456789")
        >>> result.component_type, result.tier
        (<ComponentType.CONTROLLER: 'controller'>, <ConfidenceTier.HIGH: 'high'>)
    """

    def __init__(
        self,
        confusions: Optional[dict[str, str]] = None,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        minimum_dsn_length: int = DEFAULT_MINIMUM_DSN_LENGTH,
    ) -> None:
        self.corrector = OcrCorrector(confusions or CHARACTER_CONFUSIONS)
        self.similarity_threshold = similarity_threshold
        self.minimum_dsn_length = minimum_dsn_length

    # -------------------------------------------------------------------------
    # Normalization
    # -------------------------------------------------------------------------

    def normalize(self, text: str) -> str:
        """Normalize a reading for matching and storage.

        Trims, upper-cases, collapses whitespace runs to "-", strips
        characters outside [A-Z0-9-_/.], then corrects OCR confusions.
        Idempotent.

        Examples:
            " gog46k 1234 " -> "G0G46K-1234"
            "bat_0O1234#"   -> "BAT_001234"
        """
        return self.corrector.correct(self.clean(text))

    def clean(self, text: str) -> str:
        """Normalize without OCR confusion correction."""
        if not text:
            return ""

        cleaned = text.strip().upper()
        for symbol, replacement in SYMBOL_CONFUSIONS.items():
            cleaned = cleaned.replace(symbol, replacement)
        cleaned = WHITESPACE_RUN.sub("-", cleaned)
        return DISALLOWED_CHARS.sub("", cleaned)

    def configure(self, similarity_threshold: float, minimum_dsn_length: int) -> None:
        """Adopt limits from a new configuration snapshot."""
        self.similarity_threshold = similarity_threshold
        self.minimum_dsn_length = minimum_dsn_length

    def correct_ocr_mistakes(self, text: str) -> str:
        return self.corrector.correct((text or "").strip().upper())

    def is_similar(self, first: str, second: str) -> bool:
        return is_similar_text(
            first,
            second,
            threshold=self.similarity_threshold,
            corrector=self.corrector,
        )

    # -------------------------------------------------------------------------
    # Validation & Inference
    # -------------------------------------------------------------------------

    def is_valid_dsn(self, text: str) -> bool:
        """Check whether text matches any DSN format (product or generic)."""
        normalized = self.normalize(text)
        if not normalized:
            return False
        return match_product_dsn(normalized) is not None or match_generic_dsn(normalized) is not None

    def is_valid_dsn_with_confidence(self, text: str, confidence: Optional[float]) -> bool:
        confidence = coerce_confidence(confidence)
        return confidence is not None and confidence >= MIN_DSN_CONFIDENCE and self.is_valid_dsn(text)

    def infer_component_type(self, text: str) -> tuple[Optional[ComponentType], ConfidenceTier]:
        """Infer the component type and the band it was inferred from."""
        cleaned = self.clean(text if isinstance(text, str) else "")
        return self._infer(cleaned, self.corrector.correct(cleaned))

    def _infer(self, cleaned: str, normalized: str) -> tuple[Optional[ComponentType], ConfidenceTier]:
        """Infer from the uncorrected and corrected text, best band wins.

        Keywords are matched as read; product prefixes only after
        correction. Ties go to the uncorrected text.
        """
        best: tuple[Optional[ComponentType], ConfidenceTier] = (None, ConfidenceTier.LOW)
        for candidate in (cleaned, normalized):
            if not candidate:
                continue
            component_type, band = infer_type_band(candidate)
            if component_type is None:
                continue
            if best[0] is None or BAND_RANK[band] < BAND_RANK[best[1]]:
                best = (component_type, band)
        return best

    def classify(self, text: str) -> ClassificationResult:
        """Classify a reading.

        Tier rules:
        - HIGH: product DSN format AND high-band type pattern
        - MEDIUM: generic DSN format AND medium-band type pattern
        - LOW: everything else

        Never raises; empty or garbage input yields an invalid LOW result.
        """
        original = text if isinstance(text, str) else ""
        cleaned = self.clean(original)
        normalized = self.corrector.correct(cleaned)

        if not normalized:
            return ClassificationResult(original_text=original, normalized_text="")

        product = match_product_dsn(normalized)
        generic = None if product else match_generic_dsn(normalized)
        component_type, band = self._infer(cleaned, normalized)

        if product and band is ConfidenceTier.HIGH:
            tier = ConfidenceTier.HIGH
        elif generic and band is ConfidenceTier.MEDIUM:
            tier = ConfidenceTier.MEDIUM
        else:
            tier = ConfidenceTier.LOW

        return ClassificationResult(
            original_text=original,
            normalized_text=normalized,
            component_type=component_type,
            tier=tier,
            is_valid_dsn=product is not None or generic is not None,
            matched_pattern=product[0] if product else generic,
        )

    def detection_confidence(self, text: str, ocr_confidence: Optional[float]) -> ConfidenceTier:
        """Combine the pattern band with a raw OCR confidence.

        HIGH needs a high-band type and OCR >= 0.9; MEDIUM needs a
        non-low band and OCR >= 0.7.
        """
        component_type, band = self.infer_component_type(text)
        confidence = coerce_confidence(ocr_confidence) or 0.0

        if component_type is None:
            return ConfidenceTier.LOW
        if confidence >= HIGH_DETECTION_CONFIDENCE and band is ConfidenceTier.HIGH:
            return ConfidenceTier.HIGH
        if confidence >= MEDIUM_DETECTION_CONFIDENCE and band is not ConfidenceTier.LOW:
            return ConfidenceTier.MEDIUM
        return ConfidenceTier.LOW

    def is_likely_battery(self, text: str) -> bool:
        """Check for any battery DSN, regardless of battery slot."""
        cleaned = self.clean(text if isinstance(text, str) else "")
        readings = (cleaned, self.corrector.correct(cleaned))
        return any(pattern.fullmatch(reading) for reading in readings for pattern in BATTERY_PATTERNS)

    def find_dsns(self, candidates: Iterable[RecognizedCandidate]) -> list[DsnCandidate]:
        """Find every valid DSN among recognized readings.

        Readings under the minimum OCR confidence are skipped. Results
        are sorted by confidence, best first.
        """
        found = []
        for candidate in candidates:
            if not self.is_valid_dsn_with_confidence(candidate.text, candidate.confidence):
                continue
            normalized = self.normalize(candidate.text)
            component_type, _ = self.infer_component_type(candidate.text)
            found.append(DsnCandidate(
                dsn=normalized,
                confidence=coerce_confidence(candidate.confidence),
                component_type=component_type,
                original_text=candidate.text,
                bounding_box=candidate.bounding_box,
            ))

        found.sort(key=lambda c: c.confidence, reverse=True)
        return found

    def validate_manual_entry(self, text: str) -> ManualEntryValidation:
        """Validate a manually typed serial with the camera path's rules."""
        raw = text if isinstance(text, str) else ""
        normalized = self.normalize(raw)

        if not normalized:
            return ManualEntryValidation(is_valid=False, error="DSN cannot be empty")

        if len(normalized) < self.minimum_dsn_length:
            return ManualEntryValidation(
                is_valid=False,
                error=f"DSN must be at least {self.minimum_dsn_length} characters",
            )

        if not MANUAL_ENTRY_PATTERN.fullmatch(normalized):
            return ManualEntryValidation(is_valid=False, error="DSN contains invalid characters")

        component_type, _ = self.infer_component_type(raw)
        logger.debug(
            "manual_entry_validated",
            normalized=normalized,
            inferred_type=component_type.value if component_type else None,
        )
        return ManualEntryValidation(
            is_valid=True,
            normalized_text=normalized,
            inferred_type=component_type,
        )


@lru_cache(maxsize=1)
def get_classifier() -> DsnClassifier:
    """Get singleton classifier with the default confusion table."""
    return DsnClassifier()


def classify(text: str) -> ClassificationResult:
    """Convenience function to classify a reading."""
    return get_classifier().classify(text)


def normalize(text: str) -> str:
    return get_classifier().normalize(text)


def validate_manual_entry(text: str) -> ManualEntryValidation:
    """Convenience function to validate a manually typed serial."""
    return get_classifier().validate_manual_entry(text)
