"""DSN pattern classification modules."""

from .classifier import DsnClassifier, classify, get_classifier, normalize, validate_manual_entry
from .corrections import CHARACTER_CONFUSIONS, OcrCorrector, correct_ocr_mistakes, is_similar_text
from .patterns import GENERIC_DSN_PATTERNS, PRODUCT_DSN_PATTERNS

__all__ = [
    "DsnClassifier",
    "classify",
    "get_classifier",
    "normalize",
    "validate_manual_entry",
    "CHARACTER_CONFUSIONS",
    "OcrCorrector",
    "correct_ocr_mistakes",
    "is_similar_text",
    "GENERIC_DSN_PATTERNS",
    "PRODUCT_DSN_PATTERNS",
]
