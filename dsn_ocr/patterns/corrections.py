"""Pattern-based correction of common OCR mistakes in serial numbers.

Implements deterministic regex corrections for character confusions
(O/0, I/1, S/5, ...) in the positions of a DSN that are known to be
numeric, plus the similarity test used to decide whether two noisy
readings from different frames are the same value.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Mapping, Optional, Union

import structlog
from rapidfuzz.distance import Levenshtein

from .patterns import TYPE_KEYWORDS

logger = structlog.get_logger(__name__)


# Letter -> digit confusions applied inside numeric DSN segments.
# Tunable: pass a different table to `OcrCorrector` / `is_similar_text`.
CHARACTER_CONFUSIONS: dict[str, str] = {
    "O": "0",  # Letter O to zero
    "Q": "0",  # Letter Q to zero
    "D": "0",  # Letter D to zero (rounded glyphs)
    "I": "1",  # Letter I to one
    "L": "1",  # Lowercase l (upper-cased) to one
    "S": "5",  # Letter S to five
    "Z": "2",  # Letter Z to two
    "G": "6",  # Letter G to six
    "B": "8",  # Letter B to eight
}

# Symbols that would otherwise be stripped during normalization
SYMBOL_CONFUSIONS: dict[str, str] = {
    "|": "1",  # Pipe to one
}

# Default similarity for grouping readings across frames
DEFAULT_SIMILARITY_THRESHOLD = 0.85

MAX_CORRECTION_PASSES = 10


@dataclass
class CorrectionRule:
    """A pattern correction rule."""

    name: str
    pattern: str
    replacement: Union[str, Callable[[re.Match], str]]
    description: str


def _numeric_tail_replacement(confusions: Mapping[str, str]) -> Callable[[re.Match], str]:
    def replace(match: re.Match) -> str:
        tail = "".join(confusions.get(char, char) for char in match.group(2))
        return match.group(1) + tail

    return replace


def build_rules(confusions: Mapping[str, str] = CHARACTER_CONFUSIONS) -> list[CorrectionRule]:
    """Build the correction rule list for a confusion table.

    Order matters: more specific patterns come first.
    """
    confusable = "".join(sorted(confusions))
    keywords = "|".join(TYPE_KEYWORDS)
    return [
        # Product prefixes: G0G46K / G0G4NU / G0G348, the second char is a zero
        CorrectionRule(
            name="product_prefix_zero",
            pattern=r"^G[OQD]G(46K|4NU|348)",
            replacement=r"G0G\g<1>",
            description="O confused with 0 in product prefix",
        ),
        # Letter-O-letter at the start of a serial containing digits,
        # unless the serial starts with a component keyword
        CorrectionRule(
            name="leading_letter_zero_letter",
            pattern=rf"^(?!{keywords})([A-Z])[OQ]([A-Z])(?=.*\d)",
            replacement=r"\g<1>0\g<2>",
            description="O confused with 0 between leading letters",
        ),
        # Everything after a product prefix is numeric
        CorrectionRule(
            name="product_numeric_tail",
            pattern=rf"^(G0G[A-Z0-9]{{3}})([0-9{re.escape(confusable)}]+)$",
            replacement=_numeric_tail_replacement(confusions),
            description="Letter confused with digit in numeric tail",
        ),
        # Dash-delimited numeric groups: 12-3O-56-78
        CorrectionRule(
            name="dashed_group_zero",
            pattern=r"(?<=\d)[OQ](?=\d|-|$)|(?<=-)[OQ](?=\d)",
            replacement="0",
            description="O confused with 0 in numeric group",
        ),
    ]


class OcrCorrector:
    """Applies deterministic corrections for common OCR errors.

    Rules are applied repeatedly until the text stops changing, so the
    result is a fixed point: `correct(correct(x)) == correct(x)`.
    """

    def __init__(self, confusions: Mapping[str, str] = CHARACTER_CONFUSIONS) -> None:
        self.confusions = dict(confusions)
        self.rules = [
            (re.compile(rule.pattern), rule.replacement, rule.name)
            for rule in build_rules(self.confusions)
        ]

    def correct_with_trace(self, text: str) -> tuple[str, list[str]]:
        """Apply corrections and report which rules fired.

        Args:
            text: Upper-cased text to correct.

        Returns:
            Tuple of (corrected text, names of applied rules).
        """
        if not text:
            return "", []

        corrected = text
        applied: list[str] = []

        for _ in range(MAX_CORRECTION_PASSES):
            changed = False
            for pattern, replacement, name in self.rules:
                new_text = pattern.sub(replacement, corrected)
                if new_text != corrected:
                    if name not in applied:
                        applied.append(name)
                    corrected = new_text
                    changed = True
            if not changed:
                break

        if applied:
            logger.debug(
                "ocr_correction_applied",
                original=text,
                corrected=corrected,
                rules=applied,
            )
        return corrected, applied

    def correct(self, text: str) -> str:
        return self.correct_with_trace(text)[0]

    def fold(self, text: str) -> str:
        """Map every confusable character to its digit.

        Used only for comparison; folded text is never shown or stored.
        """
        return "".join(self.confusions.get(char, char) for char in text)


@lru_cache(maxsize=1)
def get_ocr_corrector() -> OcrCorrector:
    """Get singleton corrector for the default confusion table."""
    return OcrCorrector()


def correct_ocr_mistakes(text: str) -> str:
    """Upper-case, trim and correct common OCR mistakes."""
    if not text:
        return ""
    return get_ocr_corrector().correct(text.strip().upper())


def _differs_by_one_char(first: str, second: str) -> bool:
    if len(first) != len(second) or not first:
        return False
    differences = 0
    for a, b in zip(first, second):
        if a != b:
            differences += 1
            if differences > 1:
                return False
    return differences == 1


def is_similar_text(
    first: str,
    second: str,
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    corrector: Optional[OcrCorrector] = None,
) -> bool:
    """Check whether two readings are the same value despite OCR noise.

    Strategy:
    1. Equal after trim/upper-case
    2. Equal after OCR correction, or after folding confusable characters
    3. Same length, exactly one differing character
    4. Normalized Levenshtein similarity >= threshold

    Args:
        first: First reading
        second: Second reading
        threshold: Minimum similarity (0-1) for step 4
        corrector: Corrector with the confusion table to use

    Returns:
        True if the readings are judged to be the same value
    """
    corrector = corrector or get_ocr_corrector()

    first = (first or "").strip().upper()
    second = (second or "").strip().upper()
    if not first or not second:
        return False
    if first == second:
        return True

    corrected_first = corrector.correct(first)
    corrected_second = corrector.correct(second)
    if corrected_first == corrected_second:
        return True
    if corrector.fold(corrected_first) == corrector.fold(corrected_second):
        return True

    if _differs_by_one_char(corrected_first, corrected_second):
        return True

    similarity = Levenshtein.normalized_similarity(corrected_first, corrected_second)
    return similarity >= threshold
