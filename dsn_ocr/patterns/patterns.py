"""Regex patterns for Device Serial Number (DSN) validation.

Two DSN tiers, checked in order:
- Product formats: fixed prefix + 9 or more digits (G0G46K..., G0G4NU...)
- Generic formats: "looks like a serial" without implying a type

Type inference uses three separate bands (high/medium/low); the first
band with a matching pattern wins.

All patterns expect normalized (upper-cased, cleaned) text and are
applied with `fullmatch`.
"""

import re

from dsn_ocr.core.models import ComponentType, ConfidenceTier


# =============================================================================
# DSN Format Patterns
# =============================================================================

PRODUCT_DSN_PATTERNS: list[tuple[str, re.Pattern, ComponentType]] = [
    # Controllers: G0G46K025224xxxx
    ("controller_dsn", re.compile(r"G0G46K\d{9,}"), ComponentType.CONTROLLER),

    # Batteries: G0G4NU015166xxxx
    ("battery_dsn", re.compile(r"G0G4NU\d{9,}"), ComponentType.BATTERY_01),

    # Glasses: G0G348025246xxxx
    ("glasses_dsn", re.compile(r"G0G348\d{9,}"), ComponentType.GLASSES),
]

GENERIC_DSN_PATTERNS: list[tuple[str, re.Pattern]] = [
    # Component prefix followed by digits
    # Examples: "GL-123456", "CTRL-789012", "BAT-001234"
    ("prefixed_digits", re.compile(r"(?:GL|CTRL|BAT|PAD|UN)-\d{6,}")),

    # Alternating letter/digit blocks
    # Examples: "ABC123DEF456"
    ("letter_digit_blocks", re.compile(r"[A-Z]{3}\d{3}[A-Z]{3}\d{3}")),

    # Dash-delimited numeric groups
    # Examples: "12-34-56-78"
    ("dashed_numeric", re.compile(r"\d{2}-\d{2}-\d{2}-\d{2}")),

    # Underscore-delimited serials
    # Examples: "SN_ABC_123456"
    ("underscore_serial", re.compile(r"SN_[A-Z]+_\d{6,}")),

    # Bare alphanumeric, 8 characters or more
    ("bare_alphanumeric", re.compile(r"[A-Z0-9]{8,}")),
]

# Prefixes that count as "expected" under MEDIUM strictness scoring
KNOWN_DSN_PREFIXES: tuple[str, ...] = ("G0G", "GL", "CTRL", "BAT", "PAD", "UN", "SN_")

# Component keywords that OCR correction must leave intact
TYPE_KEYWORDS: tuple[str, ...] = ("GLASS", "LENS", "CONTROL", "REMOTE", "BATTERY", "PAD", "UNUSED")

# Length bounds for a plausible DSN
MIN_DSN_LENGTH = 8
MAX_DSN_LENGTH = 20


# =============================================================================
# Component Type Inference Bands
# =============================================================================

HIGH_CONFIDENCE_TYPE_PATTERNS: dict[ComponentType, list[re.Pattern]] = {
    ComponentType.CONTROLLER: [re.compile(r"G0G46K\d{9,}")],
    ComponentType.BATTERY_01: [re.compile(r"G0G4NU\d{9,}")],
    ComponentType.GLASSES: [re.compile(r"G0G348\d{9,}")],
}

MEDIUM_CONFIDENCE_TYPE_PATTERNS: dict[ComponentType, list[re.Pattern]] = {
    ComponentType.GLASSES: [
        re.compile(r"GL[-_]?.*"),
        re.compile(r".*GLASS.*"),
        re.compile(r".*LENS.*"),
    ],
    ComponentType.CONTROLLER: [
        re.compile(r"CTRL[-_]?.*"),
        re.compile(r".*CONTROL.*"),
        re.compile(r".*REMOTE.*"),
    ],
    ComponentType.BATTERY_01: [
        re.compile(r"BAT[-_]?.*"),
        re.compile(r".*BATTERY.*"),
    ],
    ComponentType.PADS: [
        re.compile(r"PAD[-_]?.*"),
        re.compile(r".*PADS?.*"),
    ],
}

LOW_CONFIDENCE_TYPE_PATTERNS: dict[ComponentType, list[re.Pattern]] = {
    ComponentType.UNUSED_01: [
        re.compile(r"UN[-_]?0?1.*"),
        re.compile(r".*UNUSED[-_]?0?1.*"),
    ],
    ComponentType.UNUSED_02: [
        re.compile(r"UN[-_]?0?2.*"),
        re.compile(r".*UNUSED[-_]?0?2.*"),
    ],
}

TYPE_INFERENCE_BANDS: list[tuple[ConfidenceTier, dict[ComponentType, list[re.Pattern]]]] = [
    (ConfidenceTier.HIGH, HIGH_CONFIDENCE_TYPE_PATTERNS),
    (ConfidenceTier.MEDIUM, MEDIUM_CONFIDENCE_TYPE_PATTERNS),
    (ConfidenceTier.LOW, LOW_CONFIDENCE_TYPE_PATTERNS),
]


# =============================================================================
# Battery Detection
# =============================================================================

BATTERY_PATTERNS: list[re.Pattern] = [
    re.compile(r"G0G4NU\d{9,}"),
    re.compile(r"BAT[-_]?.*"),
    re.compile(r".*BATTERY.*"),
]

# Manual entry may only contain these characters after normalization
MANUAL_ENTRY_PATTERN = re.compile(r"[A-Z0-9\-_/.]+")


def match_product_dsn(text: str) -> tuple[str, ComponentType] | None:
    """Match text against the product DSN formats.

    Args:
        text: Normalized text

    Returns:
        (pattern name, component type) or None
    """
    for name, pattern, component_type in PRODUCT_DSN_PATTERNS:
        if pattern.fullmatch(text):
            return name, component_type
    return None


def match_generic_dsn(text: str) -> str | None:
    """Match text against the generic DSN formats.

    Returns:
        Name of the first matching pattern, or None
    """
    for name, pattern in GENERIC_DSN_PATTERNS:
        if pattern.fullmatch(text):
            return name
    return None


def infer_type_band(text: str) -> tuple[ComponentType | None, ConfidenceTier]:
    """Infer a component type by walking the bands high to low."""
    for tier, band in TYPE_INFERENCE_BANDS:
        for component_type, patterns in band.items():
            if any(pattern.fullmatch(text) for pattern in patterns):
                return component_type, tier
    return None, ConfidenceTier.LOW


def has_known_prefix(text: str) -> bool:
    return text.startswith(KNOWN_DSN_PREFIXES)


def is_plausible_length(text: str) -> bool:
    return MIN_DSN_LENGTH <= len(text) <= MAX_DSN_LENGTH
