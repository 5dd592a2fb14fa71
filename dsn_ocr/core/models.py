"""Pydantic models for the DSN OCR confidence engine."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from .utils import coerce_unit


# =============================================================================
# Enumerations
# =============================================================================

class ComponentType(str, Enum):
    """Equipment roles a DSN can belong to."""
    GLASSES = "glasses"
    CONTROLLER = "controller"
    BATTERY_01 = "battery_01"
    BATTERY_02 = "battery_02"
    BATTERY_03 = "battery_03"
    PADS = "pads"
    UNUSED_01 = "unused_01"
    UNUSED_02 = "unused_02"

    @property
    def is_battery(self) -> bool:
        return self in (
            ComponentType.BATTERY_01,
            ComponentType.BATTERY_02,
            ComponentType.BATTERY_03,
        )


class ConfidenceTier(str, Enum):
    """Pattern classification tier."""
    HIGH = "high"      # Product format + product type pattern
    MEDIUM = "medium"  # Generic format + type keyword
    LOW = "low"        # Anything else


class SensitivityMode(str, Enum):
    """Global tuning preset."""
    CONSERVATIVE = "conservative"  # Higher thresholds, more manual verification
    BALANCED = "balanced"
    AGGRESSIVE = "aggressive"      # Lower thresholds, trust OCR more

    @property
    def multiplier(self) -> float:
        if self is SensitivityMode.CONSERVATIVE:
            return 0.95
        if self is SensitivityMode.AGGRESSIVE:
            return 1.05
        return 1.0


class PatternStrictness(str, Enum):
    """How hard the pattern score leans on format conformance."""
    LOOSE = "loose"    # Any pattern match is enough
    MEDIUM = "medium"  # Rewards length/prefix conformance
    STRICT = "strict"  # Inferred type must match the expected one


# =============================================================================
# Geometry & Recognition Input
# =============================================================================

class BoundingBox(BaseModel):
    """Screen-space bounding box in pixels."""
    model_config = ConfigDict(frozen=True)

    left: float
    top: float
    right: float
    bottom: float

    @classmethod
    def from_list(cls, coords: list[float]) -> "BoundingBox":
        """Create from [left, top, right, bottom] list."""
        return cls(left=coords[0], top=coords[1], right=coords[2], bottom=coords[3])

    @classmethod
    def coerce(cls, value: object) -> Optional["BoundingBox"]:
        """Accept a BoundingBox or a [left, top, right, bottom] sequence.

        Returns None for anything else.
        """
        if value is None or isinstance(value, BoundingBox):
            return value
        if isinstance(value, (str, bytes)):
            return None
        try:
            return cls.from_list(list(value))
        except (TypeError, ValueError, IndexError):
            return None

    @property
    def center_x(self) -> float:
        return (self.left + self.right) / 2

    @property
    def center_y(self) -> float:
        return (self.top + self.bottom) / 2

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top


class RecognizedCandidate(BaseModel):
    """One text fragment from one frame, as emitted by the recognition engine."""
    text: str
    confidence: Optional[float] = Field(None, description="Native engine confidence 0-1")
    bounding_box: Optional[BoundingBox] = None
    timestamp: float = Field(0.0, description="Frame timestamp in seconds")


# =============================================================================
# Classification Models
# =============================================================================

class ClassificationResult(BaseModel):
    """Deterministic classification of a text fragment."""
    model_config = ConfigDict(frozen=True)

    original_text: str
    normalized_text: str
    component_type: Optional[ComponentType] = None
    tier: ConfidenceTier = ConfidenceTier.LOW
    is_valid_dsn: bool = False
    matched_pattern: Optional[str] = Field(None, description="Name of the DSN pattern that matched")


class ManualEntryValidation(BaseModel):
    """Result of validating a manually typed serial."""
    is_valid: bool
    normalized_text: Optional[str] = None
    inferred_type: Optional[ComponentType] = None
    error: Optional[str] = None


class DsnCandidate(BaseModel):
    """A recognized fragment that passed DSN validation."""
    dsn: str
    confidence: float
    component_type: Optional[ComponentType] = None
    original_text: str
    bounding_box: Optional[BoundingBox] = None


# =============================================================================
# Stabilization Models
# =============================================================================

class FrameHistoryEntry(BaseModel):
    """A normalized reading kept in the rolling frame history."""
    model_config = ConfigDict(frozen=True)

    normalized_text: str
    confidence: Optional[float] = None
    timestamp: float
    bounding_box: Optional[BoundingBox] = None


class StabilizedCandidate(BaseModel):
    """A current-frame reading after merging with recent history."""
    text: str = Field(..., description="Consensus text of the matching group")
    normalized_text: str = Field(..., description="This frame's own normalized reading")
    confidence: Optional[float] = None
    native_confidence: Optional[float] = None
    bounding_box: Optional[BoundingBox] = None
    timestamp: float
    group_size: int = 1
    group_average: Optional[float] = None
    stability_score: float = 0.0
    requires_manual_verification: bool = True


class ReadingGroup(BaseModel):
    """Readings from recent frames judged to be the same underlying value."""
    text: str
    members: list[FrameHistoryEntry]
    average_confidence: float
    stability_score: float

    @property
    def size(self) -> int:
        return len(self.members)


# =============================================================================
# Fusion Models
# =============================================================================

class ComponentThreshold(BaseModel):
    """Threshold pair and strictness bound to a component type.

    Out-of-range thresholds are clamped into [0, 1] rather than rejected.
    """
    model_config = ConfigDict(frozen=True)

    base_threshold: float = 0.70
    manual_verification_threshold: float = 0.90
    pattern_strictness: PatternStrictness = PatternStrictness.MEDIUM

    @field_validator("base_threshold", "manual_verification_threshold", mode="before")
    @classmethod
    def _clamp_threshold(cls, value, info: ValidationInfo) -> float:
        return coerce_unit(value, cls.model_fields[info.field_name].default)


class ConfidenceFactors(BaseModel):
    """The independent signals that went into a composite score."""
    model_config = ConfigDict(frozen=True)

    native_confidence: float
    pattern_score: float
    stability_score: float
    environmental_score: float
    used_fallback_confidence: bool = False


class EnhancedResult(BaseModel):
    """Terminal output of one scoring pass."""
    model_config = ConfigDict(frozen=True)

    text: str
    composite_confidence: float = Field(..., ge=0, le=1)
    requires_manual_verification: bool
    factors: ConfidenceFactors
    component_type: Optional[ComponentType] = None
    threshold_used: ComponentThreshold
    tier: ConfidenceTier = ConfidenceTier.LOW
    timestamp: float = 0.0


# =============================================================================
# Environment Models
# =============================================================================

class EnvironmentalConditions(BaseModel):
    """Snapshot of ambient reading conditions for diagnostics."""
    light_level: Optional[float] = None
    light_score: float
    motion_jitter: Optional[float] = None
    stability_score: float
    overall_score: float
    light_condition: str
    stability_condition: str
