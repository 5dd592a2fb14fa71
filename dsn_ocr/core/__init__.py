"""Core configuration and models."""

from .config import OcrConfidenceConfig, Settings, get_settings
from .models import (
    BoundingBox,
    ClassificationResult,
    ComponentThreshold,
    ComponentType,
    ConfidenceFactors,
    ConfidenceTier,
    EnhancedResult,
    ManualEntryValidation,
    PatternStrictness,
    RecognizedCandidate,
    SensitivityMode,
)

__all__ = [
    "OcrConfidenceConfig",
    "Settings",
    "get_settings",
    "BoundingBox",
    "ClassificationResult",
    "ComponentThreshold",
    "ComponentType",
    "ConfidenceFactors",
    "ConfidenceTier",
    "EnhancedResult",
    "ManualEntryValidation",
    "PatternStrictness",
    "RecognizedCandidate",
    "SensitivityMode",
]
