"""Configuration management for the DSN OCR engine.

Two layers:
- `Settings`: environment-backed preferences (pydantic-settings), the
  equivalent of persisted user settings.
- `OcrConfidenceConfig`: an immutable snapshot of every threshold and
  weight the engine reads. Replace it wholesale, never mutate it.
"""

import math
from functools import lru_cache
from typing import Any, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import ComponentThreshold, ComponentType, PatternStrictness, SensitivityMode
from .utils import coerce_unit

logger = structlog.get_logger(__name__)

# Tolerance used when checking that the fusion weights sum to 1.0
WEIGHT_SUM_TOLERANCE = 1e-6

DEFAULT_WEIGHTS = {
    "native_weight": 0.5,
    "pattern_weight": 0.25,
    "stability_weight": 0.15,
    "environmental_weight": 0.1,
}


class Settings(BaseSettings):
    """Engine preferences loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DSN_OCR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    debug: bool = False

    # Scan tuning
    sensitivity_mode: str = "balanced"      # conservative | balanced | aggressive
    enable_confidence_history: bool = True
    confidence_history_size: int = 10
    analysis_interval: Optional[float] = None  # Seconds; None keeps the preset value
    trust_fallback_confidence: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def default_component_thresholds() -> dict[ComponentType, ComponentThreshold]:
    """Default per-component thresholds.

    Batteries get the strictest pattern policy and the highest
    auto-accept bar; accessories the loosest.
    """
    camera_parts = ComponentThreshold(
        base_threshold=0.70,
        manual_verification_threshold=0.90,
        pattern_strictness=PatternStrictness.MEDIUM,
    )
    battery = ComponentThreshold(
        base_threshold=0.75,
        manual_verification_threshold=0.95,
        pattern_strictness=PatternStrictness.STRICT,
    )
    accessory = ComponentThreshold(
        base_threshold=0.65,
        manual_verification_threshold=0.85,
        pattern_strictness=PatternStrictness.LOOSE,
    )
    return {
        ComponentType.GLASSES: camera_parts,
        ComponentType.CONTROLLER: camera_parts,
        ComponentType.BATTERY_01: battery,
        ComponentType.BATTERY_02: battery,
        ComponentType.BATTERY_03: battery,
        ComponentType.PADS: accessory,
        ComponentType.UNUSED_01: accessory,
        ComponentType.UNUSED_02: accessory,
    }


def parse_sensitivity_mode(value: Any) -> SensitivityMode:
    """Resolve a mode from an enum, its name or its value.

    Unknown input falls back to BALANCED.
    """
    if isinstance(value, SensitivityMode):
        return value
    if isinstance(value, str):
        key = value.strip().lower()
        for mode in SensitivityMode:
            if key in (mode.value, mode.name.lower()):
                return mode
    logger.warning("unknown_sensitivity_mode", value=repr(value), fallback="balanced")
    return SensitivityMode.BALANCED


class OcrConfidenceConfig(BaseModel):
    """Versioned bag of thresholds, weights and per-component overrides."""

    model_config = ConfigDict(frozen=True)

    version: int = 1

    # Global thresholds (used when the component type is unknown)
    sensitivity_mode: SensitivityMode = SensitivityMode.BALANCED
    base_confidence_threshold: float = 0.70
    manual_verification_threshold: float = 0.90

    component_thresholds: dict[ComponentType, ComponentThreshold] = Field(
        default_factory=default_component_thresholds
    )

    # Multi-factor scoring weights
    native_weight: float = 0.5
    pattern_weight: float = 0.25
    stability_weight: float = 0.15
    environmental_weight: float = 0.1

    # Environmental adaptation
    enable_environmental_adaptation: bool = True
    environment_neutral_score: float = 1.0

    # Confidence history (UI trend display)
    enable_confidence_history: bool = True
    confidence_history_size: int = 10

    # Analysis parameters (seconds)
    analysis_interval: float = 0.3
    frame_history_timeout: float = 1.5
    bounding_box_window: float = 1.0
    bounding_box_stability_frames: int = 3

    # Text rules
    minimum_text_length: int = 5
    minimum_dsn_length: int = 6
    similarity_threshold: float = 0.85

    # Stabilizer pass-through cutoff for first-seen readings
    high_confidence_cutoff: float = 0.9

    # When False, a synthesized native confidence always needs a human
    trust_fallback_confidence: bool = False

    @field_validator("sensitivity_mode", mode="before")
    @classmethod
    def _parse_mode(cls, value: Any) -> SensitivityMode:
        return parse_sensitivity_mode(value)

    @field_validator(
        "base_confidence_threshold",
        "manual_verification_threshold",
        "environment_neutral_score",
        "similarity_threshold",
        "high_confidence_cutoff",
        mode="before",
    )
    @classmethod
    def _clamp_unit_fields(cls, value: Any, info: ValidationInfo) -> float:
        return coerce_unit(value, cls.model_fields[info.field_name].default)

    @field_validator(
        "native_weight",
        "pattern_weight",
        "stability_weight",
        "environmental_weight",
        mode="before",
    )
    @classmethod
    def _non_negative_weight(cls, value: Any, info: ValidationInfo) -> float:
        try:
            weight = float(value)
        except (TypeError, ValueError):
            return DEFAULT_WEIGHTS[info.field_name]
        if not math.isfinite(weight) or weight < 0:
            return 0.0
        return weight

    @field_validator("confidence_history_size", "bounding_box_stability_frames", mode="before")
    @classmethod
    def _at_least_one(cls, value: Any, info: ValidationInfo) -> int:
        try:
            return max(1, int(value))
        except (TypeError, ValueError):
            return cls.model_fields[info.field_name].default

    @field_validator("analysis_interval", "frame_history_timeout", "bounding_box_window", mode="before")
    @classmethod
    def _non_negative_seconds(cls, value: Any, info: ValidationInfo) -> float:
        try:
            seconds = float(value)
        except (TypeError, ValueError):
            return cls.model_fields[info.field_name].default
        if not math.isfinite(seconds) or seconds < 0:
            return cls.model_fields[info.field_name].default
        return seconds

    @model_validator(mode="before")
    @classmethod
    def _normalize_weights(cls, data: Any) -> Any:
        """Rescale fusion weights so they sum to 1.0."""
        if not isinstance(data, dict):
            return data

        raw = {}
        for name, default in DEFAULT_WEIGHTS.items():
            value = data.get(name, default)
            try:
                weight = float(value)
            except (TypeError, ValueError):
                weight = default
            raw[name] = weight if math.isfinite(weight) and weight > 0 else 0.0

        total = sum(raw.values())
        if abs(total - 1.0) <= WEIGHT_SUM_TOLERANCE:
            return data

        data = dict(data)
        if total <= 0:
            logger.warning("fusion_weights_invalid", weights=raw, fallback="defaults")
            data.update(DEFAULT_WEIGHTS)
            return data

        logger.warning("fusion_weights_rescaled", weights=raw, total=total)
        data.update({name: weight / total for name, weight in raw.items()})
        return data

    def threshold_for(self, component_type: Optional[ComponentType]) -> ComponentThreshold:
        """Get the effective thresholds for a component type.

        Unknown or unconfigured types use the global pair.
        """
        if component_type is not None:
            configured = self.component_thresholds.get(component_type)
            if configured is not None:
                return configured
        return ComponentThreshold(
            base_threshold=self.base_confidence_threshold,
            manual_verification_threshold=self.manual_verification_threshold,
        )

    def strictness_for(self, component_type: Optional[ComponentType]) -> PatternStrictness:
        return self.threshold_for(component_type).pattern_strictness

    def with_overrides(self, **changes: Any) -> "OcrConfidenceConfig":
        """Build a new snapshot with changes applied and the version bumped."""
        data = self.model_dump()
        data.update(changes)
        data["version"] = self.version + 1
        return OcrConfidenceConfig(**data)

    def with_component_override(
        self,
        component_type: ComponentType,
        **changes: Any,
    ) -> "OcrConfidenceConfig":
        """Build a new snapshot overriding one component's thresholds."""
        current = self.threshold_for(component_type).model_dump()
        current.update(changes)
        thresholds = dict(self.component_thresholds)
        thresholds[component_type] = ComponentThreshold(**current)
        return self.with_overrides(component_thresholds=thresholds)

    @classmethod
    def from_sensitivity_mode(cls, mode: Any) -> "OcrConfidenceConfig":
        """Create the preset snapshot for a sensitivity mode."""
        mode = parse_sensitivity_mode(mode)

        if mode is SensitivityMode.CONSERVATIVE:
            return cls(
                sensitivity_mode=mode,
                base_confidence_threshold=0.75,
                manual_verification_threshold=0.95,
                native_weight=0.4,
                pattern_weight=0.35,
                stability_weight=0.15,
                environmental_weight=0.1,
            )
        if mode is SensitivityMode.AGGRESSIVE:
            return cls(
                sensitivity_mode=mode,
                base_confidence_threshold=0.65,
                manual_verification_threshold=0.85,
                native_weight=0.6,
                pattern_weight=0.2,
                stability_weight=0.1,
                environmental_weight=0.1,
                analysis_interval=0.2,
            )
        return cls(sensitivity_mode=mode)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "OcrConfidenceConfig":
        """Create a snapshot from persisted preferences."""
        settings = settings or get_settings()
        preset = cls.from_sensitivity_mode(settings.sensitivity_mode)

        changes: dict[str, Any] = {
            "enable_confidence_history": settings.enable_confidence_history,
            "confidence_history_size": settings.confidence_history_size,
            "trust_fallback_confidence": settings.trust_fallback_confidence,
        }
        if settings.analysis_interval is not None:
            changes["analysis_interval"] = settings.analysis_interval

        data = preset.model_dump()
        data.update(changes)
        return cls(**data)
