"""Tests for configuration snapshots and settings."""

import pytest
from pydantic import ValidationError

from dsn_ocr.core.config import OcrConfidenceConfig, Settings, parse_sensitivity_mode
from dsn_ocr.core.models import ComponentThreshold, ComponentType, PatternStrictness, SensitivityMode


class TestDefaults:
    """Test default configuration values."""

    def test_global_thresholds(self, config):
        assert config.version == 1
        assert config.sensitivity_mode is SensitivityMode.BALANCED
        assert config.base_confidence_threshold == 0.70
        assert config.manual_verification_threshold == 0.90

    def test_weights(self, config):
        weights = (config.native_weight, config.pattern_weight, config.stability_weight, config.environmental_weight)

        assert weights == (0.5, 0.25, 0.15, 0.1)

    def test_time_windows(self, config):
        assert config.analysis_interval == 0.3
        assert config.frame_history_timeout == 1.5
        assert config.bounding_box_window == 1.0
        assert config.bounding_box_stability_frames == 3

    @pytest.mark.parametrize("component_type,base,manual,strictness", [
        (ComponentType.GLASSES, 0.70, 0.90, PatternStrictness.MEDIUM),
        (ComponentType.CONTROLLER, 0.70, 0.90, PatternStrictness.MEDIUM),
        (ComponentType.BATTERY_01, 0.75, 0.95, PatternStrictness.STRICT),
        (ComponentType.BATTERY_02, 0.75, 0.95, PatternStrictness.STRICT),
        (ComponentType.BATTERY_03, 0.75, 0.95, PatternStrictness.STRICT),
        (ComponentType.PADS, 0.65, 0.85, PatternStrictness.LOOSE),
        (ComponentType.UNUSED_01, 0.65, 0.85, PatternStrictness.LOOSE),
    ])
    def test_component_thresholds(self, config, component_type, base, manual, strictness):
        threshold = config.threshold_for(component_type)

        assert threshold.base_threshold == base
        assert threshold.manual_verification_threshold == manual
        assert threshold.pattern_strictness is strictness
        assert threshold.base_threshold <= threshold.manual_verification_threshold

    def test_unknown_type_uses_global_pair(self, config):
        threshold = config.threshold_for(None)

        assert threshold.base_threshold == 0.70
        assert threshold.manual_verification_threshold == 0.90
        assert threshold.pattern_strictness is PatternStrictness.MEDIUM

    def test_unconfigured_type_uses_global_pair(self):
        config = OcrConfidenceConfig(component_thresholds={})

        assert config.threshold_for(ComponentType.BATTERY_01).base_threshold == 0.70

    def test_frozen(self, config):
        with pytest.raises(ValidationError):
            config.native_weight = 0.9


class TestSensitivityMode:
    """Test sensitivity mode parsing and presets."""

    @pytest.mark.parametrize("value,expected", [
        ("conservative", SensitivityMode.CONSERVATIVE),
        ("AGGRESSIVE", SensitivityMode.AGGRESSIVE),
        (" Balanced ", SensitivityMode.BALANCED),
        (SensitivityMode.AGGRESSIVE, SensitivityMode.AGGRESSIVE),
        ("turbo", SensitivityMode.BALANCED),
        (None, SensitivityMode.BALANCED),
        (42, SensitivityMode.BALANCED),
    ])
    def test_parse(self, value, expected):
        assert parse_sensitivity_mode(value) is expected

    def test_unknown_mode_in_config(self):
        assert OcrConfidenceConfig(sensitivity_mode="turbo").sensitivity_mode is SensitivityMode.BALANCED

    def test_multipliers(self):
        assert SensitivityMode.CONSERVATIVE.multiplier == 0.95
        assert SensitivityMode.BALANCED.multiplier == 1.0
        assert SensitivityMode.AGGRESSIVE.multiplier == 1.05

    def test_conservative_preset(self):
        config = OcrConfidenceConfig.from_sensitivity_mode("conservative")

        assert config.base_confidence_threshold == 0.75
        assert config.manual_verification_threshold == 0.95
        assert config.native_weight == pytest.approx(0.4)
        assert config.pattern_weight == pytest.approx(0.35)

    def test_aggressive_preset(self):
        config = OcrConfidenceConfig.from_sensitivity_mode(SensitivityMode.AGGRESSIVE)

        assert config.base_confidence_threshold == 0.65
        assert config.manual_verification_threshold == 0.85
        assert config.native_weight == pytest.approx(0.6)
        assert config.analysis_interval == 0.2

    def test_balanced_preset_is_default(self):
        assert OcrConfidenceConfig.from_sensitivity_mode("bogus") == OcrConfidenceConfig()


class TestValidation:
    """Test that bad values are repaired, not rejected."""

    @pytest.mark.parametrize("value,expected", [
        (1.7, 1.0),
        (-0.2, 0.0),
        ("0.8", 0.8),
        ("abc", 0.90),
        (float("nan"), 0.90),
    ])
    def test_thresholds_clamped(self, value, expected):
        config = OcrConfidenceConfig(manual_verification_threshold=value)

        assert config.manual_verification_threshold == expected

    def test_component_threshold_clamped(self):
        threshold = ComponentThreshold(base_threshold=2, manual_verification_threshold=-1)

        assert threshold.base_threshold == 1.0
        assert threshold.manual_verification_threshold == 0.0

    def test_weights_rescaled(self):
        config = OcrConfidenceConfig(
            native_weight=1,
            pattern_weight=1,
            stability_weight=1,
            environmental_weight=1,
        )

        assert config.native_weight == pytest.approx(0.25)
        assert config.environmental_weight == pytest.approx(0.25)

    def test_negative_weight_clamped_then_rescaled(self):
        config = OcrConfidenceConfig(native_weight=-1)

        assert config.native_weight == 0.0
        assert config.pattern_weight == pytest.approx(0.5)
        assert config.stability_weight == pytest.approx(0.3)
        assert config.environmental_weight == pytest.approx(0.2)

    def test_all_zero_weights_fall_back(self):
        config = OcrConfidenceConfig(
            native_weight=0,
            pattern_weight=0,
            stability_weight=0,
            environmental_weight=0,
        )

        assert config.native_weight == 0.5
        assert config.pattern_weight == 0.25

    def test_weights_always_sum_to_one(self):
        config = OcrConfidenceConfig(native_weight=3, pattern_weight=float("inf"))
        total = config.native_weight + config.pattern_weight + config.stability_weight + config.environmental_weight

        assert total == pytest.approx(1.0)

    def test_counts_at_least_one(self):
        config = OcrConfidenceConfig(bounding_box_stability_frames=0, confidence_history_size=-5)

        assert config.bounding_box_stability_frames == 1
        assert config.confidence_history_size == 1

    def test_negative_interval_uses_default(self):
        assert OcrConfidenceConfig(analysis_interval=-1).analysis_interval == 0.3


class TestOverrides:
    """Test building new snapshots."""

    def test_with_overrides_bumps_version(self, config):
        updated = config.with_overrides(analysis_interval=0.5)

        assert updated.version == 2
        assert updated.analysis_interval == 0.5
        assert config.analysis_interval == 0.3

    def test_with_component_override(self, config):
        updated = config.with_component_override(ComponentType.PADS, manual_verification_threshold=0.8)

        threshold = updated.threshold_for(ComponentType.PADS)
        assert threshold.manual_verification_threshold == 0.8
        assert threshold.pattern_strictness is PatternStrictness.LOOSE
        assert updated.threshold_for(ComponentType.GLASSES) == config.threshold_for(ComponentType.GLASSES)
        assert updated.version == 2


class TestSettings:
    """Test environment-backed settings."""

    def test_from_settings(self):
        settings = Settings(
            sensitivity_mode="conservative",
            analysis_interval=0.5,
            confidence_history_size=4,
            trust_fallback_confidence=True,
        )

        config = OcrConfidenceConfig.from_settings(settings)

        assert config.sensitivity_mode is SensitivityMode.CONSERVATIVE
        assert config.base_confidence_threshold == 0.75
        assert config.analysis_interval == 0.5
        assert config.confidence_history_size == 4
        assert config.trust_fallback_confidence

    def test_interval_defaults_to_preset(self):
        config = OcrConfidenceConfig.from_settings(Settings(sensitivity_mode="aggressive"))

        assert config.analysis_interval == 0.2

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("DSN_OCR_SENSITIVITY_MODE", "aggressive")
        monkeypatch.setenv("DSN_OCR_CONFIDENCE_HISTORY_SIZE", "7")

        settings = Settings()

        assert settings.sensitivity_mode == "aggressive"
        assert settings.confidence_history_size == 7
