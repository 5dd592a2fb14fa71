"""End-to-end guarantees of the scoring pipeline."""

import math

import pytest

from dsn_ocr.core.models import ComponentType, ConfidenceTier, RecognizedCandidate
from dsn_ocr.environment import EnvironmentalScorer
from dsn_ocr.fusion import ConfidenceFusionEngine, DecisionState, decide
from dsn_ocr.pipeline import FrameAnalyzer

CONTROLLER_DSN = "G0G46K123456789"

NATIVE_ONLY = {
    "native_weight": 1.0,
    "pattern_weight": 0.0,
    "stability_weight": 0.0,
    "environmental_weight": 0.0,
}


class TestScoringProperties:
    """Test properties that hold for any input."""

    def test_deterministic(self, config, make_box):
        first = ConfidenceFusionEngine(config).score(0.87, CONTROLLER_DSN, make_box(), ComponentType.CONTROLLER, 0.5)
        second = ConfidenceFusionEngine(config).score(0.87, CONTROLLER_DSN, make_box(), ComponentType.CONTROLLER, 0.5)

        assert first == second

    @pytest.mark.parametrize("component_type", [None, ComponentType.CONTROLLER, ComponentType.BATTERY_01])
    def test_monotonic_in_native_confidence(self, config, component_type):
        engine = ConfidenceFusionEngine(config)
        natives = [0.0, 0.1, 0.35, 0.5, 0.72, 0.9, 0.99, 1.0]

        composites = [engine.score(n, CONTROLLER_DSN, None, component_type).composite_confidence for n in natives]

        assert composites == sorted(composites)

    @pytest.mark.parametrize("native", [0.0, 0.5, 1.0])
    @pytest.mark.parametrize("mode", ["conservative", "balanced", "aggressive"])
    def test_composite_in_unit_range(self, config, native, mode):
        engine = ConfidenceFusionEngine(config.with_overrides(sensitivity_mode=mode))

        composite = engine.score(native, CONTROLLER_DSN, None, ComponentType.CONTROLLER).composite_confidence

        assert 0.0 <= composite <= 1.0

    def test_threshold_boundary(self, config):
        engine = ConfidenceFusionEngine(config.with_overrides(**NATIVE_ONLY))

        at_threshold = engine.score(0.90, CONTROLLER_DSN, None, ComponentType.CONTROLLER)
        just_below = engine.score(math.nextafter(0.90, 0), CONTROLLER_DSN, None, ComponentType.CONTROLLER)

        assert not at_threshold.requires_manual_verification
        assert decide(at_threshold, True).state is DecisionState.AUTO_ACCEPTED
        assert just_below.requires_manual_verification
        assert decide(just_below, True).state is DecisionState.PENDING_CONFIRMATION

    @pytest.mark.parametrize("text", [
        " gog46k 123456789 ",
        "bat_0O1234#",
        "ctrl   123456",
        "xk#9",
        "a/b.c_d-e",
        "",
    ])
    def test_normalization_idempotent(self, classifier, text):
        once = classifier.normalize(text)

        assert classifier.normalize(once) == once

    def test_no_sensors_is_neutral(self, config):
        engine = ConfidenceFusionEngine(config, environment=EnvironmentalScorer())

        assert engine.environmental_score() == 1.0

    def test_outlier_does_not_outrank_consensus(self, stabilizer, history):
        noisy_reads = ["G0G46K123456789", "GOG46K123456789", "G0G46K12345678O", "G0G46K123456780"]
        for i, text in enumerate(noisy_reads):
            stabilizer.stabilize([RecognizedCandidate(text=text, confidence=0.82)], history, i * 0.3)

        results = stabilizer.stabilize(
            [
                RecognizedCandidate(text="XYZ-RANDOM", confidence=0.99),
                RecognizedCandidate(text="GOG46K123456789", confidence=0.82),
            ],
            history,
            1.2,
        )

        assert results[0].text == CONTROLLER_DSN
        assert results[0].group_size == 5
        assert results[1].text == "XYZ-RANDOM"
        assert results[1].group_size == 1


class TestScenarios:
    """Test reference scan scenarios."""

    def test_controller_auto_accepted(self, config, classifier):
        analyzer = FrameAnalyzer(config, classifier=classifier)

        best = analyzer.process_frame([(CONTROLLER_DSN, 0.95)], 0.0).best

        assert classifier.classify(CONTROLLER_DSN).tier is ConfidenceTier.HIGH
        assert best.result.component_type is ComponentType.CONTROLLER
        assert best.result.composite_confidence == pytest.approx(0.93)
        assert best.result.composite_confidence >= best.result.threshold_used.manual_verification_threshold
        assert best.state is DecisionState.AUTO_ACCEPTED

    def test_battery_pending_confirmation(self, config):
        analyzer = FrameAnalyzer(config)

        best = analyzer.process_frame([("BAT-001234", 0.75)], 0.0).best

        assert best.result.component_type is ComponentType.BATTERY_01
        assert best.result.composite_confidence == pytest.approx(0.83)
        assert 0.7 <= best.result.composite_confidence < 0.9
        assert best.state is DecisionState.PENDING_CONFIRMATION

    def test_short_manual_entry_rejected(self, classifier):
        result = classifier.validate_manual_entry("xk#9")

        assert not result.is_valid
        assert "at least" in result.error

    def test_missing_sensors(self, config):
        scorer = EnvironmentalScorer()
        engine = ConfidenceFusionEngine(config, environment=scorer)

        result = engine.score(0.95, CONTROLLER_DSN, None, ComponentType.CONTROLLER)

        assert scorer.score() == 1.0
        assert result.factors.environmental_score == 1.0
        assert result.composite_confidence == pytest.approx(0.93)
