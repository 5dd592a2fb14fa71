"""Tests for outcome decisions and the scan state machine."""

import math

import pytest

from dsn_ocr.core.models import ComponentThreshold, ConfidenceFactors, EnhancedResult
from dsn_ocr.fusion import (
    DecisionState,
    DispositionAction,
    FrameOutcome,
    InvalidStateTransitionError,
    ScanStateMachine,
    decide,
)


def make_result(composite: float, flagged: bool = False, **threshold) -> EnhancedResult:
    return EnhancedResult(
        text="G0G46K123456789",
        composite_confidence=composite,
        requires_manual_verification=flagged,
        factors=ConfidenceFactors(
            native_confidence=composite,
            pattern_score=1.0,
            stability_score=1.0,
            environmental_score=1.0,
        ),
        threshold_used=ComponentThreshold(**threshold),
    )


class TestDecide:
    """Test mapping scores onto outcome states."""

    def test_no_pattern_match_requires_manual_entry(self):
        decision = decide(make_result(0.99), pattern_valid=False)

        assert decision.state is DecisionState.MANUAL_ENTRY_REQUIRED
        assert decision.reason == "no_dsn_pattern"

    def test_below_base_threshold(self):
        decision = decide(make_result(0.65), pattern_valid=True)

        assert decision.state is DecisionState.MANUAL_ENTRY_REQUIRED
        assert decision.reason == "below_base_threshold"

    def test_between_thresholds(self):
        decision = decide(make_result(0.80), pattern_valid=True)

        assert decision.state is DecisionState.PENDING_CONFIRMATION

    def test_auto_accept(self):
        decision = decide(make_result(0.95), pattern_valid=True)

        assert decision.state is DecisionState.AUTO_ACCEPTED
        assert decision.is_valid_dsn

    def test_flag_blocks_auto_accept(self):
        decision = decide(make_result(0.95, flagged=True), pattern_valid=True)

        assert decision.state is DecisionState.PENDING_CONFIRMATION
        assert decision.reason == "verification_forced"

    def test_boundaries(self):
        assert decide(make_result(0.90), True).state is DecisionState.AUTO_ACCEPTED
        assert decide(make_result(math.nextafter(0.90, 0)), True).state is DecisionState.PENDING_CONFIRMATION
        assert decide(make_result(0.70), True).state is DecisionState.PENDING_CONFIRMATION

    def test_uses_result_thresholds(self):
        result = make_result(0.80, base_threshold=0.85, manual_verification_threshold=0.95)

        assert decide(result, True).state is DecisionState.MANUAL_ENTRY_REQUIRED


class TestFrameOutcome:
    """Test the per-frame result container."""

    def test_best_is_first(self):
        first = decide(make_result(0.95), True)
        second = decide(make_result(0.80), True)
        outcome = FrameOutcome(timestamp=0.0, decisions=[first, second], config_version=1)

        assert outcome.best == first

    def test_empty(self):
        assert FrameOutcome(timestamp=0.0, config_version=1).best is None


class TestScanStateMachine:
    """Test scan session state transitions."""

    @pytest.fixture
    def machine(self) -> ScanStateMachine:
        return ScanStateMachine()

    def test_starts_scanning(self, machine):
        assert machine.state is DecisionState.SCANNING
        assert not machine.is_resolved

    def test_resolve_passes_through_candidate_detected(self, machine):
        decision = decide(make_result(0.95), True)

        assert machine.resolve(decision) is DecisionState.AUTO_ACCEPTED
        assert machine.decision == decision
        assert machine.is_resolved

    def test_candidate_lost(self, machine):
        machine.candidate_detected()
        machine.candidate_lost()

        assert machine.state is DecisionState.SCANNING

    def test_dispose_returns_to_scanning(self, machine):
        decision = decide(make_result(0.80), True)
        machine.resolve(decision)

        disposed = machine.dispose(DispositionAction.EDIT)

        assert disposed == decision
        assert machine.state is DecisionState.SCANNING
        assert machine.decision is None

    def test_pending_can_escalate_to_manual_entry(self, machine):
        machine.resolve(decide(make_result(0.80), True))
        machine.require_manual_entry()

        assert machine.state is DecisionState.MANUAL_ENTRY_REQUIRED
        machine.dispose("accept")
        assert machine.state is DecisionState.SCANNING

    def test_dispose_while_scanning_is_invalid(self, machine):
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            machine.dispose()

        assert exc_info.value.code == "INVALID_STATE_TRANSITION"

    def test_cannot_resolve_twice(self, machine):
        machine.resolve(decide(make_result(0.95), True))

        with pytest.raises(InvalidStateTransitionError):
            machine.resolve(decide(make_result(0.95), True))

    def test_reset(self, machine):
        machine.resolve(decide(make_result(0.95), True))
        machine.reset()

        assert machine.state is DecisionState.SCANNING
        assert machine.decision is None
