"""Confidence fusion and decision modules."""

from .decision import (
    DecisionState,
    DispositionAction,
    FrameOutcome,
    InvalidStateTransitionError,
    ScanDecision,
    ScanStateMachine,
    decide,
)
from .engine import ConfidenceFusionEngine, fallback_confidence
from .history import BoxHistory, ConfidenceHistory

__all__ = [
    "DecisionState",
    "DispositionAction",
    "FrameOutcome",
    "InvalidStateTransitionError",
    "ScanDecision",
    "ScanStateMachine",
    "decide",
    "ConfidenceFusionEngine",
    "fallback_confidence",
    "BoxHistory",
    "ConfidenceHistory",
]
