"""DSN OCR confidence engine.

Turns per-frame OCR output into DSN decisions: classify, stabilize
across frames, fuse signals into a composite confidence, then decide
between auto-accept, confirmation and manual entry.
"""

from dsn_ocr.core.config import OcrConfidenceConfig, Settings, get_settings
from dsn_ocr.core.models import BoundingBox, ComponentType, EnhancedResult, RecognizedCandidate
from dsn_ocr.environment.scorer import EnvironmentalScorer
from dsn_ocr.fusion.decision import DecisionState, FrameOutcome, ScanDecision, ScanStateMachine, decide
from dsn_ocr.fusion.engine import ConfidenceFusionEngine
from dsn_ocr.patterns.classifier import DsnClassifier, classify, normalize, validate_manual_entry
from dsn_ocr.pipeline import FrameAnalyzer
from dsn_ocr.stabilizer import FrameHistory, MultiFrameStabilizer

__version__ = "0.1.0"

__all__ = [
    "OcrConfidenceConfig",
    "Settings",
    "get_settings",
    "BoundingBox",
    "ComponentType",
    "EnhancedResult",
    "RecognizedCandidate",
    "EnvironmentalScorer",
    "DecisionState",
    "FrameOutcome",
    "ScanDecision",
    "ScanStateMachine",
    "decide",
    "ConfidenceFusionEngine",
    "DsnClassifier",
    "classify",
    "normalize",
    "validate_manual_entry",
    "FrameAnalyzer",
    "FrameHistory",
    "MultiFrameStabilizer",
]
