"""Pytest configuration and shared fixtures."""

import pytest

from dsn_ocr.core.config import OcrConfidenceConfig
from dsn_ocr.core.models import BoundingBox
from dsn_ocr.fusion.engine import ConfidenceFusionEngine
from dsn_ocr.patterns.classifier import DsnClassifier
from dsn_ocr.stabilizer.history import FrameHistory
from dsn_ocr.stabilizer.stabilizer import MultiFrameStabilizer


@pytest.fixture
def config() -> OcrConfidenceConfig:
    """Balanced default configuration snapshot."""
    return OcrConfidenceConfig()


@pytest.fixture
def classifier() -> DsnClassifier:
    return DsnClassifier()


@pytest.fixture
def engine(config: OcrConfidenceConfig, classifier: DsnClassifier) -> ConfidenceFusionEngine:
    """Fusion engine with no sensors attached."""
    return ConfidenceFusionEngine(config, classifier=classifier)


@pytest.fixture
def stabilizer(config: OcrConfidenceConfig, classifier: DsnClassifier) -> MultiFrameStabilizer:
    return MultiFrameStabilizer(config, classifier)


@pytest.fixture
def history() -> FrameHistory:
    return FrameHistory()


def _make_box(x: float = 100.0, y: float = 200.0, width: float = 120.0, height: float = 30.0) -> BoundingBox:
    """Box whose top-left corner is at (x, y)."""
    return BoundingBox(left=x, top=y, right=x + width, bottom=y + height)


@pytest.fixture
def make_box():
    """Factory for bounding boxes positioned by their top-left corner."""
    return _make_box
