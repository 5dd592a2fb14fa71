"""Multi-frame stabilization."""

from .history import FrameHistory
from .stabilizer import MultiFrameStabilizer

__all__ = ["FrameHistory", "MultiFrameStabilizer"]
