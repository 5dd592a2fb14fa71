"""Ambient sensor scoring."""

from .scorer import EnvironmentalScorer, score_light, score_stability

__all__ = ["EnvironmentalScorer", "score_light", "score_stability"]
