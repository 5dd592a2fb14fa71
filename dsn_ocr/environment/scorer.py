"""Environmental scoring from ambient sensor samples.

Turns light-level and accelerometer samples into a single 0-1 score
for "conditions are favorable for reading printed text". Samples are
pushed by the host's sensor layer; missing sensors degrade to a
neutral score instead of failing.
"""

import math
from collections import deque
from typing import Optional

import structlog

from dsn_ocr.core.models import EnvironmentalConditions
from dsn_ocr.core.utils import clamp_unit, is_finite_number

logger = structlog.get_logger(__name__)

DEFAULT_LIGHT_WINDOW = 10       # Samples in the light rolling average
DEFAULT_MOTION_WINDOW = 0.5     # Seconds of accelerometer history
DEFAULT_NEUTRAL_SCORE = 1.0

LIGHT_WEIGHT = 0.7
STABILITY_WEIGHT = 0.3

# (upper bound in lux, score, description); optimal band 100-1000 lux
LIGHT_BANDS: list[tuple[float, float, str]] = [
    (10, 0.3, "Very Dark"),
    (50, 0.5, "Dark"),
    (100, 0.7, "Low Light"),
]
OPTIMAL_LIGHT_MAX = 1000
BRIGHT_LIGHT_BANDS: list[tuple[float, float, str]] = [
    (5000, 0.9, "Bright"),
    (10000, 0.8, "Very Bright"),
]
GLARE_SCORE = 0.7

# (upper bound on mean acceleration delta, score)
STABILITY_BANDS: list[tuple[float, float]] = [
    (0.5, 1.0),   # Very stable
    (1.0, 0.9),   # Stable
    (2.0, 0.8),   # Slight movement
    (3.0, 0.6),   # Moderate movement
    (5.0, 0.4),   # High movement
]
UNSTABLE_SCORE = 0.2
STABLE_CUTOFF = 0.8


def score_light(lux: float) -> float:
    """Score a light level; too dark and too bright both score lower."""
    for upper, score, _ in LIGHT_BANDS:
        if lux < upper:
            return score
    if lux <= OPTIMAL_LIGHT_MAX:
        return 1.0
    for upper, score, _ in BRIGHT_LIGHT_BANDS:
        if lux < upper:
            return score
    return GLARE_SCORE


def describe_light(lux: Optional[float]) -> str:
    if lux is None:
        return "Unknown"
    for upper, _, label in LIGHT_BANDS:
        if lux < upper:
            return label
    if lux <= OPTIMAL_LIGHT_MAX:
        return "Good Light"
    for upper, _, label in BRIGHT_LIGHT_BANDS:
        if lux < upper:
            return label
    return "Extreme Brightness"


def score_stability(jitter: float) -> float:
    """Bucket mean acceleration change into a stability score."""
    for upper, score in STABILITY_BANDS:
        if jitter < upper:
            return score
    return UNSTABLE_SCORE


def describe_stability(score: float) -> str:
    if score >= 0.9:
        return "Very Stable"
    if score >= 0.8:
        return "Stable"
    if score >= 0.6:
        return "Slight Movement"
    if score >= 0.4:
        return "Moderate Movement"
    return "Unstable"


class EnvironmentalScorer:
    """Rolling light/motion state and the combined environmental score.

    Samples arrive push-style from the sensor layer via
    `add_light_sample` and `add_motion_sample`; `score()` may be read at
    any time.
    """

    def __init__(
        self,
        light_window: int = DEFAULT_LIGHT_WINDOW,
        motion_window: float = DEFAULT_MOTION_WINDOW,
        neutral_score: float = DEFAULT_NEUTRAL_SCORE,
        has_light_sensor: bool = True,
        has_accelerometer: bool = True,
    ) -> None:
        self.motion_window = motion_window
        self.neutral_score = clamp_unit(neutral_score)
        self.has_light_sensor = has_light_sensor
        self.has_accelerometer = has_accelerometer

        self._light_readings: deque[float] = deque(maxlen=max(1, light_window))
        self._motion_readings: deque[tuple[float, float, float, float]] = deque()

        logger.debug(
            "environmental_scorer_initialized",
            has_light_sensor=has_light_sensor,
            has_accelerometer=has_accelerometer,
        )

    # -------------------------------------------------------------------------
    # Sensor input
    # -------------------------------------------------------------------------

    def add_light_sample(self, lux: float) -> None:
        """Record a light-level sample in lux."""
        if not is_finite_number(lux) or lux < 0:
            logger.debug("invalid_light_sample", lux=repr(lux))
            return
        self._light_readings.append(float(lux))

    def add_motion_sample(self, x: float, y: float, z: float, timestamp: float) -> None:
        """Record a 3-axis acceleration sample.

        Samples older than the motion window (relative to this sample)
        are discarded.
        """
        if not all(is_finite_number(v) for v in (x, y, z, timestamp)):
            logger.debug("invalid_motion_sample")
            return

        self._motion_readings.append((float(x), float(y), float(z), float(timestamp)))

        cutoff = timestamp - self.motion_window
        while self._motion_readings and self._motion_readings[0][3] < cutoff:
            self._motion_readings.popleft()

    # -------------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------------

    def light_level(self) -> Optional[float]:
        """Rolling average light level, or None without data."""
        if not self.has_light_sensor or not self._light_readings:
            return None
        return sum(self._light_readings) / len(self._light_readings)

    def motion_jitter(self) -> Optional[float]:
        """Mean magnitude of consecutive acceleration deltas in the window."""
        if not self.has_accelerometer or len(self._motion_readings) < 2:
            return None

        readings = list(self._motion_readings)
        total = 0.0
        for prev, curr in zip(readings, readings[1:]):
            dx = curr[0] - prev[0]
            dy = curr[1] - prev[1]
            dz = curr[2] - prev[2]
            total += math.sqrt(dx * dx + dy * dy + dz * dz)
        return total / (len(readings) - 1)

    def light_score(self) -> float:
        level = self.light_level()
        return self.neutral_score if level is None else score_light(level)

    def stability_score(self) -> float:
        jitter = self.motion_jitter()
        return self.neutral_score if jitter is None else score_stability(jitter)

    def is_stable(self) -> bool:
        return self.stability_score() >= STABLE_CUTOFF

    def score(self) -> float:
        """Combined score: 70% light, 30% stability, clamped to [0, 1]."""
        if self.light_level() is None and self.motion_jitter() is None:
            return self.neutral_score
        return clamp_unit(LIGHT_WEIGHT * self.light_score() + STABILITY_WEIGHT * self.stability_score())

    def conditions(self) -> EnvironmentalConditions:
        """Detailed snapshot for diagnostics/UI."""
        stability = self.stability_score()
        level = self.light_level()
        return EnvironmentalConditions(
            light_level=level,
            light_score=self.light_score(),
            motion_jitter=self.motion_jitter(),
            stability_score=stability,
            overall_score=self.score(),
            light_condition=describe_light(level),
            stability_condition=describe_stability(stability),
        )

    def reset(self) -> None:
        """Drop all samples."""
        self._light_readings.clear()
        self._motion_readings.clear()
