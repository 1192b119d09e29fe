#!/usr/bin/env python3
"""
Continuous Tactile Feedback: Arm Posture → 3x3 Actuator Grid.

The grid is worn on the upper back:

    1 (top-left)   2   3 (top-right, shoulder)
    4              5   6 (joint1, shoulder pivot)
    7              8   9 (base, trunk)

Elbow angle selects a pair of neighbouring "base" actuators and cross-fades
between them. Shoulder pitch shifts the whole pattern up or down by up to one
row. Actuator 5 receives an extra overlap term that peaks at a 90° elbow.

Deterministic. No state between ticks.
"""

from typing import List, Optional, Tuple
import math

from myohaptics.config import FeedbackConfig
from myohaptics.core.schemas import ActuatorFrame, FULL_SCALE, GRID_COLS, GRID_ROWS, NUM_ACTUATORS


# Elbow angle buckets [deg] and the base actuator for each bucket edge (1-based)
ELBOW_ANGLE_THRESHOLDS: Tuple[float, ...] = (0.0, 30.0, 60.0, 90.0, 120.0, 150.0, 160.0)
ELBOW_BASE_ACTUATORS: Tuple[int, ...] = (3, 2, 1, 4, 7, 8, 8)

CENTER_ACTUATOR = 5
ELBOW_MIN_ANGLE = ELBOW_ANGLE_THRESHOLDS[0]
ELBOW_MAX_ANGLE = ELBOW_ANGLE_THRESHOLDS[-1]


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def wrap_signed_degrees(angle: float) -> float:
    """Map a 0..360 Euler angle to -180..180."""
    angle = angle % 360.0
    if angle > 180.0:
        angle -= 360.0
    return angle


def fold_elbow_angle(angle: float) -> float:
    """
    Map a 0..360 Euler angle to the elbow's 0..160 range.

    Angles past 180 are mirrored (360 - a) before clamping.
    """
    angle = angle % 360.0
    if angle > 180.0:
        angle = 360.0 - angle
    return _clamp(angle, ELBOW_MIN_ANGLE, ELBOW_MAX_ANGLE)


def vertical_offset(shoulder_pitch: float, pitch_offset: float, pitch_range: float) -> float:
    """
    Shoulder pitch → row shift in [-1, 1].

    pitch == pitch_offset gives 0 (no shift); ±pitch_range gives a full row.
    """
    if pitch_range <= 0.0 or not math.isfinite(shoulder_pitch):
        return 0.0
    return _clamp((shoulder_pitch - pitch_offset) / pitch_range, -1.0, 1.0)


def locate_elbow_bucket(elbow_angle: float) -> Tuple[int, int, float]:
    """
    Find the bracketing threshold interval for an elbow angle.

    Returns:
        (lower_index, upper_index, weight) with weight in [0, 1]
    """
    thresholds = ELBOW_ANGLE_THRESHOLDS
    angle = _clamp(elbow_angle, thresholds[0], thresholds[-1])

    lower = len(thresholds) - 2
    for i in range(len(thresholds) - 1):
        if thresholds[i] <= angle < thresholds[i + 1]:
            lower = i
            break

    upper = min(lower + 1, len(thresholds) - 1)
    span = thresholds[upper] - thresholds[lower]
    weight = (angle - thresholds[lower]) / span if span > 0 else 0.0
    return lower, upper, _clamp(weight, 0.0, 1.0)


def shift_actuator(actuator: int, offset: float) -> int:
    """
    Shift a 1-based actuator vertically.

    Positive offset moves toward the top row. Rows are clamped to the grid.
    """
    row = (actuator - 1) // GRID_COLS
    col = (actuator - 1) % GRID_COLS
    new_row = int(round(row - offset))
    new_row = int(_clamp(new_row, 0, GRID_ROWS - 1))
    return new_row * GRID_COLS + col + 1


class GridFeedbackEncoder:
    """
    Posture-to-grid encoder.

    Example:
        >>> encoder = GridFeedbackEncoder(FeedbackConfig())
        >>> frame = encoder.encode(shoulder_pitch=25.0, elbow_angle=90.0)
        >>> frame.intensity(5)
        178
    """

    def __init__(self, config: Optional[FeedbackConfig] = None):
        self.config = config or FeedbackConfig()

    def encode(self, shoulder_pitch: float, elbow_angle: float) -> ActuatorFrame:
        """
        Compute the 9 actuator intensities.

        Args:
            shoulder_pitch: Joint1 angle [deg]
            elbow_angle: Joint2 angle [deg]

        Returns:
            ActuatorFrame with intensities in 0..255
        """
        return ActuatorFrame(
            intensities=tuple(self.compute_intensities(shoulder_pitch, elbow_angle)),
            scale=FULL_SCALE,
        )

    def compute_intensities(self, shoulder_pitch: float, elbow_angle: float) -> List[int]:
        cfg = self.config
        intensities = [0] * NUM_ACTUATORS

        if not math.isfinite(elbow_angle):
            return intensities

        # === 1. Vertical offset from shoulder pitch ===
        offset = vertical_offset(shoulder_pitch, cfg.pitch_offset, cfg.pitch_range)

        # === 2. Base actuators from elbow angle ===
        lower, upper, weight = locate_elbow_bucket(elbow_angle)

        # === 3. Row shift ===
        main = shift_actuator(ELBOW_BASE_ACTUATORS[lower], offset)
        nxt = shift_actuator(ELBOW_BASE_ACTUATORS[upper], offset)

        # === 4. Cross-fade main → next ===
        intensities[main - 1] = int((1.0 - weight) * cfg.max_intensity)
        if nxt != main:
            intensities[nxt - 1] = int(weight * cfg.max_intensity)

        # === 5. Center overlap (added, saturating) ===
        angle = _clamp(elbow_angle, ELBOW_MIN_ANGLE, ELBOW_MAX_ANGLE)
        overlap = _clamp(1.0 - abs(angle - 90.0) / 90.0, 0.0, 1.0)
        center = shift_actuator(CENTER_ACTUATOR, offset)
        center_intensity = int(overlap * cfg.max_intensity * cfg.center_ratio)
        intensities[center - 1] = min(255, intensities[center - 1] + center_intensity)

        return [int(_clamp(v, 0, 255)) for v in intensities]
