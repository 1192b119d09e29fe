#!/usr/bin/env python3
"""
Directional (knowledge-of-results) feedback: Target Offset → One Actuator.

Used while the arm is frozen at the end of a reach: a single actuator points
in the direction the effector should move, and its coarse intensity grows
with the remaining distance.

Direction sectors (45° each, counter-clockwise from +X / East):
    6 (E), 3 (NE), 2 (N), 1 (NW), 4 (W), 7 (SW), 8 (S), 9 (SE)

Intensity levels: 0 (within the dead zone), then 2, 4, 6, 8, 10.
"""

from dataclasses import dataclass
from typing import Optional
import math

from myohaptics.config import FeedbackConfig
from myohaptics.core.schemas import ActuatorFrame, COARSE_SCALE


# (sector start [deg], actuator) in counter-clockwise order from East
DIRECTION_SECTORS = (
    (22.5, 3),
    (67.5, 2),
    (112.5, 1),
    (157.5, 4),
    (202.5, 7),
    (247.5, 8),
    (292.5, 9),
    (337.5, 6),
)

VALID_LEVELS = (0, 2, 4, 6, 8, 10)


@dataclass(frozen=True)
class DirectionalCue:
    """One coarse command: actuator 0 means all off."""
    actuator: int
    level: int
    distance: float

    @property
    def is_off(self) -> bool:
        return self.actuator == 0 or self.level == 0

    def to_frame(self) -> ActuatorFrame:
        if self.is_off:
            return ActuatorFrame.zero(scale=COARSE_SCALE)
        return ActuatorFrame.single(self.actuator, self.level, scale=COARSE_SCALE)


def actuator_for_angle(angle_deg: float) -> int:
    """Map a planar direction [deg] to the actuator in that 45° sector."""
    angle = angle_deg % 360.0
    if angle >= 337.5 or angle < 22.5:
        return 6
    actuator = 6
    for start, sector_actuator in DIRECTION_SECTORS:
        if angle >= start:
            actuator = sector_actuator
    return actuator


def level_for_distance(distance: float, max_distance: float) -> int:
    """Distance → coarse level 2..10 (10 at or beyond max_distance)."""
    if distance >= max_distance:
        return 10
    level = int(math.ceil(distance / max_distance * 5))
    return min(5, max(1, level)) * 2


class DirectionalFeedbackEncoder:
    """
    Example:
        >>> encoder = DirectionalFeedbackEncoder()
        >>> encoder.encode(dx=0.1, dz=0.0)
        DirectionalCue(actuator=6, level=2, distance=0.1)
    """

    def __init__(self, config: Optional[FeedbackConfig] = None):
        self.config = config or FeedbackConfig()

    def encode(self, dx: float, dz: float) -> DirectionalCue:
        """
        Args:
            dx: Target minus effector along X [m]
            dz: Target minus effector along Z [m]
        """
        if not (math.isfinite(dx) and math.isfinite(dz)):
            return DirectionalCue(actuator=0, level=0, distance=0.0)

        distance = math.hypot(dx, dz)
        if distance < self.config.perfect_threshold:
            return DirectionalCue(actuator=0, level=0, distance=distance)

        angle = math.degrees(math.atan2(dz, dx))
        if angle < 0:
            angle += 360.0

        return DirectionalCue(
            actuator=actuator_for_angle(angle),
            level=level_for_distance(distance, self.config.max_distance),
            distance=distance,
        )

    def encode_positions(self, effector_position, target_position) -> DirectionalCue:
        """Offset between two [x, y, z] positions, projected onto the XZ plane."""
        dx = float(target_position[0]) - float(effector_position[0])
        dz = float(target_position[2]) - float(effector_position[2])
        return self.encode(dx, dz)
