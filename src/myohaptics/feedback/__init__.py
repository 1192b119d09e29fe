"""Vibrotactile feedback encoders."""

from .grid_encoder import (
    GridFeedbackEncoder,
    ELBOW_ANGLE_THRESHOLDS,
    ELBOW_BASE_ACTUATORS,
    CENTER_ACTUATOR,
    vertical_offset,
    locate_elbow_bucket,
    shift_actuator,
    wrap_signed_degrees,
    fold_elbow_angle
)
from .directional import (
    DirectionalFeedbackEncoder,
    DirectionalCue,
    actuator_for_angle,
    level_for_distance,
    VALID_LEVELS
)

__all__ = [
    'GridFeedbackEncoder',
    'ELBOW_ANGLE_THRESHOLDS',
    'ELBOW_BASE_ACTUATORS',
    'CENTER_ACTUATOR',
    'vertical_offset',
    'locate_elbow_bucket',
    'shift_actuator',
    'wrap_signed_degrees',
    'fold_elbow_angle',
    'DirectionalFeedbackEncoder',
    'DirectionalCue',
    'actuator_for_angle',
    'level_for_distance',
    'VALID_LEVELS'
]
