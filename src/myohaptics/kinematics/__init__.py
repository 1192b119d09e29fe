"""Forward kinematics for the two-joint linkage."""

from .forward import (
    ForwardKinematics,
    KinematicState,
    solve,
    end_effector_position,
    planar_hand_position,
    quat_from_axis_angle,
    quat_multiply,
    quat_rotate,
    quat_normalize,
    UP,
    IDENTITY_QUAT
)

__all__ = [
    'ForwardKinematics',
    'KinematicState',
    'solve',
    'end_effector_position',
    'planar_hand_position',
    'quat_from_axis_angle',
    'quat_multiply',
    'quat_rotate',
    'quat_normalize',
    'UP',
    'IDENTITY_QUAT'
]
