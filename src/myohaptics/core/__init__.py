"""Core data schemas for the MYOHAPTICS controller."""

from .schemas import (
    JointState,
    ArmSnapshot,
    Pose,
    LinkagePose,
    ActuatorFrame,
    ToMbedPacket,
    TickResult,
    GRID_ROWS,
    GRID_COLS,
    NUM_ACTUATORS,
    NUM_VIBRATION_SLOTS,
    FULL_SCALE,
    COARSE_SCALE
)

__all__ = [
    'JointState',
    'ArmSnapshot',
    'Pose',
    'LinkagePose',
    'ActuatorFrame',
    'ToMbedPacket',
    'TickResult',
    'GRID_ROWS',
    'GRID_COLS',
    'NUM_ACTUATORS',
    'NUM_VIBRATION_SLOTS',
    'FULL_SCALE',
    'COARSE_SCALE'
]
