"""Joint dynamics for the two-joint arm."""

from .joint_model import (
    ArmDynamics,
    JointDynamics,
    JointPhase,
    ControlMode,
    IntegrationPolicy,
    DirectSpeedPolicy,
    DampedPolicy,
    create_policy,
    calculate_torque,
    floor_dt,
    DT_EPSILON
)

__all__ = [
    'ArmDynamics',
    'JointDynamics',
    'JointPhase',
    'ControlMode',
    'IntegrationPolicy',
    'DirectSpeedPolicy',
    'DampedPolicy',
    'create_policy',
    'calculate_torque',
    'floor_dt',
    'DT_EPSILON'
]
