#!/usr/bin/env python3
"""
Forward Kinematics for the two-joint linkage.

Every pose is computed from the base reference on each call. There is no
transform hierarchy: joint2 does not inherit anything from joint1 except
through the explicit composition below.

    joint1_pos = base_pos + (base_rot * up) * L0
    joint1_rot = base_rot ∘ R(angle1, axis1)
    joint2_pos = joint1_pos + (joint1_rot * up) * L1
    joint2_rot = joint1_rot ∘ R(angle2, axis2)
    end_pos    = joint2_pos + (joint2_rot * up) * L2

At angle1 = angle2 = 0 the linkage is a straight line along the base's up axis.

Quaternions are [w, x, y, z] numpy arrays (Hamilton convention).
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple
import math

import numpy as np

from myohaptics.config import ControllerConfig
from myohaptics.core.schemas import LinkagePose, Pose


UP = np.array([0.0, 1.0, 0.0])
IDENTITY_QUAT = np.array([1.0, 0.0, 0.0, 0.0])


def quat_from_axis_angle(angle_deg: float, axis: Sequence[float]) -> np.ndarray:
    """
    Rotation of `angle_deg` degrees about `axis` (normalized internally).

    A zero axis yields the identity rotation.
    """
    axis = np.asarray(axis, dtype=np.float64)
    norm = np.linalg.norm(axis)
    if norm < 1e-12 or not math.isfinite(angle_deg):
        return IDENTITY_QUAT.copy()
    axis = axis / norm
    half = math.radians(angle_deg) * 0.5
    return np.concatenate(([math.cos(half)], axis * math.sin(half)))


def quat_multiply(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Hamilton product a ∘ b (apply b first, then a)."""
    w1, x1, y1, z1 = a
    w2, x2, y2, z2 = b
    return np.array([
        w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
        w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
        w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
        w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
    ])


def quat_rotate(q: np.ndarray, v: Sequence[float]) -> np.ndarray:
    """Rotate vector v by unit quaternion q."""
    q = np.asarray(q, dtype=np.float64)
    v = np.asarray(v, dtype=np.float64)
    u = q[1:]
    w = q[0]
    t = 2.0 * np.cross(u, v)
    return v + w * t + np.cross(u, t)


def quat_normalize(q: Sequence[float]) -> np.ndarray:
    q = np.asarray(q, dtype=np.float64)
    norm = np.linalg.norm(q)
    if norm < 1e-12:
        return IDENTITY_QUAT.copy()
    return q / norm


@dataclass(frozen=True)
class KinematicState:
    """
    Explicit input to the solver.

    `base_position` / `base_rotation` of None mean the base reference is
    unavailable; solve() then returns None.
    """
    joint1_angle: float
    joint2_angle: float
    base_position: Optional[np.ndarray] = field(default_factory=lambda: np.zeros(3))
    base_rotation: Optional[np.ndarray] = field(default_factory=lambda: IDENTITY_QUAT.copy())
    axis1: Tuple[float, float, float] = (0.0, 0.0, 1.0)
    axis2: Tuple[float, float, float] = (1.0, 0.0, 0.0)
    base_to_joint1: float = 0.2
    joint1_to_joint2: float = 0.4
    link2: float = 0.4

    @property
    def total_reach(self) -> float:
        return self.base_to_joint1 + self.joint1_to_joint2 + self.link2

    @staticmethod
    def from_config(
        config: ControllerConfig,
        joint1_angle: float,
        joint2_angle: float,
        base_position: Optional[Sequence[float]] = (0.0, 0.0, 0.0),
        base_rotation: Optional[Sequence[float]] = (1.0, 0.0, 0.0, 0.0)
    ) -> 'KinematicState':
        return KinematicState(
            joint1_angle=joint1_angle,
            joint2_angle=joint2_angle,
            base_position=None if base_position is None else np.asarray(base_position, dtype=np.float64),
            base_rotation=None if base_rotation is None else np.asarray(base_rotation, dtype=np.float64),
            axis1=tuple(config.joint1.axis),
            axis2=tuple(config.joint2.axis),
            base_to_joint1=config.linkage.base_to_joint1,
            joint1_to_joint2=config.linkage.joint1_to_joint2,
            link2=config.linkage.link2,
        )


def solve(state: KinematicState) -> Optional[LinkagePose]:
    """
    Compute joint, link and end-effector poses.

    Args:
        state: Joint angles, base reference and link geometry

    Returns:
        LinkagePose, or None if the base reference is unavailable or
        contains non-finite values
    """
    if state.base_position is None or state.base_rotation is None:
        return None

    base_pos = np.asarray(state.base_position, dtype=np.float64)
    base_rot = np.asarray(state.base_rotation, dtype=np.float64)
    if base_pos.shape != (3,) or base_rot.shape != (4,):
        return None
    if not (np.all(np.isfinite(base_pos)) and np.all(np.isfinite(base_rot))):
        return None
    base_rot = quat_normalize(base_rot)

    # Joint1
    up_direction = quat_rotate(base_rot, UP)
    joint1_pos = base_pos + up_direction * state.base_to_joint1
    joint1_rot = quat_multiply(base_rot, quat_from_axis_angle(state.joint1_angle, state.axis1))

    # Link1 + Joint2
    link1_dir = quat_rotate(joint1_rot, UP)
    link1_pos = joint1_pos + link1_dir * (state.joint1_to_joint2 * 0.5)
    joint2_pos = joint1_pos + link1_dir * state.joint1_to_joint2
    joint2_rot = quat_multiply(joint1_rot, quat_from_axis_angle(state.joint2_angle, state.axis2))

    # Link2 + End effector
    link2_dir = quat_rotate(joint2_rot, UP)
    link2_pos = joint2_pos + link2_dir * (state.link2 * 0.5)
    end_pos = joint2_pos + link2_dir * state.link2

    return LinkagePose(
        joint1=Pose(position=joint1_pos, rotation=joint1_rot),
        link1=Pose(position=link1_pos, rotation=joint1_rot),
        joint2=Pose(position=joint2_pos, rotation=joint2_rot),
        link2=Pose(position=link2_pos, rotation=joint2_rot),
        end_effector=Pose(position=end_pos, rotation=joint2_rot),
    )


def end_effector_position(state: KinematicState) -> Optional[np.ndarray]:
    """Convenience wrapper: end-effector position only (None if unavailable)."""
    pose = solve(state)
    return None if pose is None else pose.end_effector.position


def planar_hand_position(
    shoulder_pitch: float,
    elbow_angle: float,
    upper_arm_length: float = 0.3,
    forearm_length: float = 0.3
) -> np.ndarray:
    """
    Sagittal-plane 2-DOF hand position relative to the shoulder.

    Returns:
        [0, y, z] where y is height and z is forward reach
    """
    pitch = math.radians(shoulder_pitch)
    total = math.radians(shoulder_pitch + elbow_angle)

    elbow_y = upper_arm_length * math.sin(pitch)
    elbow_z = upper_arm_length * math.cos(pitch)

    return np.array([
        0.0,
        elbow_y + forearm_length * math.sin(total),
        elbow_z + forearm_length * math.cos(total),
    ])


class ForwardKinematics:
    """
    Solver bound to a fixed linkage configuration and base reference.

    Example:
        >>> fk = ForwardKinematics(config)
        >>> pose = fk.solve_angles(0.0, 0.0)
        >>> pose.end_effector.position
        array([0. , 1. , 0. ])
    """

    def __init__(
        self,
        config: Optional[ControllerConfig] = None,
        base_position: Optional[Sequence[float]] = (0.0, 0.0, 0.0),
        base_rotation: Optional[Sequence[float]] = (1.0, 0.0, 0.0, 0.0)
    ):
        self.config = config or ControllerConfig()
        self.base_position = base_position
        self.base_rotation = base_rotation

    def set_base(self, position: Optional[Sequence[float]],
                 rotation: Optional[Sequence[float]]):
        """Update the base reference (None marks it unavailable)."""
        self.base_position = position
        self.base_rotation = rotation

    def state_for(self, joint1_angle: float, joint2_angle: float) -> KinematicState:
        return KinematicState.from_config(
            self.config, joint1_angle, joint2_angle,
            base_position=self.base_position,
            base_rotation=self.base_rotation,
        )

    def solve_angles(self, joint1_angle: float, joint2_angle: float) -> Optional[LinkagePose]:
        return solve(self.state_for(joint1_angle, joint2_angle))

    def replay(self, angles: Sequence[Tuple[float, float]]) -> list:
        """Solve a logged sequence of (joint1, joint2) angles."""
        return [self.solve_angles(a1, a2) for a1, a2 in angles]
