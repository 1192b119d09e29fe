#!/usr/bin/env python3
"""
Joint Dynamics: EMG Activation → Torque → Angular State.

Each joint is driven by an antagonist channel pair (bend / extend). The ratio
difference becomes a torque-equivalent value, which an integration policy turns
into angle, speed, acceleration and jerk.

Integration policies (selected by DynamicsConfig.mode):
    DirectSpeedPolicy: torque-equivalent is the angular speed [deg/s], no inertia
    DampedPolicy:      I*alpha = tau - b*omega, with snap-to-zero at low speed

Joint lifecycle:
    ACTIVE  ─freeze()→  FROZEN  ─unfreeze()→  ACTIVE

While FROZEN the joint reports the angle captured at freeze time and ignores
new torque. Speed/acceleration/jerk are held (not integrated) so control
resumes from the same state after unfreeze.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional, Sequence
import logging
import math

from myohaptics.config import (
    ConfigError, DynamicsConfig, IntegrationMode, JointConfig, NUM_CHANNELS, validate_joint
)
from myohaptics.core.schemas import ArmSnapshot, JointState

logger = logging.getLogger(__name__)


# Smallest time step used for derivative bookkeeping [s]
DT_EPSILON = 1e-6


class JointPhase(str, Enum):
    ACTIVE = "active"
    FROZEN = "frozen"


class ControlMode(str, Enum):
    EMG = "emg"          # Angles integrated from EMG-derived torque
    MANUAL = "manual"    # Angles set directly via set_manual_angles()


def calculate_torque(bend_ratio: float, extend_ratio: float, config: DynamicsConfig) -> float:
    """
    Convert an antagonist ratio pair to a torque-equivalent value.

    Args:
        bend_ratio: Bend channel activation [0-100 %]
        extend_ratio: Extend channel activation [0-100 %]
        config: Thresholds and torque scale

    Returns:
        Torque (positive = bend). Zero when the difference is below the
        dominance threshold (co-contraction).

    Example:
        bend=80, extend=10, max_torque=90 → (70/100) * 90 = 63.0
    """
    if not math.isfinite(bend_ratio):
        bend_ratio = 0.0
    if not math.isfinite(extend_ratio):
        extend_ratio = 0.0

    if bend_ratio < config.activation_threshold:
        bend_ratio = 0.0
    if extend_ratio < config.activation_threshold:
        extend_ratio = 0.0

    difference = bend_ratio - extend_ratio

    if abs(difference) < config.dominance_threshold:
        return 0.0

    return (difference / 100.0) * config.max_torque * config.speed_multiplier


def floor_dt(dt: float) -> float:
    """Floor a time step to DT_EPSILON (non-finite → DT_EPSILON)."""
    if not math.isfinite(dt) or dt < DT_EPSILON:
        return DT_EPSILON
    return dt


class IntegrationPolicy(ABC):
    """
    One integration step: (torque, previous state, dt) → new state.

    The returned angle is unclamped; joint limits are applied by JointDynamics.
    """

    @abstractmethod
    def step(self, torque: float, previous: JointState, dt: float) -> JointState:
        raise NotImplementedError("Subclasses must implement step()")


class DirectSpeedPolicy(IntegrationPolicy):
    """Torque-equivalent is used directly as angular speed."""

    def step(self, torque: float, previous: JointState, dt: float) -> JointState:
        dt = floor_dt(dt)
        speed = torque
        acceleration = (speed - previous.speed) / dt
        jerk = (acceleration - previous.acceleration) / dt
        return JointState(
            angle=previous.angle + speed * dt,
            speed=speed,
            acceleration=acceleration,
            jerk=jerk,
        )


class DampedPolicy(IntegrationPolicy):
    """
    Second-order model with viscous damping.

        alpha = (tau - b * omega_prev) / I,   I = m * L^2
        omega = omega_prev + alpha * dt
        omega = 0  if |omega| < velocity_threshold and |tau| < torque_epsilon

    The reported acceleration is the model acceleration alpha.
    """

    def __init__(
        self,
        inertia: float,
        damping_coefficient: float,
        velocity_threshold: float,
        torque_epsilon: float
    ):
        self.inertia = inertia
        self.damping_coefficient = damping_coefficient
        self.velocity_threshold = velocity_threshold
        self.torque_epsilon = torque_epsilon

    @classmethod
    def from_config(cls, config: DynamicsConfig) -> 'DampedPolicy':
        return cls(
            inertia=config.link_mass * config.inertia_length ** 2,
            damping_coefficient=config.damping_coefficient,
            velocity_threshold=config.velocity_threshold,
            torque_epsilon=config.torque_epsilon,
        )

    def step(self, torque: float, previous: JointState, dt: float) -> JointState:
        dt = floor_dt(dt)

        if self.inertia > 0.0:
            acceleration = (torque - self.damping_coefficient * previous.speed) / self.inertia
        else:
            acceleration = 0.0

        jerk = (acceleration - previous.acceleration) / dt
        speed = previous.speed + acceleration * dt

        if abs(speed) < self.velocity_threshold and abs(torque) < self.torque_epsilon:
            speed = 0.0

        return JointState(
            angle=previous.angle + speed * dt,
            speed=speed,
            acceleration=acceleration,
            jerk=jerk,
        )


def create_policy(config: DynamicsConfig) -> IntegrationPolicy:
    """Factory: integration policy for the configured mode."""
    mode = IntegrationMode(config.mode)
    if mode == IntegrationMode.DIRECT:
        return DirectSpeedPolicy()
    return DampedPolicy.from_config(config)


def _is_finite_state(state: JointState) -> bool:
    return all(math.isfinite(v) for v in (state.angle, state.speed,
                                          state.acceleration, state.jerk))


class JointDynamics:
    """
    Dynamics of a single joint.

    A joint whose configuration is invalid (e.g. channel index outside 1..4)
    is disabled at construction: it logs the error once and holds its angle.
    """

    def __init__(
        self,
        name: str,
        joint: JointConfig,
        dynamics: Optional[DynamicsConfig] = None,
        policy: Optional[IntegrationPolicy] = None,
        num_channels: int = NUM_CHANNELS
    ):
        self.name = name
        self.joint = joint
        self.dynamics = dynamics or DynamicsConfig()
        self.policy = policy or create_policy(self.dynamics)

        self.state = JointState()
        self.phase = JointPhase.ACTIVE
        self.frozen_angle = 0.0

        self.enabled = True
        try:
            validate_joint(joint, name, num_channels)
        except ConfigError as e:
            logger.error(f"{name}: disabled ({e})")
            self.enabled = False

    @property
    def is_frozen(self) -> bool:
        return self.phase == JointPhase.FROZEN

    def clamp(self, angle: float) -> float:
        return min(self.joint.max_angle, max(self.joint.min_angle, angle))

    def update(self, bend_ratio: float, extend_ratio: float, dt: float) -> JointState:
        """
        Advance one tick from an antagonist ratio pair.

        Returns:
            New joint state (angle within limits)
        """
        if not self.enabled or self.is_frozen:
            return self.state
        torque = calculate_torque(bend_ratio, extend_ratio, self.dynamics)
        return self.apply_torque(torque, dt)

    def update_from_ratios(self, ratios: Sequence[float], dt: float) -> JointState:
        """Advance one tick, reading this joint's channels from a ratio vector."""
        if not self.enabled or self.is_frozen:
            return self.state
        bend = ratios[self.joint.bend_channel - 1]
        extend = ratios[self.joint.extend_channel - 1]
        return self.update(float(bend), float(extend), dt)

    def apply_torque(self, torque: float, dt: float) -> JointState:
        """Integrate an explicit torque-equivalent value for one tick."""
        if not self.enabled or self.is_frozen:
            return self.state
        if not math.isfinite(torque):
            torque = 0.0

        candidate = self.policy.step(torque, self.state, dt)
        if not _is_finite_state(candidate):
            logger.warning(f"{self.name}: non-finite dynamics step, holding last state")
            return self.state

        angle = self.clamp(candidate.angle)
        speed = candidate.speed
        if self.dynamics.zero_velocity_at_limit:
            if (angle >= self.joint.max_angle and speed > 0.0) or \
               (angle <= self.joint.min_angle and speed < 0.0):
                speed = 0.0

        self.state = JointState(
            angle=angle,
            speed=speed,
            acceleration=candidate.acceleration,
            jerk=candidate.jerk,
        )
        return self.state

    def set_angle(self, angle: float):
        """Set the angle directly (clamped). Ignored while frozen."""
        if self.is_frozen:
            return
        if not math.isfinite(angle):
            return
        self.state = JointState(
            angle=self.clamp(angle),
            speed=self.state.speed,
            acceleration=self.state.acceleration,
            jerk=self.state.jerk,
        )

    def freeze(self):
        """Hold the current angle. Idempotent."""
        if self.is_frozen:
            return
        self.phase = JointPhase.FROZEN
        self.frozen_angle = self.state.angle

    def unfreeze(self):
        """Resume integration from the held state. Idempotent."""
        self.phase = JointPhase.ACTIVE

    def reset(self):
        """Zero angle and derivatives (freeze phase is unchanged)."""
        self.state = JointState()
        self.frozen_angle = 0.0

    def __repr__(self) -> str:
        return (f"JointDynamics({self.name}, angle={self.state.angle:.1f}°, "
                f"phase={self.phase.value}, enabled={self.enabled})")


class ArmDynamics:
    """
    Two-joint arm: joint1 (shoulder) and joint2 (elbow).

    Example:
        >>> arm = ArmDynamics(config.joint1, config.joint2, config.dynamics)
        >>> snapshot = arm.update(ratios, dt=1/60)
        >>> snapshot.angles
        (12.3, 45.6)
    """

    def __init__(
        self,
        joint1: JointConfig,
        joint2: JointConfig,
        dynamics: Optional[DynamicsConfig] = None,
        control_mode: ControlMode = ControlMode.EMG,
        num_channels: int = NUM_CHANNELS
    ):
        self.dynamics = dynamics or DynamicsConfig()
        self.joint1 = JointDynamics("joint1", joint1, self.dynamics, num_channels=num_channels)
        self.joint2 = JointDynamics("joint2", joint2, self.dynamics, num_channels=num_channels)
        self.control_mode = ControlMode(control_mode)

        logger.info(f"ArmDynamics initialized ({self.control_mode.value} control, "
                    f"{IntegrationMode(self.dynamics.mode).value} integration)")

    @property
    def joints(self):
        return (self.joint1, self.joint2)

    @property
    def is_frozen(self) -> bool:
        return self.joint1.is_frozen and self.joint2.is_frozen

    def update(self, ratios: Sequence[float], dt: float) -> ArmSnapshot:
        """
        Advance both joints one tick.

        Args:
            ratios: Smoothed activation ratios, index 0 = channel 1
            dt: Elapsed time [s]

        Returns:
            ArmSnapshot of both joints for this tick
        """
        if self.control_mode == ControlMode.EMG:
            self.joint1.update_from_ratios(ratios, dt)
            self.joint2.update_from_ratios(ratios, dt)
        return self.snapshot()

    def snapshot(self) -> ArmSnapshot:
        """Current state without integrating."""
        return ArmSnapshot(
            joint1=self.current_state(self.joint1),
            joint2=self.current_state(self.joint2),
            frozen=self.is_frozen,
        )

    @staticmethod
    def current_state(joint: JointDynamics) -> JointState:
        if joint.is_frozen:
            s = joint.state
            return JointState(angle=joint.frozen_angle, speed=s.speed,
                              acceleration=s.acceleration, jerk=s.jerk)
        return joint.state

    def set_control_mode(self, mode: ControlMode):
        mode = ControlMode(mode)
        if mode != self.control_mode:
            logger.info(f"Control mode: {self.control_mode.value} → {mode.value}")
        self.control_mode = mode

    def set_manual_angles(self, joint1_angle: float, joint2_angle: float) -> bool:
        """
        Set both target angles directly (clamped to limits).

        Returns:
            False if not in MANUAL mode (angles unchanged)
        """
        if self.control_mode != ControlMode.MANUAL:
            logger.warning("set_manual_angles: controller is not in manual mode")
            return False
        self.joint1.set_angle(joint1_angle)
        self.joint2.set_angle(joint2_angle)
        return True

    def freeze(self):
        """Freeze both joints at their current angles."""
        was_frozen = self.is_frozen
        self.joint1.freeze()
        self.joint2.freeze()
        if not was_frozen:
            logger.info(f"Arm frozen at joint1={self.joint1.frozen_angle:.1f}°, "
                        f"joint2={self.joint2.frozen_angle:.1f}°")

    def unfreeze(self):
        was_frozen = self.joint1.is_frozen or self.joint2.is_frozen
        self.joint1.unfreeze()
        self.joint2.unfreeze()
        if was_frozen:
            logger.info("Arm unfrozen - control resumed")

    def reset(self):
        """Zero both joints together."""
        self.joint1.reset()
        self.joint2.reset()
        logger.info("Joint positions reset to initial state")

    def get_stats(self) -> dict:
        return {
            'control_mode': self.control_mode.value,
            'integration': IntegrationMode(self.dynamics.mode).value,
            'frozen': self.is_frozen,
            'joint1': self.joint1.state.to_dict(),
            'joint2': self.joint2.state.to_dict(),
            'joint1_enabled': self.joint1.enabled,
            'joint2_enabled': self.joint2.enabled,
        }
