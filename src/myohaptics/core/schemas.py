#!/usr/bin/env python3
"""
Core data schemas for the MYOHAPTICS controller.

Defines the data structures that flow through the control loop:
- JointState / ArmSnapshot: Joint dynamics output (angle + derivatives)
- Pose / LinkagePose: Forward kinematics output
- ActuatorFrame: Tactile encoder output (3x3 grid intensities)
- ToMbedPacket: 112-byte wire record sent to the microcontroller
"""

from dataclasses import dataclass
from typing import Tuple, Optional
import struct
import numpy as np


# Actuator grid geometry
GRID_ROWS = 3
GRID_COLS = 3
NUM_ACTUATORS = GRID_ROWS * GRID_COLS   # 9 discrete actuators, addressed 1..9
NUM_VIBRATION_SLOTS = 10                # Wire record carries 10 slots (slot 10 reserved)

# Intensity scales
FULL_SCALE = 255      # Continuous grid feedback (0-255)
COARSE_SCALE = 10     # Single-actuator commands (0, 2, 4, ..., 10)


@dataclass(frozen=True)
class JointState:
    """
    Angular state of one joint after a dynamics step.

    Units: degrees, deg/s, deg/s², deg/s³.
    """
    angle: float = 0.0
    speed: float = 0.0
    acceleration: float = 0.0
    jerk: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for logging."""
        return {
            'angle': self.angle,
            'speed': self.speed,
            'acceleration': self.acceleration,
            'jerk': self.jerk,
        }


@dataclass(frozen=True)
class ArmSnapshot:
    """
    Joint angles for one tick.

    Kinematics and tactile encoding both read from the same snapshot so they
    never observe a mix of old and new angles.
    """
    joint1: JointState
    joint2: JointState
    frozen: bool = False

    @property
    def angles(self) -> Tuple[float, float]:
        return (self.joint1.angle, self.joint2.angle)

    def to_dict(self) -> dict:
        return {
            'joint1': self.joint1.to_dict(),
            'joint2': self.joint2.to_dict(),
            'frozen': self.frozen,
        }


@dataclass(frozen=True)
class Pose:
    """World-space position [x, y, z] and orientation quaternion [w, x, y, z]."""
    position: np.ndarray
    rotation: np.ndarray

    def to_dict(self) -> dict:
        return {
            'position': [float(v) for v in self.position],
            'rotation': [float(v) for v in self.rotation],
        }


@dataclass(frozen=True)
class LinkagePose:
    """
    Poses of every element of the two-joint linkage.

    Link poses are taken at the link midpoint and share the rotation of the
    joint that drives them. The end effector sits at the tip of link2.
    """
    joint1: Pose
    link1: Pose
    joint2: Pose
    link2: Pose
    end_effector: Pose

    def to_dict(self) -> dict:
        return {
            'joint1': self.joint1.to_dict(),
            'link1': self.link1.to_dict(),
            'joint2': self.joint2.to_dict(),
            'link2': self.link2.to_dict(),
            'end_effector': self.end_effector.to_dict(),
        }


@dataclass(frozen=True)
class ActuatorFrame:
    """
    Intensities for the 3x3 actuator grid.

    Index 0 holds actuator 1 (top-left), index 8 holds actuator 9 (bottom-right).
    `scale` is the full-scale value: 255 for continuous feedback, 10 for
    coarse single-actuator commands.
    """
    intensities: Tuple[int, ...]
    scale: int = FULL_SCALE

    def __post_init__(self):
        if len(self.intensities) != NUM_ACTUATORS:
            raise ValueError(
                f"Expected {NUM_ACTUATORS} intensities, got {len(self.intensities)}"
            )
        if self.scale <= 0:
            raise ValueError(f"Scale must be positive, got {self.scale}")

    def intensity(self, actuator: int) -> int:
        """Intensity of a 1-based actuator number."""
        if not 1 <= actuator <= NUM_ACTUATORS:
            raise ValueError(f"Actuator must be in 1..{NUM_ACTUATORS}, got {actuator}")
        return self.intensities[actuator - 1]

    def normalized(self) -> Tuple[float, ...]:
        """
        Map intensities to the 10 wire slots as 0.0-1.0 values.

        The 10th slot has no actuator and is always 0.0.
        """
        slots = [min(1.0, max(0.0, i / self.scale)) for i in self.intensities]
        slots.append(0.0)
        return tuple(slots)

    def as_grid(self) -> np.ndarray:
        """3x3 array view (rows = vertical bands)."""
        return np.array(self.intensities, dtype=np.int32).reshape(GRID_ROWS, GRID_COLS)

    def active_actuators(self) -> list:
        """1-based numbers of actuators with non-zero intensity."""
        return [i + 1 for i, v in enumerate(self.intensities) if v > 0]

    @staticmethod
    def zero(scale: int = FULL_SCALE) -> 'ActuatorFrame':
        """All actuators off."""
        return ActuatorFrame(intensities=(0,) * NUM_ACTUATORS, scale=scale)

    @staticmethod
    def single(actuator: int, intensity: int, scale: int = COARSE_SCALE) -> 'ActuatorFrame':
        """One actuator on, all others off."""
        if not 1 <= actuator <= NUM_ACTUATORS:
            raise ValueError(f"Actuator must be in 1..{NUM_ACTUATORS}, got {actuator}")
        values = [0] * NUM_ACTUATORS
        values[actuator - 1] = intensity
        return ActuatorFrame(intensities=tuple(values), scale=scale)


def _to_int32(value: int) -> int:
    """Wrap an unbounded counter into the signed 32-bit range."""
    return ((value + 2**31) % 2**32) - 2**31


@dataclass(frozen=True)
class ToMbedPacket:
    """
    Wire record transmitted to the microcontroller.

    Packet format (112 bytes, little-endian, 4-byte aligned):
    - [0-3]     vibration_intensity: int32 (always 1)
    - [4-83]    vibration[10]: float64 (0.0-1.0 per slot)
    - [84-99]   ch1..ch4: float32 (auxiliary, zero by default)
    - [100]     servo1: uint8 (0/1)
    - [101]     servo2: uint8 (0/1)
    - [102-103] padding (zero)
    - [104-107] check_count: int32 (monotonic send counter)
    - [108-111] return_count: int32 (reserved, always 0)
    """
    vibration: Tuple[float, ...]
    check_count: int = 0
    vibration_intensity: int = 1
    channels: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)
    servo1: bool = False
    servo2: bool = False
    return_count: int = 0

    STRUCT_FORMAT = '<i10d4f2B2xii'
    SIZE = 112

    def to_bytes(self) -> bytes:
        """
        Serialize to the 112-byte wire format.

        Returns:
            bytes: 112-byte packed record
        """
        if len(self.vibration) != NUM_VIBRATION_SLOTS:
            raise ValueError(
                f"Expected {NUM_VIBRATION_SLOTS} vibration slots, got {len(self.vibration)}"
            )

        return struct.pack(
            self.STRUCT_FORMAT,
            _to_int32(self.vibration_intensity),
            *[float(v) for v in self.vibration],
            *[float(c) for c in self.channels],
            int(bool(self.servo1)),
            int(bool(self.servo2)),
            _to_int32(self.check_count),
            _to_int32(self.return_count),
        )

    @staticmethod
    def from_bytes(data: bytes) -> 'ToMbedPacket':
        """
        Deserialize a wire record.

        Args:
            data: 112-byte record

        Returns:
            ToMbedPacket: Decoded record

        Raises:
            ValueError: If the record size is wrong
        """
        if len(data) != ToMbedPacket.SIZE:
            raise ValueError(f"Expected {ToMbedPacket.SIZE} bytes, got {len(data)}")

        unpacked = struct.unpack(ToMbedPacket.STRUCT_FORMAT, data)

        return ToMbedPacket(
            vibration_intensity=unpacked[0],
            vibration=tuple(unpacked[1:11]),
            channels=tuple(unpacked[11:15]),
            servo1=bool(unpacked[15]),
            servo2=bool(unpacked[16]),
            check_count=unpacked[17],
            return_count=unpacked[18],
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/debugging."""
        return {
            'vibration_intensity': self.vibration_intensity,
            'vibration': list(self.vibration),
            'channels': list(self.channels),
            'servo1': self.servo1,
            'servo2': self.servo2,
            'check_count': self.check_count,
            'return_count': self.return_count,
        }


@dataclass(frozen=True)
class TickResult:
    """
    Everything one control tick produced.

    `pose` is None when the base reference was unavailable. `frame` is None
    when the encoder was skipped (feedback disabled).
    """
    ratios: Tuple[float, float, float, float]
    arm: ArmSnapshot
    pose: Optional[LinkagePose]
    grid: ActuatorFrame
    frame: Optional[bytes] = None
    sent: bool = False
    tick_index: int = 0

    def to_dict(self) -> dict:
        return {
            'tick_index': self.tick_index,
            'ratios': list(self.ratios),
            'arm': self.arm.to_dict(),
            'pose': self.pose.to_dict() if self.pose is not None else None,
            'grid': list(self.grid.intensities),
            'sent': self.sent,
        }
