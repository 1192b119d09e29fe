#!/usr/bin/env python3
"""
Controller configuration.

Every tunable of the control loop lives in one of the dataclasses below.
Defaults reproduce the reference lab setup (BITalino 4-channel EMG, 2-DOF arm,
3x3 back-mounted vibrotactile grid driven by a NUCLEO board over UDP).

Configs can be loaded from YAML:

    >>> from myohaptics.config import load_config
    >>> config = load_config("config/controller_config.yaml")
    >>> config.network.port
    55555
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple, Union
import ipaddress
import math

import yaml


NUM_CHANNELS = 4


class ConfigError(ValueError):
    """Raised when a configuration value is missing or invalid."""


class IntegrationMode(str, Enum):
    """Joint dynamics integration policy."""
    DIRECT = "direct"      # torque-equivalent used directly as angular speed
    DAMPED = "damped"      # second-order model with viscous damping


@dataclass
class SignalConfig:
    """Signal conditioning parameters."""
    rms_window: int = 100          # Samples per RMS window (100 = 0.1s @ 1kHz)
    smooth_window: int = 10        # Samples per moving-average window
    num_channels: int = NUM_CHANNELS


@dataclass
class JointConfig:
    """One rotational joint of the linkage."""
    min_angle: float
    max_angle: float
    axis: Tuple[float, float, float]
    bend_channel: int              # 1-based EMG channel driving positive rotation
    extend_channel: int            # 1-based EMG channel driving negative rotation


@dataclass
class DynamicsConfig:
    """Torque and integration parameters shared by both joints."""
    mode: IntegrationMode = IntegrationMode.DAMPED
    activation_threshold: float = 5.0     # [%] ratios below this are ignored
    dominance_threshold: float = 10.0     # [%] minimum bend/extend difference
    max_torque: float = 90.0              # Torque (or deg/s in direct mode) at 100% difference
    speed_multiplier: float = 1.0
    damping_coefficient: float = 2.0      # Viscous damping b in  tau - b*w = I*alpha
    velocity_threshold: float = 0.1       # [deg/s] snap-to-zero speed
    torque_epsilon: float = 0.1           # |torque| below this counts as no torque
    link_mass: float = 1.0                # [kg] for inertia I = m * L^2
    inertia_length: float = 0.2           # [m]  for inertia I = m * L^2
    zero_velocity_at_limit: bool = False  # Zero stored speed when the angle clamps


@dataclass
class LinkageConfig:
    """Fixed link lengths [m]."""
    base_to_joint1: float = 0.2
    joint1_to_joint2: float = 0.4
    link2: float = 0.4

    @property
    def total_reach(self) -> float:
        return self.base_to_joint1 + self.joint1_to_joint2 + self.link2


@dataclass
class FeedbackConfig:
    """Tactile grid encoder parameters."""
    max_intensity: int = 255
    center_ratio: float = 0.7      # Actuator 5 peak relative to max_intensity
    pitch_offset: float = 25.0     # [deg] shoulder pitch mapped to "no row shift"
    pitch_range: float = 50.0      # [deg] pitch change producing a one-row shift
    max_distance: float = 0.5      # [m] directional feedback saturation distance
    perfect_threshold: float = 0.001  # [m] directional feedback dead zone


@dataclass
class NetworkConfig:
    """Microcontroller destination."""
    address: str = "192.168.2.70"
    port: int = 55555
    transport: str = "udp"         # "udp", "serial" or "mock"
    serial_port: Optional[str] = None
    baudrate: int = 115200
    enabled: bool = True


def _default_joint1() -> JointConfig:
    return JointConfig(min_angle=-30.0, max_angle=80.0, axis=(0.0, 0.0, 1.0),
                       bend_channel=1, extend_channel=2)


def _default_joint2() -> JointConfig:
    return JointConfig(min_angle=0.0, max_angle=160.0, axis=(1.0, 0.0, 0.0),
                       bend_channel=3, extend_channel=4)


@dataclass
class ControllerConfig:
    """Top-level configuration for the control loop."""
    signal: SignalConfig = field(default_factory=SignalConfig)
    joint1: JointConfig = field(default_factory=_default_joint1)
    joint2: JointConfig = field(default_factory=_default_joint2)
    dynamics: DynamicsConfig = field(default_factory=DynamicsConfig)
    linkage: LinkageConfig = field(default_factory=LinkageConfig)
    feedback: FeedbackConfig = field(default_factory=FeedbackConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)

    def validate(self) -> 'ControllerConfig':
        """
        Check every section for invalid values.

        Returns:
            self (for chaining)

        Raises:
            ConfigError: On the first invalid value found
        """
        validate_signal(self.signal)
        validate_joint(self.joint1, "joint1", self.signal.num_channels)
        validate_joint(self.joint2, "joint2", self.signal.num_channels)
        validate_dynamics(self.dynamics)
        validate_linkage(self.linkage)
        validate_feedback(self.feedback)
        validate_network(self.network)
        return self

    def to_dict(self) -> dict:
        """Plain-data view (YAML-safe)."""
        data = asdict(self)
        data['dynamics']['mode'] = self.dynamics.mode.value
        for name in ('joint1', 'joint2'):
            data[name]['axis'] = list(data[name]['axis'])
        return data

    @staticmethod
    def from_dict(data: Optional[dict]) -> 'ControllerConfig':
        """
        Build a config from a (possibly partial) nested dict.

        Missing keys keep their defaults. Unknown keys raise ConfigError.
        """
        config = ControllerConfig()
        if not data:
            return config
        if not isinstance(data, dict):
            raise ConfigError(f"Config root must be a mapping, got {type(data).__name__}")

        for section, values in data.items():
            if not hasattr(config, section):
                raise ConfigError(f"Unknown config section: {section}")
            if values is None:
                continue
            if not isinstance(values, dict):
                raise ConfigError(f"Section '{section}' must be a mapping")

            target = getattr(config, section)
            for key, value in values.items():
                if not hasattr(target, key) or key == 'total_reach':
                    raise ConfigError(f"Unknown key '{key}' in section '{section}'")
                if key == 'axis':
                    value = tuple(float(v) for v in value)
                elif key == 'mode':
                    try:
                        value = IntegrationMode(value)
                    except ValueError:
                        raise ConfigError(
                            f"Unknown integration mode: {value!r} (use 'direct' or 'damped')"
                        )
                setattr(target, key, value)

        return config


def validate_signal(signal: SignalConfig):
    if int(signal.rms_window) < 1:
        raise ConfigError(f"signal.rms_window must be >= 1, got {signal.rms_window}")
    if int(signal.smooth_window) < 1:
        raise ConfigError(f"signal.smooth_window must be >= 1, got {signal.smooth_window}")
    if int(signal.num_channels) < 1:
        raise ConfigError(f"signal.num_channels must be >= 1, got {signal.num_channels}")


def validate_channel(channel: int, name: str, num_channels: int = NUM_CHANNELS):
    """Channel indices are 1-based."""
    if not isinstance(channel, int) or not 1 <= channel <= num_channels:
        raise ConfigError(f"{name} must be a channel in 1..{num_channels}, got {channel!r}")


def validate_joint(joint: JointConfig, name: str, num_channels: int = NUM_CHANNELS):
    if joint.min_angle > joint.max_angle:
        raise ConfigError(
            f"{name}: min_angle ({joint.min_angle}) exceeds max_angle ({joint.max_angle})"
        )
    if len(joint.axis) != 3:
        raise ConfigError(f"{name}.axis must have 3 components, got {joint.axis}")
    if math.sqrt(sum(a * a for a in joint.axis)) < 1e-9:
        raise ConfigError(f"{name}.axis must be non-zero")
    validate_channel(joint.bend_channel, f"{name}.bend_channel", num_channels)
    validate_channel(joint.extend_channel, f"{name}.extend_channel", num_channels)


def validate_dynamics(dynamics: DynamicsConfig):
    if not isinstance(dynamics.mode, IntegrationMode):
        raise ConfigError(f"dynamics.mode must be an IntegrationMode, got {dynamics.mode!r}")
    for key in ('activation_threshold', 'dominance_threshold', 'damping_coefficient',
                'velocity_threshold', 'torque_epsilon'):
        if getattr(dynamics, key) < 0:
            raise ConfigError(f"dynamics.{key} must be >= 0, got {getattr(dynamics, key)}")
    if dynamics.link_mass <= 0 or dynamics.inertia_length <= 0:
        raise ConfigError("dynamics.link_mass and dynamics.inertia_length must be positive")


def validate_linkage(linkage: LinkageConfig):
    for key in ('base_to_joint1', 'joint1_to_joint2', 'link2'):
        if getattr(linkage, key) <= 0:
            raise ConfigError(f"linkage.{key} must be positive, got {getattr(linkage, key)}")


def validate_feedback(feedback: FeedbackConfig):
    if not 0 <= feedback.max_intensity <= 255:
        raise ConfigError(f"feedback.max_intensity must be in 0..255, got {feedback.max_intensity}")
    if not 0.0 <= feedback.center_ratio <= 1.0:
        raise ConfigError(f"feedback.center_ratio must be in [0, 1], got {feedback.center_ratio}")
    if feedback.pitch_range <= 0:
        raise ConfigError(f"feedback.pitch_range must be positive, got {feedback.pitch_range}")
    if feedback.max_distance <= 0:
        raise ConfigError(f"feedback.max_distance must be positive, got {feedback.max_distance}")


def validate_network(network: NetworkConfig):
    if network.transport not in ("udp", "serial", "mock"):
        raise ConfigError(f"network.transport must be udp, serial or mock, got {network.transport!r}")
    if network.transport == "udp":
        validate_address(network.address, network.port)
    if network.transport == "serial" and not network.serial_port:
        raise ConfigError("network.serial_port is required for the serial transport")


def validate_address(address: Optional[str], port: int):
    """Destination must be a literal IPv4 address and a valid UDP port."""
    if not address:
        raise ConfigError("network.address is missing")
    try:
        ipaddress.IPv4Address(address)
    except ValueError:
        raise ConfigError(f"network.address is not a valid IPv4 address: {address!r}")
    if not isinstance(port, int) or not 0 < port < 65536:
        raise ConfigError(f"network.port must be in 1..65535, got {port!r}")


def load_config(path: Union[str, Path]) -> ControllerConfig:
    """
    Load and validate a YAML config file.

    Args:
        path: YAML file path

    Returns:
        Validated ControllerConfig

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigError: If the file content is invalid
    """
    config_file = Path(path)
    if not config_file.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    with open(config_file, 'r') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}")

    return ControllerConfig.from_dict(data).validate()


def save_config(config: ControllerConfig, path: Union[str, Path]):
    """Write a config to YAML."""
    with open(path, 'w') as f:
        yaml.safe_dump(config.to_dict(), f, sort_keys=False)
