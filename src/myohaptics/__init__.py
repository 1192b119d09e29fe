"""
MYOHAPTICS - Public API

EMG-driven two-joint arm with vibrotactile posture feedback.

Quick Start:
    >>> import myohaptics
    >>>
    >>> config = myohaptics.load_config("config/controller_config.yaml")
    >>> source = myohaptics.SimulatedSampleSource(seed=0)
    >>>
    >>> with myohaptics.ArmFeedbackController(config, source=source) as ctrl:
    >>>     for _ in range(100):
    >>>         result = ctrl.tick(dt=1/60)

Architecture:
    Layer 1 (Signal):   raw EMG → RMS → threshold → normalized ratio (0-100)
    Layer 2 (Dynamics): antagonist ratios → torque → joint angles
    Layer 3 (Geometry): joint angles → linkage poses
    Layer 4 (Feedback): joint angles → 3x3 actuator grid → 112-byte UDP record
"""

__version__ = "0.2.0"
__author__ = "MYOHAPTICS Team"
__license__ = "MIT"

# Public API imports
from .config import ControllerConfig, ConfigError, load_config, save_config
from .controller import ArmFeedbackController, FeedbackMode
from .emg import SignalProcessor, ProcessingMode
from .dynamics import ArmDynamics, ControlMode
from .kinematics import ForwardKinematics
from .feedback import GridFeedbackEncoder, DirectionalFeedbackEncoder
from .hardware import HapticDriver, UdpTransport, SerialTransport, MockTransport
from .sources import SimulatedSampleSource, ReplaySampleSource

# Core data structures (for advanced users)
from .core.schemas import ActuatorFrame, ArmSnapshot, LinkagePose, ToMbedPacket, TickResult

# Convenience functions
from .quickstart import demo

__all__ = [
    # Main API classes
    "ArmFeedbackController",
    "FeedbackMode",
    "SignalProcessor",
    "ProcessingMode",
    "ArmDynamics",
    "ControlMode",
    "ForwardKinematics",
    "GridFeedbackEncoder",
    "DirectionalFeedbackEncoder",
    "HapticDriver",
    "UdpTransport",
    "SerialTransport",
    "MockTransport",
    "SimulatedSampleSource",
    "ReplaySampleSource",

    # Configuration
    "ControllerConfig",
    "ConfigError",
    "load_config",
    "save_config",

    # Core schemas
    "ActuatorFrame",
    "ArmSnapshot",
    "LinkagePose",
    "ToMbedPacket",
    "TickResult",

    # Convenience
    "demo",

    # Metadata
    "__version__",
]
