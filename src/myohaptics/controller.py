"""
MYOHAPTICS Controller - One tick of the EMG → haptics loop

    samples → SignalProcessor → ArmDynamics → ForwardKinematics
            → GridFeedbackEncoder / DirectionalFeedbackEncoder
            → FrameEncoder → Transport

Usage:
    with ArmFeedbackController(config, source=SimulatedSampleSource(seed=0)) as ctrl:
        result = ctrl.tick(dt=1/60)
        print(result.arm.angles, result.grid.intensities)
"""

from enum import Enum
from typing import Optional, Sequence
import logging

import numpy as np

from myohaptics.config import (
    ConfigError, ControllerConfig, validate_feedback, validate_linkage, validate_signal
)
from myohaptics.core.schemas import ActuatorFrame, ArmSnapshot, TickResult, COARSE_SCALE
from myohaptics.dynamics import ArmDynamics, ControlMode
from myohaptics.emg import ProcessingMode, SignalProcessor
from myohaptics.feedback import DirectionalCue, DirectionalFeedbackEncoder, GridFeedbackEncoder
from myohaptics.hardware import HapticDriver, Transport, create_transport
from myohaptics.kinematics import ForwardKinematics
from myohaptics.sources import SampleSource

logger = logging.getLogger(__name__)


class FeedbackMode(str, Enum):
    """Which encoder drives the actuators."""
    CONTINUOUS = "continuous"      # posture grid every tick
    DIRECTIONAL = "directional"    # single-actuator cue toward a target while frozen


class ArmFeedbackController:
    """
    Single-threaded control loop.

    Each tick runs conditioning → dynamics → kinematics → feedback →
    encode → send in that order. Kinematics and feedback read the same
    ArmSnapshot, so they always agree on the joint angles.

    Nothing in tick() raises for runtime conditions: a missing source skips
    conditioning, an unavailable base yields pose=None, and send failures
    are counted by the transport.
    """

    def __init__(
        self,
        config: Optional[ControllerConfig] = None,
        source: Optional[SampleSource] = None,
        transport: Optional[Transport] = None,
        samples_per_tick: int = 10,
        feedback_mode: FeedbackMode = FeedbackMode.CONTINUOUS,
        send_on_change: bool = False,
        min_send_interval: float = 0.0,
        processing_mode: ProcessingMode = ProcessingMode.MEASUREMENT
    ):
        """
        Initialize controller.

        Args:
            config: Controller configuration (defaults if None)
            source: Raw sample source (None → conditioning skipped)
            transport: Record transport (None → built from config.network)
            samples_per_tick: Samples pulled from the source each tick
            feedback_mode: Continuous grid or directional cue
            send_on_change: Only send grid frames that changed
            min_send_interval: Minimum seconds between gated sends
            processing_mode: Initial signal processing mode

        Raises:
            ConfigError: If the signal or linkage configuration is invalid
        """
        self.config = config or ControllerConfig()
        validate_signal(self.config.signal)
        validate_linkage(self.config.linkage)

        self.source = source
        self.samples_per_tick = max(1, int(samples_per_tick))
        self.feedback_mode = FeedbackMode(feedback_mode)
        self.num_channels = int(self.config.signal.num_channels)

        # Pipeline stages
        self.processor = SignalProcessor(self.config.signal, mode=processing_mode)
        self.arm = ArmDynamics(
            self.config.joint1, self.config.joint2, self.config.dynamics,
            num_channels=self.num_channels
        )
        self.kinematics = ForwardKinematics(self.config)
        self.grid_encoder = GridFeedbackEncoder(self.config.feedback)
        self.directional_encoder = DirectionalFeedbackEncoder(self.config.feedback)

        self.feedback_enabled = True
        try:
            validate_feedback(self.config.feedback)
        except ConfigError as e:
            logger.error(f"Feedback disabled: {e}")
            self.feedback_enabled = False

        if transport is None:
            transport = create_transport(self.config.network)
        self.driver = HapticDriver(transport, send_on_change=send_on_change,
                                   min_interval=min_send_interval)

        self.target_position: Optional[np.ndarray] = None
        self.last_cue: Optional[DirectionalCue] = None
        self.tick_index = 0
        self._source_warned = False
        self._cue_active = False

        logger.info(f"ArmFeedbackController ready ({self.feedback_mode.value} feedback, "
                    f"{self.samples_per_tick} samples/tick)")

    # ------------------------------------------------------------------
    # Control loop
    # ------------------------------------------------------------------

    def tick(self, dt: float, samples: Optional[np.ndarray] = None) -> TickResult:
        """
        Run one control tick.

        Args:
            dt: Elapsed time since the previous tick [s]
            samples: Raw samples (n, channels) to use instead of pulling
                from the source

        Returns:
            TickResult for this tick
        """
        self.tick_index += 1

        # === 1. Conditioning ===
        self._condition(samples)
        ratios = self.processor.smoothed_values()

        # === 2. Dynamics (only on calibrated data) ===
        if self.processor.mode == ProcessingMode.MEASUREMENT:
            snapshot = self.arm.update(ratios, dt)
        else:
            snapshot = self.arm.snapshot()

        # === 3. Kinematics ===
        pose = self.kinematics.solve_angles(*snapshot.angles)

        # === 4-6. Feedback → encode → send ===
        grid, frame, sent = self._feedback(snapshot, pose)

        return TickResult(
            ratios=tuple(float(r) for r in ratios),
            arm=snapshot,
            pose=pose,
            grid=grid,
            frame=frame,
            sent=sent,
            tick_index=self.tick_index,
        )

    def run(self, ticks: int, dt: float) -> list:
        """Run a fixed number of ticks and collect the results."""
        return [self.tick(dt) for _ in range(ticks)]

    def _condition(self, samples: Optional[np.ndarray]):
        if samples is None:
            if self.source is None or not self.source.is_connected():
                if not self._source_warned:
                    logger.warning("No connected sample source - conditioning skipped")
                    self._source_warned = True
                return
            self._source_warned = False
            samples = self.source.get_batch(self.samples_per_tick)
            if samples is None:
                return

        block = np.asarray(samples, dtype=np.float64)
        if block.size == 0:
            return
        try:
            self.processor.process_chunk(block)
        except ValueError as e:
            logger.warning(f"Discarding malformed sample block: {e}")

    def _feedback(self, snapshot: ArmSnapshot, pose):
        if not self.feedback_enabled:
            return ActuatorFrame.zero(), None, False

        if self.feedback_mode == FeedbackMode.DIRECTIONAL:
            return self._directional_feedback(snapshot, pose)

        grid = self.grid_encoder.encode(
            shoulder_pitch=snapshot.joint1.angle,
            elbow_angle=snapshot.joint2.angle,
        )
        frame, sent = self.driver.send_grid(grid)
        return grid, frame, sent

    def _directional_feedback(self, snapshot: ArmSnapshot, pose):
        if not snapshot.frozen or self.target_position is None or pose is None:
            off = ActuatorFrame.zero(scale=COARSE_SCALE)
            if self._cue_active:
                self._cue_active = False
                self.last_cue = None
                sent = self.driver.send_all_off()
                return off, self.driver.last_packet, sent
            return off, None, False

        cue = self.directional_encoder.encode_positions(
            pose.end_effector.position, self.target_position
        )
        self.last_cue = cue
        self._cue_active = True
        sent = self.driver.send_cue(cue)
        return cue.to_frame(), self.driver.last_packet, sent

    # ------------------------------------------------------------------
    # External control
    # ------------------------------------------------------------------

    def freeze(self):
        self.arm.freeze()

    def unfreeze(self):
        self.arm.unfreeze()

    @property
    def is_frozen(self) -> bool:
        return self.arm.is_frozen

    def reset(self):
        """Zero both joints and clear signal buffers (calibration is kept)."""
        self.arm.reset()
        self.processor.reset()

    def set_processing_mode(self, mode: ProcessingMode):
        self.processor.set_mode(mode)

    def reset_calibration(self):
        self.processor.reset_calibration()

    def set_control_mode(self, mode: ControlMode):
        self.arm.set_control_mode(mode)

    def set_manual_angles(self, joint1_angle: float, joint2_angle: float) -> bool:
        return self.arm.set_manual_angles(joint1_angle, joint2_angle)

    def set_feedback_mode(self, mode: FeedbackMode):
        mode = FeedbackMode(mode)
        if mode != self.feedback_mode:
            logger.info(f"Feedback mode: {self.feedback_mode.value} → {mode.value}")
            if self.feedback_enabled:
                self.driver.send_all_off()
            self._cue_active = False
            self.last_cue = None
        self.feedback_mode = mode

    def set_target(self, position: Optional[Sequence[float]]):
        """Target for directional feedback ([x, y, z], None clears it)."""
        self.target_position = None if position is None else np.asarray(position, dtype=np.float64)

    def set_base(self, position: Optional[Sequence[float]],
                 rotation: Optional[Sequence[float]]):
        """Update the kinematic base reference (None → unavailable)."""
        self.kinematics.set_base(position, rotation)

    def set_source(self, source: Optional[SampleSource]):
        self.source = source
        self._source_warned = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def get_stats(self) -> dict:
        return {
            'tick_index': self.tick_index,
            'feedback_mode': self.feedback_mode.value,
            'feedback_enabled': self.feedback_enabled,
            'signal': self.processor.get_stats(),
            'arm': self.arm.get_stats(),
            'driver': self.driver.get_stats(),
        }

    def close(self):
        """Turn all actuators off and release the transport."""
        if self.feedback_enabled:
            self.driver.send_all_off()
        self.driver.close()
        logger.info(f"ArmFeedbackController closed after {self.tick_index} ticks")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self) -> str:
        return (f"ArmFeedbackController(ticks={self.tick_index}, "
                f"mode={self.processor.mode.value}, frozen={self.is_frozen})")
