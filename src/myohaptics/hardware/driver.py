"""
Haptic Driver - Actuator frames → transport

Pairs a FrameEncoder (owns the send counter) with a Transport. Supports
continuous grid frames, validated single-actuator commands and an optional
send-on-change gate.

Usage:
    driver = HapticDriver(UdpTransport("192.168.2.70", 55555))
    driver.send_grid(frame)
    driver.send_vibration_command(actuator=6, level=4)
    driver.send_power_levels([PowerLevel.LEVEL_3] + [PowerLevel.OFF] * 9)
    driver.send_all_off()
"""

from typing import Callable, Optional, Sequence, Tuple
import logging
import time

from myohaptics.core.schemas import ActuatorFrame, COARSE_SCALE, NUM_ACTUATORS, NUM_VIBRATION_SLOTS
from myohaptics.feedback.directional import DirectionalCue, VALID_LEVELS
from myohaptics.hardware.protocol import FrameEncoder, PowerLevel
from myohaptics.hardware.transports import Transport

logger = logging.getLogger(__name__)


class HapticDriver:
    """
    Sends actuator frames to the microcontroller.

    With `send_on_change` enabled, a grid frame is only sent when it differs
    from the last sent frame and at least `min_interval` seconds have passed
    since the previous send. The same gate applies to per-slot power levels.
    Commands and all-off always go out.
    """

    def __init__(
        self,
        transport: Transport,
        encoder: Optional[FrameEncoder] = None,
        send_on_change: bool = False,
        min_interval: float = 0.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self.transport = transport
        self.encoder = encoder or FrameEncoder()
        self.send_on_change = send_on_change
        self.min_interval = max(0.0, min_interval)
        self._clock = clock

        self.last_frame: Optional[ActuatorFrame] = None
        self.last_slots: Optional[Tuple[float, ...]] = None
        self.last_packet: Optional[bytes] = None
        self.last_send_time: Optional[float] = None

        # Statistics
        self.frames_sent = 0
        self.frames_failed = 0
        self.frames_skipped = 0
        self.commands_rejected = 0

    def send_grid(self, frame: ActuatorFrame, force: bool = False) -> Tuple[Optional[bytes], bool]:
        """
        Encode and send one grid frame.

        Args:
            frame: Actuator intensities
            force: Bypass the send-on-change gate

        Returns:
            (record bytes or None if gated, sent flag)
        """
        if self.send_on_change and not force and not self._gate_open(frame.normalized()):
            self.frames_skipped += 1
            return None, False

        return self._send_frame(frame)

    def send_vibration_command(self, actuator: int, level: int) -> bool:
        """
        Drive a single actuator at a coarse level, all others off.

        Args:
            actuator: 1..9
            level: Even value in 0..10

        Returns:
            True if sent, False if rejected or the send failed
        """
        if not isinstance(actuator, int) or not 1 <= actuator <= NUM_ACTUATORS:
            self.commands_rejected += 1
            logger.warning(f"Rejected vibration command: actuator {actuator!r} not in 1..{NUM_ACTUATORS}")
            return False
        if level not in VALID_LEVELS:
            self.commands_rejected += 1
            logger.warning(f"Rejected vibration command: level {level!r} not in {VALID_LEVELS}")
            return False

        frame = ActuatorFrame.single(actuator, int(level), scale=COARSE_SCALE)
        _, sent = self._send_frame(frame)
        return sent

    def send_power_levels(self, levels: Sequence[PowerLevel],
                          force: bool = False) -> Tuple[Optional[bytes], bool]:
        """
        Send one coarse power level per wire slot (all 10 slots, level / 10).

        Args:
            levels: 10 levels in 0..10 (slot 10 included)
            force: Bypass the send-on-change gate

        Returns:
            (record bytes or None if gated or rejected, sent flag)
        """
        if len(levels) != NUM_VIBRATION_SLOTS:
            self.commands_rejected += 1
            logger.warning(f"Rejected power levels: expected {NUM_VIBRATION_SLOTS}, got {len(levels)}")
            return None, False
        try:
            levels = [PowerLevel(level) for level in levels]
        except ValueError as e:
            self.commands_rejected += 1
            logger.warning(f"Rejected power levels: {e}")
            return None, False

        slots = tuple(int(level) / 10.0 for level in levels)
        if self.send_on_change and not force and not self._gate_open(slots):
            self.frames_skipped += 1
            return None, False

        packet = self.encoder.encode_slots(slots)
        sent = self._deliver(packet, slots)
        return packet, sent

    def send_cue(self, cue: DirectionalCue) -> bool:
        """Send a directional cue (all off when the cue is off)."""
        if cue.is_off:
            return self.send_all_off()
        return self.send_vibration_command(cue.actuator, cue.level)

    def send_all_off(self) -> bool:
        _, sent = self._send_frame(ActuatorFrame.zero(scale=COARSE_SCALE))
        return sent

    def _gate_open(self, slots: Tuple[float, ...]) -> bool:
        if self.last_slots is not None and slots == self.last_slots:
            return False
        if self.last_send_time is not None:
            return self._clock() - self.last_send_time >= self.min_interval
        return True

    def _send_frame(self, frame: ActuatorFrame) -> Tuple[bytes, bool]:
        packet = self.encoder.encode(frame)
        sent = self._deliver(packet, frame.normalized())
        self.last_frame = frame
        logger.debug(f"Frame #{self.encoder.check_count} active={frame.active_actuators()} sent={sent}")
        return packet, sent

    def _deliver(self, packet: bytes, slots: Tuple[float, ...]) -> bool:
        sent = self.transport.send(packet)

        if sent:
            self.frames_sent += 1
        else:
            self.frames_failed += 1

        self.last_slots = slots
        self.last_packet = packet
        self.last_send_time = self._clock()
        return sent

    def get_stats(self) -> dict:
        return {
            'check_count': self.encoder.check_count,
            'frames_sent': self.frames_sent,
            'frames_failed': self.frames_failed,
            'frames_skipped': self.frames_skipped,
            'commands_rejected': self.commands_rejected,
            'transport': self.transport.get_stats(),
        }

    def reset_stats(self):
        self.frames_sent = 0
        self.frames_failed = 0
        self.frames_skipped = 0
        self.commands_rejected = 0
        self.transport.reset_stats()

    def close(self):
        self.transport.close()

    def __repr__(self) -> str:
        return f"HapticDriver(transport={self.transport!r}, sent={self.frames_sent})"
