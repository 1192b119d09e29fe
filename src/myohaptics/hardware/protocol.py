"""
Wire Protocol - ActuatorFrame → 112-byte ToMbed record

Owns the monotonic send counter. Every encode() increments it, so the
receiver can detect dropped or reordered datagrams from check_count.
"""

from enum import IntEnum
from typing import Optional, Sequence
import math

from myohaptics.core.schemas import ActuatorFrame, ToMbedPacket, NUM_VIBRATION_SLOTS


# Largest finite float32 (auxiliary channels are packed as float32)
FLOAT32_MAX = 3.4028234663852886e38


def _float32_safe(value: float) -> float:
    """Non-finite → 0.0, otherwise clamped to the float32 range."""
    value = float(value)
    if not math.isfinite(value):
        return 0.0
    return min(FLOAT32_MAX, max(-FLOAT32_MAX, value))


class PowerLevel(IntEnum):
    """Coarse per-slot power levels (0-10, sent as level / 10)."""
    OFF = 0
    LEVEL_1 = 1
    LEVEL_2 = 2
    LEVEL_3 = 3
    LEVEL_4 = 4
    LEVEL_5 = 5
    LEVEL_6 = 6
    LEVEL_7 = 7
    LEVEL_8 = 8
    LEVEL_9 = 9
    MAX = 10


class FrameEncoder:
    """
    Serializes actuator frames into ToMbed records.

    Auxiliary fields (channel floats, servo flags) stay zero unless set
    explicitly on the encoder.
    """

    def __init__(self, start_count: int = 0):
        self.check_count = start_count
        self.channels = (0.0, 0.0, 0.0, 0.0)
        self.servo1 = False
        self.servo2 = False

    def build_packet(self, frame: ActuatorFrame) -> ToMbedPacket:
        """Build the next packet and advance the send counter."""
        self.check_count += 1
        return ToMbedPacket(
            vibration=frame.normalized(),
            check_count=self.check_count,
            channels=self.channels,
            servo1=self.servo1,
            servo2=self.servo2,
        )

    def encode(self, frame: ActuatorFrame) -> bytes:
        """
        Encode a frame to wire bytes.

        Returns:
            bytes: 112-byte record
        """
        return self.build_packet(frame).to_bytes()

    def encode_slots(self, slots: Sequence[float]) -> bytes:
        """Encode pre-normalized 0.0-1.0 values (10 slots)."""
        if len(slots) != NUM_VIBRATION_SLOTS:
            raise ValueError(f"Expected {NUM_VIBRATION_SLOTS} slots, got {len(slots)}")
        self.check_count += 1
        packet = ToMbedPacket(
            vibration=tuple(min(1.0, max(0.0, float(s))) for s in slots),
            check_count=self.check_count,
            channels=self.channels,
            servo1=self.servo1,
            servo2=self.servo2,
        )
        return packet.to_bytes()

    def set_auxiliary(
        self,
        channels: Optional[Sequence[float]] = None,
        servo1: Optional[bool] = None,
        servo2: Optional[bool] = None
    ):
        if channels is not None:
            if len(channels) != 4:
                raise ValueError(f"Expected 4 channel values, got {len(channels)}")
            self.channels = tuple(_float32_safe(c) for c in channels)
        if servo1 is not None:
            self.servo1 = bool(servo1)
        if servo2 is not None:
            self.servo2 = bool(servo2)

    def reset_counter(self):
        self.check_count = 0
