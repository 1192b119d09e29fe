"""
Protocol Validator - ToMbed record validation

Validates the 112-byte record layout and field ranges.
Ensures Python serialization matches what the microcontroller expects.
"""

from typing import Tuple, Optional
import math

from myohaptics.core.schemas import ToMbedPacket


class ProtocolValidator:
    """Validates ToMbed binary records."""

    PACKET_SIZE = ToMbedPacket.SIZE
    SERVO_OFFSET = 100
    PADDING_OFFSET = 102
    PADDING_SIZE = 2

    @staticmethod
    def validate_packet(packet: bytes) -> Tuple[bool, str]:
        """
        Validate binary record structure.

        Checks:
        - Length (exactly 112 bytes)
        - Servo flags [100-101] are 0 or 1
        - Padding bytes [102-103] are zero

        Args:
            packet: Binary record to validate

        Returns:
            (is_valid, error_message)
        """
        if len(packet) != ProtocolValidator.PACKET_SIZE:
            return False, f"Invalid packet size: {len(packet)} bytes (expected {ProtocolValidator.PACKET_SIZE})"

        for i in range(2):
            flag = packet[ProtocolValidator.SERVO_OFFSET + i]
            if flag not in (0, 1):
                return False, f"servo{i + 1} flag must be 0 or 1, got {flag}"

        start = ProtocolValidator.PADDING_OFFSET
        padding = packet[start:start + ProtocolValidator.PADDING_SIZE]
        if any(padding):
            return False, f"Non-zero padding: {padding.hex()}"

        return True, "Valid packet"

    @staticmethod
    def deserialize_and_validate(packet: bytes) -> Tuple[bool, Optional[ToMbedPacket]]:
        """
        Deserialize record and validate field values.

        Returns:
            (is_valid, packet or None)
        """
        is_valid, _ = ProtocolValidator.validate_packet(packet)
        if not is_valid:
            return False, None

        try:
            decoded = ToMbedPacket.from_bytes(packet)
        except ValueError:
            return False, None

        is_valid, _ = ProtocolValidator.validate_field_ranges(decoded)
        if not is_valid:
            return False, None

        return True, decoded

    @staticmethod
    def validate_field_ranges(decoded: ToMbedPacket) -> Tuple[bool, str]:
        """
        Validate ToMbed field value ranges.

        Returns:
            (is_valid, error_message)
        """
        # Vibration slots must be normalized
        for i, value in enumerate(decoded.vibration):
            if not math.isfinite(value) or not (0.0 <= value <= 1.0):
                return False, f"vibration[{i}] out of range: {value}"

        for i, value in enumerate(decoded.channels):
            if not math.isfinite(value):
                return False, f"ch{i + 1} not finite: {value}"

        if decoded.return_count != 0:
            return False, f"return_count must be 0, got {decoded.return_count}"

        return True, "Valid fields"

    @staticmethod
    def compare_packets(
        original: ToMbedPacket,
        deserialized: ToMbedPacket,
        tolerance: float = 1e-6
    ) -> bool:
        """
        Compare original vs deserialized records (round-trip check).

        Channel floats go through float32, so they are compared with tolerance.
        """
        def close(a, b):
            return abs(a - b) < tolerance

        if original.vibration_intensity != deserialized.vibration_intensity:
            return False
        if original.check_count != deserialized.check_count:
            return False
        if original.return_count != deserialized.return_count:
            return False

        if not all(close(a, b) for a, b in zip(original.vibration, deserialized.vibration)):
            return False
        if not all(close(a, b) for a, b in zip(original.channels, deserialized.channels)):
            return False

        if bool(original.servo1) != deserialized.servo1:
            return False
        if bool(original.servo2) != deserialized.servo2:
            return False

        return True
