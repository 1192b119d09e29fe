"""Wire protocol and transports for the actuator microcontroller."""

from .protocol import FrameEncoder, PowerLevel
from .protocol_validator import ProtocolValidator
from .transports import (
    Transport,
    UdpTransport,
    SerialTransport,
    MockTransport,
    create_transport
)
from .driver import HapticDriver

__all__ = [
    'FrameEncoder',
    'PowerLevel',
    'ProtocolValidator',
    'Transport',
    'UdpTransport',
    'SerialTransport',
    'MockTransport',
    'create_transport',
    'HapticDriver'
]
