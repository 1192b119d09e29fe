"""
Transports - Fire-and-forget delivery of ToMbed records

All transports share one surface:
- send(packet) -> bool   never raises on delivery failure
- close()
- get_stats() -> dict

UdpTransport:    connectionless datagram to an IPv4 address/port (default)
SerialTransport: same record over a USB serial link (pyserial)
MockTransport:   in-memory buffer with configurable loss, for tests and demos
"""

from abc import ABC, abstractmethod
from collections import deque
from typing import List, Optional
import logging
import random
import socket
import time

import serial

from myohaptics.config import ConfigError, NetworkConfig, validate_address

logger = logging.getLogger(__name__)


class Transport(ABC):
    """Base class for record transports."""

    def __init__(self, name: str):
        self.name = name
        self.enabled = True

        # Statistics
        self.packets_sent = 0
        self.packets_failed = 0
        self.bytes_sent = 0
        self.last_error: Optional[str] = None

    @abstractmethod
    def _write(self, packet: bytes):
        """Deliver one record. May raise OSError."""

    def send(self, packet: bytes) -> bool:
        """
        Send one record.

        Returns:
            True if handed to the link, False if disabled or the send failed
        """
        if not self.enabled:
            return False

        try:
            self._write(packet)
        except OSError as e:
            self.packets_failed += 1
            self.last_error = str(e)
            if self.packets_failed == 1 or self.packets_failed % 100 == 0:
                logger.warning(f"{self.name}: send failed ({self.packets_failed} total): {e}")
            return False

        self.packets_sent += 1
        self.bytes_sent += len(packet)
        return True

    def close(self):
        self.enabled = False

    def get_stats(self) -> dict:
        total = self.packets_sent + self.packets_failed
        return {
            'transport': self.name,
            'enabled': self.enabled,
            'packets_sent': self.packets_sent,
            'packets_failed': self.packets_failed,
            'bytes_sent': self.bytes_sent,
            'success_rate': self.packets_sent / total if total > 0 else 0.0,
            'last_error': self.last_error,
        }

    def reset_stats(self):
        self.packets_sent = 0
        self.packets_failed = 0
        self.bytes_sent = 0
        self.last_error = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class UdpTransport(Transport):
    """
    UDP datagram sender.

    An invalid destination disables the transport at construction instead of
    raising, so the control loop keeps running with feedback muted.
    """

    def __init__(self, address: str = "192.168.2.70", port: int = 55555):
        super().__init__("udp")
        self.address = address
        self.port = port
        self.sock: Optional[socket.socket] = None

        try:
            validate_address(address, port)
        except ConfigError as e:
            logger.error(f"UDP transport disabled: {e}")
            self.enabled = False
            self.last_error = str(e)
            return

        try:
            self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            self.sock.setblocking(False)
        except OSError as e:
            logger.error(f"UDP transport disabled: could not open socket: {e}")
            self.enabled = False
            self.last_error = str(e)
            return

        logger.info(f"UDP transport ready: {address}:{port}")

    def _write(self, packet: bytes):
        self.sock.sendto(packet, (self.address, self.port))

    def close(self):
        if self.sock is not None:
            self.sock.close()
            self.sock = None
        if self.enabled:
            logger.info(f"UDP transport closed (sent={self.packets_sent}, failed={self.packets_failed})")
        super().close()

    def __repr__(self) -> str:
        return f"UdpTransport({self.address}:{self.port}, enabled={self.enabled})"


class SerialTransport(Transport):
    """
    Serial sender for a directly attached microcontroller.

    connect() must succeed before records are written.
    """

    def __init__(self, port: str, baudrate: int = 115200, write_timeout: float = 0.01):
        super().__init__("serial")
        self.port = port
        self.baudrate = baudrate
        self.write_timeout = write_timeout
        self.serial: Optional[serial.Serial] = None
        self.enabled = False

    def connect(self) -> bool:
        """
        Open the serial port.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            self.serial = serial.Serial(
                port=self.port,
                baudrate=self.baudrate,
                timeout=0.01,
                write_timeout=self.write_timeout
            )
        except serial.SerialException as e:
            logger.error(f"Serial transport: failed to open {self.port}: {e}")
            self.last_error = str(e)
            self.enabled = False
            return False

        self.enabled = True
        logger.info(f"Serial transport connected to {self.port} at {self.baudrate} baud")
        return True

    def _write(self, packet: bytes):
        self.serial.write(packet)

    def close(self):
        if self.serial is not None and self.serial.is_open:
            self.serial.close()
            logger.info(f"Serial transport closed (sent={self.packets_sent}, failed={self.packets_failed})")
        self.serial = None
        super().close()

    def __repr__(self) -> str:
        return f"SerialTransport({self.port}, baud={self.baudrate}, enabled={self.enabled})"


class MockTransport(Transport):
    """
    In-memory transport for testing (no network, no hardware).

    Keeps the most recent records in `tx_buffer` and can drop a fraction of
    them to exercise loss handling.
    """

    def __init__(self, packet_loss_rate: float = 0.0, max_buffer: int = 1000,
                 seed: Optional[int] = None):
        super().__init__("mock")
        self.packet_loss_rate = max(0.0, min(1.0, packet_loss_rate))
        self.tx_buffer: deque = deque(maxlen=max_buffer)
        self.packets_dropped = 0
        self._rng = random.Random(seed)

    def _write(self, packet: bytes):
        if self._rng.random() < self.packet_loss_rate:
            self.packets_dropped += 1
            raise OSError("simulated packet loss")
        self.tx_buffer.append({'packet': bytes(packet), 'timestamp': time.time()})

    def get_tx_buffer(self) -> List[bytes]:
        """All buffered records, oldest first."""
        return [entry['packet'] for entry in self.tx_buffer]

    def last_packet(self) -> Optional[bytes]:
        return self.tx_buffer[-1]['packet'] if self.tx_buffer else None

    def clear_buffers(self):
        self.tx_buffer.clear()

    def get_stats(self) -> dict:
        stats = super().get_stats()
        stats['packets_dropped'] = self.packets_dropped
        stats['buffered'] = len(self.tx_buffer)
        return stats

    def reset_stats(self):
        super().reset_stats()
        self.packets_dropped = 0

    def __repr__(self) -> str:
        return f"MockTransport(sent={self.packets_sent}, dropped={self.packets_dropped})"


def create_transport(network: NetworkConfig) -> Transport:
    """
    Build the transport named in the network config.

    Serial transports are connected before being returned. A disabled network
    section or an unknown transport name yields a disabled mock transport.
    """
    if not network.enabled:
        transport = MockTransport()
        transport.enabled = False
        logger.info("Network output disabled by configuration")
        return transport

    if network.transport == "udp":
        return UdpTransport(network.address, network.port)
    if network.transport == "serial":
        if not network.serial_port:
            logger.error("Serial transport disabled: network.serial_port is missing")
            transport = SerialTransport(port="")
            transport.last_error = "missing serial_port"
            return transport
        transport = SerialTransport(network.serial_port, network.baudrate)
        transport.connect()
        return transport
    if network.transport == "mock":
        return MockTransport()

    logger.error(f"Transport disabled: unknown transport {network.transport!r}")
    transport = MockTransport()
    transport.enabled = False
    transport.last_error = f"unknown transport: {network.transport}"
    return transport
