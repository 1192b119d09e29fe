"""
Unit tests for record transports.

Tests cover:
- UDP delivery to a local socket
- Invalid destinations disable the transport instead of raising
- Send failures are counted, never raised
- Mock transport buffering and simulated loss
- Serial connection failures
- Transport factory
"""

import socket

import pytest
import serial

from myohaptics.config import NetworkConfig
from myohaptics.core.schemas import ActuatorFrame
from myohaptics.hardware import (
    FrameEncoder, MockTransport, SerialTransport, UdpTransport, create_transport
)
from myohaptics.hardware import transports


@pytest.fixture
def receiver():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(1.0)
    yield sock
    sock.close()


class _FailingSocket:
    def sendto(self, packet, destination):
        raise OSError("network unreachable")

    def close(self):
        pass


class TestUdpTransport:
    """Test suite for UdpTransport."""

    def test_delivers_record(self, receiver):
        """Test that a record reaches a local socket unchanged."""
        port = receiver.getsockname()[1]
        packet = FrameEncoder().encode(ActuatorFrame.single(4, 10))

        with UdpTransport("127.0.0.1", port) as transport:
            assert transport.send(packet) is True
            data, _ = receiver.recvfrom(1024)

        assert data == packet
        assert transport.packets_sent == 1
        assert transport.bytes_sent == 112

    @pytest.mark.parametrize("address,port", [
        ("", 55555),
        ("not-an-ip", 55555),
        ("192.168.2.70", 0),
        ("192.168.2.70", 70000),
    ])
    def test_invalid_destination_disables(self, address, port):
        """Test that bad destinations mute the transport."""
        transport = UdpTransport(address, port)

        assert transport.enabled is False
        assert transport.send(b'\x00' * 112) is False
        assert transport.packets_sent == 0

    def test_send_failure_is_counted(self):
        """Test that OSError from the socket is reported, not raised."""
        transport = UdpTransport("127.0.0.1", 55555)
        transport.sock.close()
        transport.sock = _FailingSocket()

        assert transport.send(b'\x00' * 112) is False
        assert transport.send(b'\x00' * 112) is False

        stats = transport.get_stats()
        assert stats['packets_failed'] == 2
        assert stats['packets_sent'] == 0
        assert "unreachable" in stats['last_error']

    def test_close_disables(self):
        transport = UdpTransport("127.0.0.1", 55555)
        transport.close()

        assert transport.enabled is False
        assert transport.sock is None
        assert transport.send(b'\x00' * 112) is False


class TestMockTransport:
    """Test suite for MockTransport."""

    def test_buffers_records(self):
        transport = MockTransport()
        transport.send(b'a' * 112)
        transport.send(b'b' * 112)

        assert transport.get_tx_buffer() == [b'a' * 112, b'b' * 112]
        assert transport.last_packet() == b'b' * 112

    def test_buffer_is_bounded(self):
        transport = MockTransport(max_buffer=3)
        for i in range(5):
            transport.send(bytes([i]) * 112)

        assert len(transport.tx_buffer) == 3
        assert transport.get_tx_buffer()[0] == bytes([2]) * 112

    def test_full_loss(self):
        """Test that every send fails at 100% loss."""
        transport = MockTransport(packet_loss_rate=1.0)

        assert transport.send(b'\x00' * 112) is False
        assert transport.packets_dropped == 1
        assert transport.packets_failed == 1
        assert transport.last_packet() is None

    def test_partial_loss_is_seeded(self):
        """Test that loss is reproducible with a seed."""
        def run():
            transport = MockTransport(packet_loss_rate=0.3, seed=42)
            return [transport.send(b'\x00' * 112) for _ in range(100)]

        first = run()
        assert first == run()
        assert 0 < first.count(False) < 100

    def test_reset_stats(self):
        transport = MockTransport(packet_loss_rate=1.0)
        transport.send(b'\x00' * 112)
        transport.reset_stats()

        stats = transport.get_stats()
        assert stats['packets_failed'] == 0
        assert stats['packets_dropped'] == 0


class TestSerialTransport:
    """Test suite for SerialTransport (no hardware attached)."""

    def test_disabled_until_connected(self):
        transport = SerialTransport("/dev/ttyACM0")

        assert transport.enabled is False
        assert transport.send(b'\x00' * 112) is False

    def test_connect_failure(self, monkeypatch):
        """Test that a port that cannot be opened leaves the transport disabled."""
        def fail(**kwargs):
            raise serial.SerialException("could not open port")

        monkeypatch.setattr(transports.serial, "Serial", fail)
        transport = SerialTransport("/dev/ttyACM0")

        assert transport.connect() is False
        assert transport.enabled is False
        assert "could not open" in transport.last_error

    def test_writes_after_connect(self, monkeypatch):
        written = []

        class FakeSerial:
            is_open = True

            def __init__(self, **kwargs):
                self.kwargs = kwargs

            def write(self, data):
                written.append(data)

            def close(self):
                self.is_open = False

        monkeypatch.setattr(transports.serial, "Serial", FakeSerial)
        transport = SerialTransport("/dev/ttyACM0", baudrate=921600)

        assert transport.connect() is True
        assert transport.serial.kwargs['baudrate'] == 921600
        assert transport.send(b'\x01' * 112) is True
        assert written == [b'\x01' * 112]

        transport.close()
        assert transport.enabled is False


class TestCreateTransport:
    """Test the transport factory."""

    def test_udp(self):
        transport = create_transport(NetworkConfig(address="127.0.0.1", port=55555))

        assert isinstance(transport, UdpTransport)
        assert transport.enabled is True
        transport.close()

    def test_mock(self):
        assert isinstance(create_transport(NetworkConfig(transport="mock")), MockTransport)

    def test_disabled_network(self):
        transport = create_transport(NetworkConfig(enabled=False))

        assert transport.enabled is False
        assert transport.send(b'\x00' * 112) is False

    def test_serial_without_port(self):
        transport = create_transport(NetworkConfig(transport="serial"))

        assert isinstance(transport, SerialTransport)
        assert transport.enabled is False

    def test_unknown_transport_is_disabled(self):
        """Test that an unknown transport name mutes output instead of raising."""
        transport = create_transport(NetworkConfig(transport="carrier-pigeon"))

        assert transport.enabled is False
        assert "carrier-pigeon" in transport.last_error
        assert transport.send(b'\x00' * 112) is False
