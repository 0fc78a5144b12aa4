"""Tests for the pyserial transport, using the loop:// URL handler."""

import pytest
import serial

from rplidar_serial import RPLidarSerial
from rplidar_types import RPLidarSettings, RPLidarTransportError


@pytest.fixture
def port():
    port = RPLidarSerial(RPLidarSettings("loop://", timeout=0.05))
    assert port.open()
    yield port
    port.close()


def test_open_and_close():
    port = RPLidarSerial(RPLidarSettings("loop://", timeout=0.05))
    assert not port.is_open

    assert port.open()
    assert port.is_open
    assert port.open()

    assert port.close()
    assert not port.is_open
    assert port.close()


def test_open_without_port_name():
    assert not RPLidarSerial(RPLidarSettings()).open()


def test_open_missing_device():
    port = RPLidarSerial(RPLidarSettings("/dev/does-not-exist-rplidar"))
    assert not port.open()
    assert not port.is_open


def test_write_read(port):
    port.write(b"\xA5\x52")

    assert port.bytes_available() == 2
    assert port.read(2) == b"\xA5\x52"
    assert port.read(1) == b""


def test_discard_input_buffer(port):
    port.write(b"RP LIDAR System.\r\n")
    port.discard_input_buffer()

    assert port.bytes_available() == 0


def test_set_motor_drives_dtr(port):
    port.set_motor(True)
    assert port.serial_port.dtr is False

    port.set_motor(False)
    assert port.serial_port.dtr is True


def test_read_error_is_transport_error(port, monkeypatch):
    def broken(size):
        raise serial.SerialException("device reports readiness to read but "
                                     "returned no data")
    monkeypatch.setattr(port.serial_port, "read", broken)

    with pytest.raises(RPLidarTransportError) as excinfo:
        port.read(5)
    assert isinstance(excinfo.value.reason, serial.SerialException)


def test_monotonic_clock(port):
    first = port.now_monotonic_ms()
    assert port.now_monotonic_ms() >= first
