"""Tests for command framing, descriptor synchronization and response reading."""

import pytest

from fakes import FakeTransport, descriptor, xor_all
from rplidar_protocol import (check_descriptor, checksum, encode_command,
                              parse_descriptor, read_descriptor, read_response)
from rplidar_types import (Descriptor, RPLidarDescriptorError,
                           RPLidarDesyncError, RPLidarTimeoutError)


class EndlessGarbage(FakeTransport):
    """Never stops sending bytes that contain no descriptor."""

    def read(self, size):
        return b"\x00" * size


def test_command_without_payload():
    """Plain commands are just the sync byte and the command byte."""
    assert encode_command(0x25) == b"\xA5\x25"
    assert encode_command(0x52) == b"\xA5\x52"


def test_command_with_payload_layout():
    """Express scan request: size byte, payload and XOR checksum."""
    frame = encode_command(0x82, b"\x00" * 5)
    assert frame == b"\xA5\x82\x05\x00\x00\x00\x00\x00\x22"


def test_get_config_request_bytes():
    frame = encode_command(0x84, b"\x70\x00\x00\x00")
    assert frame == b"\xA5\x84\x04\x70\x00\x00\x00\x55"


@pytest.mark.parametrize("command,payload", [
    (0x84, b"\x7F\x00\x00\x00\x02\x00"),
    (0x82, b"\x02\x00\x00\x00\x00"),
    (0xF0, b"\x94\x02"),
    (0x84, b""),
    (0x84, bytes(range(255))),
])
def test_embedded_checksum_matches_recomputed(command, payload):
    """The trailing byte is the XOR of everything before it."""
    frame = encode_command(command, payload)
    assert frame[2] == len(payload)
    assert frame[3:-1] == payload
    assert frame[-1] == xor_all(frame[:-1])
    assert checksum(frame) == 0


def test_payload_too_long():
    with pytest.raises(ValueError):
        encode_command(0x84, bytes(256))


def test_parse_descriptor_full_length_field():
    """All 30 length bits are used, the top two bits are the mode."""
    desc = parse_descriptor(descriptor(0x123456, False, 0x82))
    assert desc == Descriptor(0x123456, False, 0x82)

    desc = parse_descriptor(descriptor(300, True, 0x20))
    assert desc == Descriptor(300, True, 0x20)


def test_health_descriptor_bytes():
    desc = parse_descriptor(bytes([0xA5, 0x5A, 0x03, 0x00, 0x00, 0x00, 0x06]))
    assert desc == Descriptor(3, True, 0x06)


def test_read_descriptor_after_garbage():
    """Garbage before the descriptor is skipped and nothing after it is read."""
    transport = FakeTransport()
    transport.feed(b"\x00\xA5\x11\x5A\xA5"
                   + descriptor(20, True, 0x04) + b"\x99\x98")

    desc = read_descriptor(transport, "get info", 500)

    assert desc == Descriptor(20, True, 0x04)
    assert bytes(transport.rx) == b"\x99\x98"


def test_read_descriptor_aligned():
    transport = FakeTransport()
    transport.feed(descriptor(5, False, 0x81) + b"\x3E")

    assert read_descriptor(transport, "scan", 500) == Descriptor(5, False, 0x81)
    assert bytes(transport.rx) == b"\x3E"


def test_read_descriptor_nothing_received():
    transport = FakeTransport()
    with pytest.raises(RPLidarTimeoutError) as excinfo:
        read_descriptor(transport, "get health", 500)
    assert not isinstance(excinfo.value, RPLidarDesyncError)
    assert "get health" in excinfo.value.message


def test_read_descriptor_only_garbage():
    transport = FakeTransport()
    transport.feed(bytes(range(0x10, 0x30)))
    with pytest.raises(RPLidarDesyncError):
        read_descriptor(transport, "get health", 500)


def test_read_descriptor_deadline():
    """A line full of noise still ends after the receive timeout."""
    transport = EndlessGarbage(clock_step=10)
    with pytest.raises(RPLidarDesyncError):
        read_descriptor(transport, "get info", 100)


def test_check_descriptor_accepts_match():
    check_descriptor(Descriptor(3, True, 0x06), Descriptor(3, True, 0x06),
                     "get health")


def test_check_descriptor_unconstrained_length():
    check_descriptor(Descriptor(None, True, 0x20), Descriptor(17, True, 0x20),
                     "get config")


@pytest.mark.parametrize("actual,field", [
    (Descriptor(3, True, 0x07), "data_type"),
    (Descriptor(4, True, 0x06), "length"),
    (Descriptor(3, False, 0x06), "is_single"),
])
def test_check_descriptor_names_field(actual, field):
    expected = Descriptor(3, True, 0x06)
    with pytest.raises(RPLidarDescriptorError) as excinfo:
        check_descriptor(expected, actual, "get health")

    error = excinfo.value
    assert error.field == field
    assert error.expected == getattr(expected, field)
    assert error.actual == getattr(actual, field)
    assert field in str(error)


def test_wrong_data_type_message():
    with pytest.raises(RPLidarDescriptorError) as excinfo:
        check_descriptor(Descriptor(20, True, 0x04),
                         Descriptor(20, True, 0x05), "get info")
    assert "0x04" in excinfo.value.message
    assert "0x05" in excinfo.value.message


class Trickle(FakeTransport):
    """Delivers at most two bytes per read."""

    def read(self, size):
        return super().read(min(size, 2))


def test_read_response_partial_reads():
    transport = Trickle()
    transport.feed(b"\x00\x05\x00\x01\x02")
    assert read_response(transport, 3, "get health", 500) == b"\x00\x05\x00"
    assert bytes(transport.rx) == b"\x01\x02"


def test_read_response_timeout():
    transport = FakeTransport()
    transport.feed(b"\x01\x02")
    with pytest.raises(RPLidarTimeoutError) as excinfo:
        read_response(transport, 20, "get info", 500)
    assert "2 of 20" in excinfo.value.message


def test_read_response_deadline():
    transport = Trickle(clock_step=300)
    transport.feed(bytes(10))
    with pytest.raises(RPLidarTimeoutError):
        read_response(transport, 10, "get info", 500)
