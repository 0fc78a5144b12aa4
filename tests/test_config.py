"""Tests for device info, health and the scan mode table."""

import struct

import pytest

import rplidar_config
from fakes import FakeTransport, config_reply, descriptor
from rplidar_types import (HealthStatus, RPLidarConfigTypeError,
                           RPLidarDescriptorError, RPLidarTimeoutError)


TIMEOUT_MS = 500

MODES = [
    (b"Standard\x00", 508 * 256, 12 * 256, 0x81),
    (b"Express\x00", 254 * 256, 12 * 256, 0x82),
    (b"Boost\x00\x00\x00", 128 * 256 + 64, 25 * 256 + 128, 0x84),
]


def mode_replies(modes, fail_at=None):
    """GET_LIDAR_CONF replies for typical mode, count and every mode.

    fail_at=(mode, config_type) leaves that reply out, so the query times
    out.
    """
    replies = [config_reply(0x7C, struct.pack("<H", 1)),
               config_reply(0x70, struct.pack("<H", len(modes)))]
    for mode, (name, us, dist, ans) in enumerate(modes):
        for config_type, payload in ((0x7F, name),
                                     (0x71, struct.pack("<I", us)),
                                     (0x74, struct.pack("<I", dist)),
                                     (0x75, bytes([ans]))):
            if fail_at == (mode, config_type):
                replies.append(None)
                return replies
            replies.append(config_reply(config_type, payload))
    return replies


def sent_queries(transport):
    """(config_type, key) of every GET_LIDAR_CONF request written."""
    queries = []
    for frame in transport.written:
        assert frame[:2] == b"\xA5\x84"
        payload = frame[3:-1]
        config_type = struct.unpack_from("<I", payload)[0]
        key = struct.unpack_from("<H", payload, 4)[0] if len(payload) > 4 else None
        queries.append((config_type, key))
    return queries


def test_health_good_with_error_code():
    transport = FakeTransport()
    transport.expect(bytes([0xA5, 0x5A, 0x03, 0x00, 0x00, 0x00, 0x06,
                            0x00, 0x05, 0x00]))

    health = rplidar_config.get_health(transport, TIMEOUT_MS)

    assert transport.written == [b"\xA5\x52"]
    assert health.status == HealthStatus.GOOD
    assert health.error_code == 5


@pytest.mark.parametrize("raw,status", [
    (0, HealthStatus.GOOD),
    (1, HealthStatus.WARNING),
    (2, HealthStatus.ERROR),
    (7, HealthStatus.UNKNOWN),
])
def test_health_status_values(raw, status):
    transport = FakeTransport()
    transport.expect(descriptor(3, True, 0x06) + bytes([raw, 0x34, 0x12]))

    health = rplidar_config.get_health(transport, TIMEOUT_MS)

    assert health.status == status
    assert health.error_code == 0x1234


def test_device_info():
    transport = FakeTransport()
    transport.expect(descriptor(20, True, 0x04)
                     + bytes([0x18, 0x1D, 0x01, 0x07]) + bytes(range(16)))

    info = rplidar_config.get_device_info(transport, TIMEOUT_MS)

    assert transport.written == [b"\xA5\x50"]
    assert info.model == 0x18
    assert info.firmware == (1, 29)
    assert info.firmware_version == "1.29"
    assert info.hardware == 7
    assert info.serial_number == bytes(range(16))
    assert info.serial_number_hex == "000102030405060708090A0B0C0D0E0F"


def test_device_info_wrong_data_type():
    transport = FakeTransport()
    transport.expect(descriptor(20, True, 0x05) + bytes(20))

    with pytest.raises(RPLidarDescriptorError) as excinfo:
        rplidar_config.get_device_info(transport, TIMEOUT_MS)

    assert excinfo.value.field == "data_type"
    assert excinfo.value.expected == 0x04
    assert excinfo.value.actual == 0x05


def test_device_info_short_payload():
    transport = FakeTransport()
    transport.expect(descriptor(20, True, 0x04) + bytes(12))

    with pytest.raises(RPLidarTimeoutError):
        rplidar_config.get_device_info(transport, TIMEOUT_MS)


def test_config_type_strips_echo():
    transport = FakeTransport()
    transport.expect(config_reply(0x71, struct.pack("<I", 0x1FC00)))

    answer = rplidar_config.get_config_type(transport, 0x71, TIMEOUT_MS,
                                            b"\x02\x00", 4)

    assert answer == struct.pack("<I", 0x1FC00)
    assert transport.written == [
        bytes([0xA5, 0x84, 0x06, 0x71, 0x00, 0x00, 0x00, 0x02, 0x00,
               0xA5 ^ 0x84 ^ 0x06 ^ 0x71 ^ 0x02])]


def test_config_type_echo_mismatch():
    transport = FakeTransport()
    transport.expect(config_reply(0x74, struct.pack("<I", 0)))

    with pytest.raises(RPLidarConfigTypeError) as excinfo:
        rplidar_config.get_config_type(transport, 0x71, TIMEOUT_MS,
                                       b"\x00\x00", 4)

    assert excinfo.value.expected == 0x71
    assert excinfo.value.actual == 0x74


def test_config_type_length_checked():
    transport = FakeTransport()
    transport.expect(config_reply(0x70, struct.pack("<I", 3)))

    with pytest.raises(RPLidarDescriptorError) as excinfo:
        rplidar_config.get_config_type(transport, 0x70, TIMEOUT_MS,
                                       expected_length=2)

    assert excinfo.value.field == "length"
    assert excinfo.value.expected == 6
    assert excinfo.value.actual == 8


def test_config_type_variable_length():
    """Names have no fixed length, any length is accepted."""
    name = b"Sensitivity\x00\x00\x00"
    transport = FakeTransport()
    transport.expect(config_reply(0x7F, name))

    answer = rplidar_config.get_config_type(transport, 0x7F, TIMEOUT_MS,
                                            b"\x03\x00")
    assert answer == name


def test_configuration_table():
    transport = FakeTransport()
    transport.expect(*mode_replies(MODES))

    configuration = rplidar_config.get_configuration(transport, TIMEOUT_MS)

    assert configuration.typical_mode == 1
    assert sorted(configuration.modes) == [0, 1, 2]

    standard = configuration.modes[0]
    assert standard.name == "Standard"
    assert standard.us_per_sample == 508.0
    assert standard.max_distance == 12.0
    assert standard.answer_type == 0x81

    boost = configuration.modes[2]
    assert boost.name == "Boost"
    assert boost.us_per_sample == 128.25
    assert boost.max_distance == 25.5
    assert boost.answer_type == 0x84

    assert configuration.typical.name == "Express"


def test_configuration_issues_four_queries_per_mode():
    transport = FakeTransport()
    transport.expect(*mode_replies(MODES))

    rplidar_config.get_configuration(transport, TIMEOUT_MS)

    queries = sent_queries(transport)
    assert queries[:2] == [(0x7C, None), (0x70, None)]
    assert len(queries[2:]) == 3 * 4
    assert queries[2:] == [(config_type, mode)
                           for mode in range(3)
                           for config_type in (0x7F, 0x71, 0x74, 0x75)]


def test_configuration_failure_returns_nothing():
    """A failing query on mode 1 aborts the whole table."""
    transport = FakeTransport()
    transport.expect(*mode_replies(MODES, fail_at=(1, 0x74)))

    with pytest.raises(RPLidarTimeoutError):
        rplidar_config.get_configuration(transport, TIMEOUT_MS)

    queries = sent_queries(transport)
    assert queries[-1] == (0x74, 1)
    assert len(queries) == 2 + 4 + 3


def test_configuration_without_modes():
    transport = FakeTransport()
    transport.expect(*mode_replies([]))

    configuration = rplidar_config.get_configuration(transport, TIMEOUT_MS)

    assert configuration.modes == {}
    assert configuration.typical is None
