"""
RPLidar Configuration

One-shot request/response exchanges: device info, health and the scan mode
table read through GET_LIDAR_CONF.

Every function sends its command, waits for and checks the descriptor, then
reads the payload. Nothing is retried; the first failure propagates.
"""


import logging

from construct import Int16ul, Int32ul

from rplidar_cmd import *
from rplidar_protocol import read_response, send_command, wait_for_descriptor
from rplidar_types import (Configuration, DeviceInfo, Descriptor, Health,
                           HealthStatus, RPLidarConfigTypeError,
                           RPLidarDescriptorError, ScanModeConfiguration)


logger = logging.getLogger(__name__)


def get_device_info(transport, timeout_ms):
    """Obtain hardware information about RPLidar"""

    send_command(transport, RPLIDAR_CMD_GET_DEVICE_INFO)
    wait_for_descriptor(transport, INFO_DESCRIPTOR, "get info", timeout_ms)
    raw = read_response(transport, INFO_DESCRIPTOR.length, "get info",
                        timeout_ms)
    parsed = rplidar_response_device_info_format.parse(raw)

    return DeviceInfo(model=parsed.model,
                      firmware=(parsed.firmware_version_major,
                                parsed.firmware_version_minor),
                      hardware=parsed.hardware_version,
                      serial_number=parsed.serial_number)


def get_health(transport, timeout_ms):
    """Obtain health information about RPLidar"""

    send_command(transport, RPLIDAR_CMD_GET_DEVICE_HEALTH)
    wait_for_descriptor(transport, HEALTH_DESCRIPTOR, "get health", timeout_ms)
    raw = read_response(transport, HEALTH_DESCRIPTOR.length, "get health",
                        timeout_ms)
    parsed = rplidar_response_device_health_format.parse(raw)

    return Health(status=HealthStatus.from_byte(parsed.status),
                  error_code=parsed.error_code)


def get_config_type(transport, config_type, timeout_ms, request_payload=b"",
                    expected_length=None):
    """Query one configuration value with GET_LIDAR_CONF.

    Args:
        transport: the open transport.

        config_type: one of the RPLIDAR_CONF_* words.

        timeout_ms: receive budget for the descriptor and for the payload.

        request_payload: extra key bytes, e.g. the scan mode id.

        expected_length: answer size without the echoed type word, or None
        when the size varies (mode names).

    Returns:
        the answer bytes that follow the echoed type word.

    Raises:
        RPLidarConfigTypeError: if the device answers another type word.
    """

    response_name = "get config"
    expected = Descriptor(
        None if expected_length is None else expected_length + 4,
        True, RPLIDAR_ANS_TYPE_GET_LIDAR_CONF)

    send_command(transport, RPLIDAR_CMD_GET_LIDAR_CONF,
                 rplidar_conf_format.build(dict(config_type=config_type,
                                                payload=request_payload)))
    descriptor = wait_for_descriptor(transport, expected, response_name,
                                     timeout_ms)
    raw = read_response(transport, descriptor.length, response_name,
                        timeout_ms)

    if len(raw) < 4:
        raise RPLidarDescriptorError(response_name, "length", ">= 4",
                                     len(raw))

    parsed = rplidar_conf_format.parse(raw)
    if parsed.config_type != config_type:
        raise RPLidarConfigTypeError(config_type, parsed.config_type)

    return parsed.payload


def get_scan_mode(transport, mode, timeout_ms):
    """Read name, sample duration, range and answer type of one scan mode."""

    key = Int16ul.build(mode)

    response = get_config_type(transport, RPLIDAR_CONF_SCAN_MODE_NAME,
                               timeout_ms, key)
    name = response.decode("ascii", errors="replace").rstrip("\x00")

    response = get_config_type(transport, RPLIDAR_CONF_SCAN_MODE_US_PER_SAMPLE,
                               timeout_ms, key, 4)
    us_per_sample = Int32ul.parse(response) / 256.0

    response = get_config_type(transport, RPLIDAR_CONF_SCAN_MODE_MAX_DISTANCE,
                               timeout_ms, key, 4)
    max_distance = Int32ul.parse(response) / 256.0

    response = get_config_type(transport, RPLIDAR_CONF_SCAN_MODE_ANS_TYPE,
                               timeout_ms, key, 1)

    return ScanModeConfiguration(name=name,
                                 us_per_sample=us_per_sample,
                                 max_distance=max_distance,
                                 answer_type=response[0])


def get_configuration(transport, timeout_ms):
    """Obtain the typical scan mode and the table of all scan modes.

    The table is only returned once every mode in range(count) was read;
    a failing query for any mode aborts the whole fetch.
    """

    response = get_config_type(transport, RPLIDAR_CONF_SCAN_MODE_TYPICAL,
                               timeout_ms, expected_length=2)
    typical_mode = Int16ul.parse(response)

    response = get_config_type(transport, RPLIDAR_CONF_SCAN_MODE_COUNT,
                               timeout_ms, expected_length=2)
    count = Int16ul.parse(response)
    logger.debug("RPLidar reports %d scan modes, typical is %d.",
                 count, typical_mode)

    modes = {}
    for mode in range(count):
        modes[mode] = get_scan_mode(transport, mode, timeout_ms)

    return Configuration(typical_mode=typical_mode, modes=modes)
