"""
RPLidar Python Driver

Talks to an RPLidar over a serial port: device info, health, the scan mode
table, and legacy or express scanning as a sequence of Measurement.

    lidar = RPLidar(RPLidarSettings("/dev/ttyUSB0"))
    lidar.connect()
    lidar.start_motor()
    lidar.start_express_scan()
    for measurement in lidar.iter_measurements(1000):
        ...
    lidar.stop_scan()
    lidar.stop_motor()
    lidar.disconnect()

The driver is not thread-safe, see rplidar_monitor for a background reader.
"""


import functools
import logging
import time

import rplidar_config
from rplidar_cmd import *
from rplidar_protocol import read_descriptor, read_response, send_command
from rplidar_scan import AngleCalibration, decoder_for
from rplidar_serial import RPLidarSerial
from rplidar_types import (RPLidarDescriptorError, RPLidarError,
                           RPLidarSettings, RPLidarStateError)


logger = logging.getLogger(__name__)

# pause between a RESET or STOP and flushing the input buffer, the device
# keeps sending for a moment after the command arrives
COMMAND_SETTLE_TIME = 0.01


def logged(operation):
    """Log an RPLidarError raised by the wrapped call once, then re-raise."""

    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, *args, **kwargs):
            try:
                return method(self, *args, **kwargs)
            except RPLidarError as e:
                logger.error("Error at %s: %s", operation, e.log())
                raise
        return wrapper
    return decorator


class RPLidar:

    def __init__(self, settings=None, transport=None):

        self.settings = settings if settings is not None else RPLidarSettings()
        self.transport = (transport if transport is not None
                          else RPLidarSerial(self.settings))

        # status variables
        self.motor_running = None
        self.calibration = AngleCalibration(self.settings.angle_offset,
                                            self.settings.is_flipped)
        self.decoder = None

    @property
    def is_connected(self):
        return self.transport.is_open

    @property
    def is_scanning(self):
        return self.decoder is not None

    @property
    def receive_timeout_ms(self):
        return self.settings.receive_timeout_ms

    def connect(self):
        """Open the serial port. Returns True if the port is open."""

        if self.transport.open():
            logger.debug("Connected to RPLidar on port %s",
                         self.settings.portname)
            return True
        return False

    def disconnect(self):
        """Stop a running scan and close the serial port. Returns True if
        the port is closed."""

        if not self.is_connected:
            return True

        try:
            if self.is_scanning:
                self.stop_scan()
        finally:
            closed = self.transport.close()

        if closed:
            logger.debug("Disconnected from RPLidar on port %s",
                         self.settings.portname)
        return closed

    @logged("reset")
    def reset(self, wait_ms=None):
        """Reset RPLidar and wait until it is ready again.

        The protocol documentation promises 2 ms, in practice the device
        takes about 700 ms and prints a boot banner, which is read out and
        logged so it cannot disturb the next request.

        Args:
            wait_ms: settle delay, defaults to settings.reset_wait_ms.
        """

        if wait_ms is None:
            wait_ms = self.settings.reset_wait_ms

        send_command(self.transport, RPLIDAR_CMD_RESET)
        logger.debug("Command RESET sent.")

        time.sleep(COMMAND_SETTLE_TIME)
        self.transport.discard_input_buffer()
        self.decoder = None

        remaining = wait_ms / 1000.0 - COMMAND_SETTLE_TIME
        if remaining > 0:
            time.sleep(remaining)

        length = self.transport.bytes_available()
        if length > 0:
            data = read_response(self.transport, length, "reset",
                                 self.receive_timeout_ms)
            message = data.decode("ascii", errors="replace")
            logger.info("Reset message: %s", message.replace("\r\n", " "))

    def start_motor(self):
        """Start RPLidar motor by setting DTR (which is connected to pin
        MOTOCTL on RPLidar) to False."""

        self.transport.set_motor(True)
        self.motor_running = True
        logger.debug("RPLidar motor is turned ON.")

    def stop_motor(self):
        """Stop RPLidar motor by setting DTR to True."""

        self.transport.set_motor(False)
        self.motor_running = False
        logger.debug("RPLidar motor is turned OFF.")

    @logged("get info")
    def get_device_info(self):
        """Obtain hardware information about RPLidar"""

        self._prepare_request()
        return rplidar_config.get_device_info(self.transport,
                                              self.receive_timeout_ms)

    @logged("get health")
    def get_health(self):
        """Obtain health information about RPLidar"""

        self._prepare_request()
        return rplidar_config.get_health(self.transport,
                                         self.receive_timeout_ms)

    @logged("get config")
    def get_configuration(self):
        """Obtain the scan mode table of RPLidar"""

        self._prepare_request()
        return rplidar_config.get_configuration(self.transport,
                                                self.receive_timeout_ms)

    @logged("scan")
    def start_scan(self):
        """Send SCAN command, measurements carry a quality value."""

        self._start(RPLIDAR_CMD_SCAN, None, LEGACY_SCAN_DESCRIPTOR)

    @logged("express scan")
    def start_express_scan(self, mode=0):
        """Send EXPRESS_SCAN command, measurements carry no quality value.

        Args:
            mode: working mode byte, 0 for the legacy express answer.
        """

        payload = rplidar_express_scan_request_format.build(
            dict(working_mode=mode))
        self._start(RPLIDAR_CMD_EXPRESS_SCAN, payload, EXPRESS_SCAN_DESCRIPTOR)

    def _start(self, command, payload, expected):

        self._prepare_request()
        response_name = COMMAND_NAMES[command]

        send_command(self.transport, command, payload)
        descriptor = read_descriptor(self.transport, response_name,
                                     self.receive_timeout_ms)
        try:
            self.decoder = decoder_for(descriptor, expected, response_name,
                                       self.transport, self.calibration,
                                       self.receive_timeout_ms)
        except RPLidarDescriptorError:
            # the device may be streaming an answer nobody decodes
            self._stop()
            raise
        logger.debug("Start scanning, answer %s.", descriptor)

    @logged("stop")
    def stop_scan(self):
        """Send STOP command and drop whatever the device still sent."""

        self._stop()
        logger.debug("Stop scanning.")

    def _stop(self):
        self.decoder = None
        send_command(self.transport, RPLIDAR_CMD_STOP)

        time.sleep(COMMAND_SETTLE_TIME)
        self.transport.discard_input_buffer()

    @logged("read measurement")
    def read_measurement(self):
        """Block until the next Measurement of the running scan arrives.

        Raises:
            RPLidarStateError: if no scan was started.

            RPLidarTimeoutError: if the stream stalls.
        """

        if self.decoder is None:
            raise RPLidarStateError("No scan in progress.")
        return self.decoder.read_measurement()

    def iter_measurements(self, max_count=None):
        """Yield measurements of the running scan, forever unless
        max_count is given. An error ends the iteration by propagating."""

        count = 0
        while max_count is None or count < max_count:
            yield self.read_measurement()
            count += 1

    def set_angle_offset(self, degrees):
        """Degrees added to every following measurement angle."""
        self.calibration.offset = degrees

    def set_flipped(self, is_flipped):
        """Mirror following measurement angles, for upside down mounting."""
        self.calibration.is_flipped = is_flipped

    def _prepare_request(self):
        if self.decoder is not None:
            raise RPLidarStateError("Scan in progress, stop it first.")
        self.transport.discard_input_buffer()
