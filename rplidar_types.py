"""
RPLidar Types Definition

partly translated from <rptypes.h> of RPLidar SDK v1.4.5
by Tong Wang

 * Copyright (c) 2014, RoboPeak
 * All rights reserved.
 *
 * Redistribution and use in source and binary forms, with or without
 * modification, are permitted provided that the following conditions are met:
 *
 * 1. Redistributions of source code must retain the above copyright notice,
 *    this list of conditions and the following disclaimer.
 *
 * 2. Redistributions in binary form must reproduce the above copyright notice,
 *    this list of conditions and the following disclaimer in the documentation
 *    and/or other materials provided with the distribution.
 *
 * THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
 * AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO,
 * THE IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR
 * PURPOSE ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR
 * CONTRIBUTORS BE LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL,
 * EXEMPLARY, OR CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO,
 * PROCUREMENT OF SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS;
 * OR BUSINESS INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF LIABILITY,
 * WHETHER IN CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR
 * OTHERWISE) ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE,
 * EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
 *

 *
 *  RoboPeak LIDAR System
 *  Common Types definition
 *
 *  Copyright 2009 - 2014 RoboPeak Team
 *  http://www.robopeak.com
 *
"""


import enum
from collections import deque, namedtuple
import numpy as np
import serial


class Descriptor(namedtuple("Descriptor", "length is_single data_type")):
    """Response descriptor sent by RPLidar ahead of every answer.

    Attributes:
        length: payload size in bytes (30 bits on the wire). None in an
        expected descriptor means the length is not checked.

        is_single: True for a single response, False for a continuous
        stream (scan answers).

        data_type: one byte identifying the answer format.
    """

    __slots__ = ()

    def __str__(self):
        length = "*" if self.length is None else self.length
        mode = "single" if self.is_single else "stream"
        return "Descriptor(length=%s, %s, type=0x%02X)" % (length, mode,
                                                          self.data_type)


class Measurement(namedtuple("Measurement",
                             "is_new_scan angle distance quality")):
    """A single decoded sample.

    Attributes:
        is_new_scan: True for the first sample of a new revolution.

        angle: angle in degrees, in [0, 360), with offset and flip applied.

        distance: distance in meters. 0.0 means no valid reflection.

        quality: reflected signal quality, only reported in legacy scan
        mode; None in express mode.
    """

    __slots__ = ()

    def __new__(cls, is_new_scan, angle, distance, quality=None):
        return super().__new__(cls, is_new_scan, angle, distance, quality)


class DeviceInfo(namedtuple("DeviceInfo",
                            "model firmware hardware serial_number")):
    """Answer to GET_INFO. firmware is a (major, minor) tuple and
    serial_number the raw 16 byte identifier."""

    __slots__ = ()

    @property
    def firmware_version(self):
        return "%d.%d" % self.firmware

    @property
    def serial_number_hex(self):
        return self.serial_number.hex().upper()


class HealthStatus(enum.IntEnum):

    GOOD = 0
    WARNING = 1
    ERROR = 2
    UNKNOWN = 0xFF

    @classmethod
    def from_byte(cls, value):
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


Health = namedtuple("Health", "status error_code")


ScanModeConfiguration = namedtuple("ScanModeConfiguration",
                                   "name us_per_sample max_distance answer_type")


class Configuration(namedtuple("Configuration", "typical_mode modes")):
    """Scan mode table reported by the device.

    Attributes:
        typical_mode: id of the mode recommended by the device.

        modes: dict mapping every mode id in range(count) to its
        ScanModeConfiguration.
    """

    __slots__ = ()

    @property
    def typical(self):
        return self.modes.get(self.typical_mode)


class RPLidarSettings:
    """Settings handed to RPLidar at construction.

    Attributes:
        portname: serial device, e.g. "/dev/ttyUSB0" or "COM3".

        baudrate: serial baud rate.

        timeout: pyserial read timeout in seconds. A read returning nothing
        within this time is treated as a receive timeout.

        receive_timeout_ms: overall budget for one descriptor or response.

        reset_wait_ms: settle delay after RESET. The device needs about
        700 ms in practice and prints its boot banner meanwhile.

        angle_offset: degrees added to every measurement angle.

        is_flipped: True when the device is mounted upside down.
    """

    def __init__(self, portname=None, baudrate=115200, timeout=0.5,
                 receive_timeout_ms=500, reset_wait_ms=700,
                 angle_offset=0.0, is_flipped=False):

        self.portname = portname
        self.baudrate = baudrate
        self.timeout = timeout
        self.receive_timeout_ms = receive_timeout_ms
        self.reset_wait_ms = reset_wait_ms
        self.angle_offset = angle_offset
        self.is_flipped = is_flipped

    def serial_args(self):
        """keyword arguments for serial.Serial()"""

        return dict(port=self.portname,
                    baudrate=self.baudrate,
                    stopbits=serial.STOPBITS_ONE,
                    parity=serial.PARITY_NONE,
                    timeout=self.timeout)


class RPLidarFrame:
    """A moving window of the most recent measurements, converted to
    Cartesian and polar coordinates.

    This is mainly for real-time visualization of the points.

    Attributes:
        angle_d: a deque keeping angle in degrees

        angle_r: a deque keeping angle in radians

        distance: a deque keeping distance in meters

        x: a deque keeping x coordinate in meters

        y: a deque keeping y coordinate in meters

        revolutions: number of measurements seen with is_new_scan set
    """

    def __init__(self, maxlen=720):

        self.angle_d = deque(maxlen=maxlen)
        self.angle_r = deque(maxlen=maxlen)
        self.distance = deque(maxlen=maxlen)
        self.x = deque(maxlen=maxlen)
        self.y = deque(maxlen=maxlen)
        self.revolutions = 0

    def add_measurement(self, measurement):
        """add a measurement into the deques, skipping samples without a
        valid distance.

        Args:
            measurement: a Measurement.
        """

        if measurement.is_new_scan:
            self.revolutions += 1

        if measurement.distance <= 0:
            return

        angle_r = np.radians(measurement.angle)

        self.angle_d.append(measurement.angle)
        self.angle_r.append(angle_r)
        self.distance.append(measurement.distance)
        self.x.append(measurement.distance * np.sin(angle_r))
        self.y.append(measurement.distance * np.cos(angle_r))


class RPLidarError(Exception):
    def __init__(self, message, reason=None):
        super().__init__(message)
        self.message = message
        if reason is not None:
            self.reason = reason

    def __str__(self):
        return "[RPLidar ERROR] %s" % str(self.message)

    def log(self):
        ret = "%s" % str(self.message)
        if hasattr(self, "reason"):
            return "".join([ret, "\n==> %s" % str(self.reason)])
        return ret


class RPLidarTimeoutError(RPLidarError):
    """No expected bytes within the receive deadline."""


class RPLidarDesyncError(RPLidarTimeoutError):
    """Bytes arrived, but the descriptor sync pattern never did."""


class RPLidarTransportError(RPLidarError):
    """The serial port failed to read or write."""


class RPLidarDescriptorError(RPLidarError):

    def __init__(self, response_name, field, expected, actual):
        if field == "data_type":
            detail = "0x%02X, got 0x%02X" % (expected, actual)
        else:
            detail = "%s, got %s" % (expected, actual)
        super().__init__("Expected %s descriptor %s %s." % (
                         response_name, field, detail))
        self.field = field
        self.expected = expected
        self.actual = actual


class RPLidarChecksumError(RPLidarError):
    """A scan frame failed its structural check or checksum."""


class RPLidarConfigTypeError(RPLidarError):

    def __init__(self, expected, actual):
        super().__init__("Expected get config response type 0x%02X, "
                         "got 0x%02X." % (expected, actual))
        self.expected = expected
        self.actual = actual


class RPLidarStateError(RPLidarError):
    """The driver is not in a state that allows the call."""
