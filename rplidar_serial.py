'''
RPLidar Serial Port Interface

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
 *  Serial based RPlidar Driver
 *
 *  Copyright 2009 - 2014 RoboPeak Team
 *  http://www.robopeak.com
 *
'''

import logging
import time

import serial

from rplidar_types import RPLidarTransportError


logger = logging.getLogger(__name__)


class RPLidarSerial:
    """Serial port the RPLidar is attached to.

    A thin wrapper around a pyserial port that reports failures as
    RPLidarTransportError and controls the motor through the DTR line (DTR
    is wired to pin MOTOCTL on RPLidar).

    portname may also be a pyserial URL such as socket://host:port.

    The port is owned exclusively by one RPLidar; it is not thread-safe.
    """

    def __init__(self, settings):

        self.settings = settings
        self.serial_port = None

    @property
    def is_open(self):
        return self.serial_port is not None and self.serial_port.is_open

    def open(self):
        """Open the port, return True on success."""

        if self.is_open:
            return True

        if not self.settings.portname:
            logger.error("No port configured.")
            return False

        try:
            args = self.settings.serial_args()
            self.serial_port = serial.serial_for_url(args.pop("port"), **args)
        except serial.SerialException as e:
            logger.error("Error at opening port %s: %s",
                         self.settings.portname, e)
            self.serial_port = None
            return False

        logger.debug("Opened port %s at %d baud.", self.settings.portname,
                     self.settings.baudrate)
        return True

    def close(self):
        """Close the port, return True if it is closed afterwards."""

        if not self.is_open:
            return True

        try:
            self.serial_port.close()
        except serial.SerialException as e:
            logger.error("Error at closing port %s: %s",
                         self.settings.portname, e)
            return False

        self.serial_port = None
        return True

    def read(self, size):
        """Read up to size bytes. Returns fewer, or none, when the port read
        timeout expires first."""

        try:
            return self.serial_port.read(size)
        except serial.SerialException as e:
            raise RPLidarTransportError("Error at reading from port.", e) from e

    def write(self, data):

        try:
            self.serial_port.write(data)
        except serial.SerialException as e:
            raise RPLidarTransportError("Error at writing to port.", e) from e

    def bytes_available(self):

        try:
            return self.serial_port.in_waiting
        except (serial.SerialException, OSError) as e:
            raise RPLidarTransportError("Error at checking readable bytes "
                                        "count.", e) from e

    def discard_input_buffer(self):

        try:
            self.serial_port.reset_input_buffer()
        except serial.SerialException as e:
            raise RPLidarTransportError("Error on flushing input buffer.",
                                        e) from e

    def set_motor(self, on):
        """Motor runs while DTR is low."""
        self.serial_port.dtr = not on

    def now_monotonic_ms(self):
        return int(time.monotonic() * 1000)
