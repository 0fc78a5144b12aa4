"""
RPLidar Protocol

partly translated from <rplidar_protocol.h> of RPLidar SDK v1.4.5
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
 *  Data Packet IO protocol definition for RP-LIDAR
 *
 *  Copyright 2009 - 2014 RoboPeak Team
 *  http://www.robopeak.com
 *
"""


import logging
from functools import reduce
from operator import xor

from construct import Bytes, Int8ul, Int32ul, Struct, this

from rplidar_types import (Descriptor, RPLidarDescriptorError,
                           RPLidarDesyncError, RPLidarTimeoutError)


logger = logging.getLogger(__name__)


# Protocol
# -----------------------------------------

RPLIDAR_CMD_SYNC_BYTE = 0xA5

RPLIDAR_ANS_SYNC_BYTE1 = 0xA5
RPLIDAR_ANS_SYNC_BYTE2 = 0x5A

RPLIDAR_ANS_HEADER_SIZE_MASK = 0x3FFFFFFF
RPLIDAR_ANS_HEADER_SUBTYPE_SHIFT = 30

RPLIDAR_ANS_MODE_SINGLE = 0x0

RPLIDAR_MAX_PAYLOAD_SIZE = 0xFF


# Struct
# ------------------------------------------

# serial data structure for CMD header (2 bytes)
rplidar_command_format = Struct(
    "sync_byte" / Int8ul,  # must be RPLIDAR_CMD_SYNC_BYTE: A5
    "cmd_flag" / Int8ul,  # one byte for CMD
)

# serial data structure for CMD with payload (2 + 1 + size + 1 bytes)
rplidar_payload_command_format = Struct(
    "sync_byte" / Int8ul,
    "cmd_flag" / Int8ul,
    "size" / Int8ul,
    "payload" / Bytes(this.size),
    "checksum" / Int8ul,  # XOR of all the bytes above
)

# serial data structure for response header (7 bytes)
rplidar_response_header_format = Struct(
    "sync_byte1" / Int8ul,  # must be RPLIDAR_ANS_SYNC_BYTE1: A5
    "sync_byte2" / Int8ul,  # must be RPLIDAR_ANS_SYNC_BYTE2: 5A
    "size_q30_subtype" / Int32ul,  # _u32 size:30; _u32 subType:2;
    "response_type" / Int8ul,  # one byte for message type
)

RPLIDAR_ANS_HEADER_SIZE = rplidar_response_header_format.sizeof()


# Frame codec
# ------------------------------------------

def checksum(data):
    """XOR of all bytes in data."""
    return reduce(xor, bytearray(data), 0)


def encode_command(command, payload=None):
    """Build the request bytes for command.

    Commands without payload are just the sync byte and the command byte.
    With a payload the size, the payload and a trailing XOR checksum over
    everything before it are appended.

    Args:
        command: command byte.

        payload: optional bytes, at most 255 of them.

    Returns:
        bytes ready to be written to the serial port.
    """

    if payload is None:
        return rplidar_command_format.build(dict(
            sync_byte=RPLIDAR_CMD_SYNC_BYTE, cmd_flag=command))

    payload = bytes(payload)
    if len(payload) > RPLIDAR_MAX_PAYLOAD_SIZE:
        raise ValueError("payload of %d bytes is too long" % len(payload))

    head = bytes([RPLIDAR_CMD_SYNC_BYTE, command, len(payload)]) + payload
    return rplidar_payload_command_format.build(dict(
        sync_byte=RPLIDAR_CMD_SYNC_BYTE,
        cmd_flag=command,
        size=len(payload),
        payload=payload,
        checksum=checksum(head)))


# Descriptor synchronizer
# ------------------------------------------

def parse_descriptor(raw):
    """Parse 7 descriptor bytes that start with the sync pattern."""

    parsed = rplidar_response_header_format.parse(raw)
    size_q30_subtype = parsed.size_q30_subtype
    mode = size_q30_subtype >> RPLIDAR_ANS_HEADER_SUBTYPE_SHIFT

    return Descriptor(length=size_q30_subtype & RPLIDAR_ANS_HEADER_SIZE_MASK,
                      is_single=(mode == RPLIDAR_ANS_MODE_SINGLE),
                      data_type=parsed.response_type)


def read_descriptor(transport, response_name, timeout_ms):
    """Wait for the next response descriptor.

    Bytes are pulled in only as far as a complete descriptor needs them, so
    nothing after the descriptor is consumed. Anything before the sync
    pattern is dropped one byte at a time: stale bytes after a reset or stop
    are common on the serial line.

    Raises:
        RPLidarDesyncError: bytes were received but never a descriptor.

        RPLidarTimeoutError: nothing was received in time.
    """

    queue = bytearray()
    discarded = 0
    start_time = transport.now_monotonic_ms()

    while True:
        missing = RPLIDAR_ANS_HEADER_SIZE - len(queue)
        chunk = transport.read(missing)
        if not chunk:
            _raise_descriptor_timeout(response_name, discarded)
        queue.extend(chunk)

        while len(queue) >= RPLIDAR_ANS_HEADER_SIZE:
            if (queue[0] == RPLIDAR_ANS_SYNC_BYTE1 and
                    queue[1] == RPLIDAR_ANS_SYNC_BYTE2):
                if discarded:
                    logger.debug("Skipped %d bytes before %s descriptor.",
                                 discarded, response_name)
                return parse_descriptor(bytes(queue[:RPLIDAR_ANS_HEADER_SIZE]))

            del queue[0]
            discarded += 1

        if transport.now_monotonic_ms() - start_time > timeout_ms:
            _raise_descriptor_timeout(response_name, discarded)


def _raise_descriptor_timeout(response_name, discarded):
    if discarded:
        raise RPLidarDesyncError(
            "No %s descriptor found after %d bytes." % (response_name,
                                                        discarded))
    raise RPLidarTimeoutError(
        "Timeout at receiving descriptor for %s." % response_name)


def check_descriptor(expected, actual, response_name):
    """Compare a received descriptor against the expected one.

    The length is only compared when expected.length is not None.

    Raises:
        RPLidarDescriptorError: naming the first field that disagrees.
    """

    if expected.length is not None and expected.length != actual.length:
        raise RPLidarDescriptorError(response_name, "length",
                                     expected.length, actual.length)

    if expected.is_single != actual.is_single:
        raise RPLidarDescriptorError(response_name, "is_single",
                                     expected.is_single, actual.is_single)

    if expected.data_type != actual.data_type:
        raise RPLidarDescriptorError(response_name, "data_type",
                                     expected.data_type, actual.data_type)


def wait_for_descriptor(transport, expected, response_name, timeout_ms):
    descriptor = read_descriptor(transport, response_name, timeout_ms)
    check_descriptor(expected, descriptor, response_name)
    return descriptor


# Response reader
# ------------------------------------------

def read_response(transport, length, response_name, timeout_ms):
    """Read exactly length payload bytes.

    Raises:
        RPLidarTimeoutError: if the bytes do not arrive before the deadline.
    """

    data = bytearray()
    start_time = transport.now_monotonic_ms()

    while len(data) < length:
        chunk = transport.read(length - len(data))
        if not chunk:
            raise RPLidarTimeoutError(
                "Timeout at receiving data for %s (%d of %d bytes)." % (
                    response_name, len(data), length))
        data.extend(chunk)

        if (len(data) < length and
                transport.now_monotonic_ms() - start_time > timeout_ms):
            raise RPLidarTimeoutError(
                "Timeout at receiving data for %s (%d of %d bytes)." % (
                    response_name, len(data), length))

    return bytes(data)


def send_command(transport, command, payload=None):
    """Encode command and write it to transport."""

    cmd_bytes = encode_command(command, payload)
    transport.write(cmd_bytes)
    logger.debug("Command %s sent.", cmd_bytes.hex().upper())
