"""
RPLidar Commands

partly translated from <rplidar_cmd.h> of RPLidar SDK v1.4.5
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
 *  Data Packet IO packet definition for RP-LIDAR
 *
 *  Copyright 2009 - 2014 RoboPeak Team
 *  http://www.robopeak.com
 *
"""


from construct import (Array, BitsInteger, BitStruct, Bytes, Flag,
                       GreedyBytes, Int8ul, Int16ul, Int32ul, Padding, Struct)

from rplidar_types import Descriptor


# Commands
# -----------------------------------------

# Commands without payload and response
RPLIDAR_CMD_STOP = 0x25
RPLIDAR_CMD_SCAN = 0x20
RPLIDAR_CMD_RESET = 0x40

# Commands without payload but have response
RPLIDAR_CMD_GET_DEVICE_INFO = 0x50
RPLIDAR_CMD_GET_DEVICE_HEALTH = 0x52

# Commands with payload and have response
RPLIDAR_CMD_EXPRESS_SCAN = 0x82
RPLIDAR_CMD_GET_LIDAR_CONF = 0x84

COMMAND_NAMES = {
    RPLIDAR_CMD_STOP: "stop",
    RPLIDAR_CMD_SCAN: "scan",
    RPLIDAR_CMD_RESET: "reset",
    RPLIDAR_CMD_GET_DEVICE_INFO: "get info",
    RPLIDAR_CMD_GET_DEVICE_HEALTH: "get health",
    RPLIDAR_CMD_EXPRESS_SCAN: "express scan",
    RPLIDAR_CMD_GET_LIDAR_CONF: "get config",
}


# Configuration types for GET_LIDAR_CONF
# -----------------------------------------

RPLIDAR_CONF_SCAN_MODE_COUNT = 0x70
RPLIDAR_CONF_SCAN_MODE_US_PER_SAMPLE = 0x71
RPLIDAR_CONF_SCAN_MODE_MAX_DISTANCE = 0x74
RPLIDAR_CONF_SCAN_MODE_ANS_TYPE = 0x75
RPLIDAR_CONF_SCAN_MODE_TYPICAL = 0x7C
RPLIDAR_CONF_SCAN_MODE_NAME = 0x7F


# Response
# ------------------------------------------

RPLIDAR_ANS_TYPE_DEVINFO = 0x4
RPLIDAR_ANS_TYPE_DEVHEALTH = 0x6
RPLIDAR_ANS_TYPE_GET_LIDAR_CONF = 0x20
RPLIDAR_ANS_TYPE_MEASUREMENT = 0x81
RPLIDAR_ANS_TYPE_MEASUREMENT_CAPSULED = 0x82

RPLIDAR_RESP_MEASUREMENT_SIZE = 5
RPLIDAR_RESP_CAPSULE_SIZE = 84

RPLIDAR_EXPRESS_SYNC_1 = 0xA
RPLIDAR_EXPRESS_SYNC_2 = 0x5
RPLIDAR_EXPRESS_CABIN_COUNT = 16
RPLIDAR_EXPRESS_START_FLAG = 0x8000


# Descriptors
# ------------------------------------------

INFO_DESCRIPTOR = Descriptor(20, True, RPLIDAR_ANS_TYPE_DEVINFO)
HEALTH_DESCRIPTOR = Descriptor(3, True, RPLIDAR_ANS_TYPE_DEVHEALTH)
LEGACY_SCAN_DESCRIPTOR = Descriptor(RPLIDAR_RESP_MEASUREMENT_SIZE, False,
                                    RPLIDAR_ANS_TYPE_MEASUREMENT)
EXPRESS_SCAN_DESCRIPTOR = Descriptor(RPLIDAR_RESP_CAPSULE_SIZE, False,
                                     RPLIDAR_ANS_TYPE_MEASUREMENT_CAPSULED)

SCAN_DESCRIPTORS = {
    RPLIDAR_ANS_TYPE_MEASUREMENT: LEGACY_SCAN_DESCRIPTOR,
    RPLIDAR_ANS_TYPE_MEASUREMENT_CAPSULED: EXPRESS_SCAN_DESCRIPTOR,
}


# Struct
# ------------------------------------------

# serial data structure returned by GET_INFO (20 bytes)
rplidar_response_device_info_format = Struct(
    "model" / Int8ul,
    "firmware_version_minor" / Int8ul,
    "firmware_version_major" / Int8ul,
    "hardware_version" / Int8ul,
    "serial_number" / Bytes(16),
)

# serial data structure returned by GET_HEALTH (3 bytes)
rplidar_response_device_health_format = Struct(
    "status" / Int8ul,
    "error_code" / Int16ul,
)

# payload of GET_LIDAR_CONF, request and answer share the type word
rplidar_conf_format = Struct(
    "config_type" / Int32ul,
    "payload" / GreedyBytes,
)

# payload of EXPRESS_SCAN (5 bytes)
rplidar_express_scan_request_format = Struct(
    "working_mode" / Int8ul,
    Padding(4),
)

# serial data structure returned by SCAN -- a single point (5 bytes)
rplidar_response_measurement_format = Struct(
    "byte0" / BitStruct(
        "quality" / BitsInteger(6),
        "syncbit_inverse" / Flag,
        "syncbit" / Flag),
    "byte1" / BitStruct(
        "angle_lowbyte" / BitsInteger(7),
        "check_bit" / Flag),  # check_bit must be 1
    "angle_highbyte" / Int8ul,
    "distance_q2" / Int16ul,
)

# two samples of an express capsule (5 bytes)
rplidar_response_cabin_format = Struct(
    "distance_angle_1" / Int16ul,  # distance in mm in bits 2-15, dθ1 sign and high bit in 0-1
    "distance_angle_2" / Int16ul,
    "offset_angles_q3" / Int8ul,  # low nibble dθ1, high nibble dθ2
)

# serial data structure returned by EXPRESS_SCAN (84 bytes)
rplidar_response_capsule_format = Struct(
    "sync_checksum1" / BitStruct(
        "sync" / BitsInteger(4),  # must be RPLIDAR_EXPRESS_SYNC_1
        "checksum" / BitsInteger(4)),  # low nibble of checksum
    "sync_checksum2" / BitStruct(
        "sync" / BitsInteger(4),  # must be RPLIDAR_EXPRESS_SYNC_2
        "checksum" / BitsInteger(4)),  # high nibble of checksum
    "start_angle_sync_q6" / Int16ul,  # bit 15 is the start flag
    "cabins" / Array(RPLIDAR_EXPRESS_CABIN_COUNT,
                     rplidar_response_cabin_format),
)
