"""
RPLidar Scan

Decoders turning the continuous answer of SCAN and EXPRESS_SCAN into
Measurement values.

Both decoders pull bytes from the transport on demand. A frame failing its
structural check or checksum is dropped and the search continues one byte
later, so a bad frame never ends the stream; only a stream with no valid
frame for the whole timeout does. Transport timeouts and errors are not
caught here.

Legacy answer (0x81), one sample per 5 bytes:

    byte0   quality:6 | !S:1 | S:1   (S=1 requires !S=0, so 0b00000011 is
                                      rejected)
    byte1   angle_q6[6:0]:7 | C:1   (C must be 1)
    byte2   angle_q6[14:7]
    byte3-4 distance_q2

Express answer (0x82), 32 samples per 84 byte capsule:

    byte0   0xA:4 | checksum[3:0]:4
    byte1   0x5:4 | checksum[7:4]:4
    byte2-3 start_angle_q6:15 | start flag:1
    16 cabins of distance_angle_1 (u16), distance_angle_2 (u16), dθ nibbles

The angles of a capsule are interpolated up to the start angle of the next
capsule, so a capsule's samples are emitted once its successor arrives.
"""


import logging
from collections import deque

from rplidar_cmd import *
from rplidar_protocol import check_descriptor, checksum
from rplidar_types import (Measurement, RPLidarChecksumError,
                           RPLidarDescriptorError, RPLidarDesyncError,
                           RPLidarTimeoutError)


logger = logging.getLogger(__name__)


# largest single read while scanning
SCAN_READ_CHUNK = 4096


class AngleCalibration:
    """Mounting calibration applied to every decoded angle.

    Attributes:
        offset: degrees added after the flip.

        is_flipped: True when the device is mounted upside down, which
        mirrors the direction of rotation.
    """

    def __init__(self, offset=0.0, is_flipped=False):
        self.offset = offset
        self.is_flipped = is_flipped

    def apply(self, angle):
        """Return angle flipped, offset and normalized into [0, 360)."""

        if self.is_flipped:
            angle = -angle
        angle = (angle + self.offset) % 360.0
        # tiny negative inputs round up to 360.0
        if angle >= 360.0:
            angle = 0.0
        return angle


def decode_measurement(raw, calibration):
    """Decode one 5 byte legacy sample.

    Raises:
        RPLidarChecksumError: if the start bits or the check bit are wrong.
    """

    point = rplidar_response_measurement_format.parse(raw)

    if point.byte0.syncbit == point.byte0.syncbit_inverse:
        raise RPLidarChecksumError("Invalid start bits in 0x%02X." % raw[0])
    if not point.byte1.check_bit:
        raise RPLidarChecksumError("Check bit missing in 0x%02X." % raw[1])

    angle = ((point.angle_highbyte << 7) | point.byte1.angle_lowbyte) / 64.0

    return Measurement(is_new_scan=point.byte0.syncbit,
                       angle=calibration.apply(angle),
                       distance=point.distance_q2 / 4.0 / 1000.0,
                       quality=point.byte0.quality)


def parse_capsule(raw):
    """Parse and verify one 84 byte express capsule.

    Raises:
        RPLidarChecksumError: if the sync nibbles or the checksum are wrong.
    """

    capsule = rplidar_response_capsule_format.parse(raw)

    if (capsule.sync_checksum1.sync != RPLIDAR_EXPRESS_SYNC_1 or
            capsule.sync_checksum2.sync != RPLIDAR_EXPRESS_SYNC_2):
        raise RPLidarChecksumError("Invalid capsule sync 0x%02X 0x%02X." % (
                                   raw[0], raw[1]))

    expected = (capsule.sync_checksum1.checksum |
                (capsule.sync_checksum2.checksum << 4))
    actual = checksum(raw[2:])
    if expected != actual:
        raise RPLidarChecksumError("Capsule checksum 0x%02X, expected 0x%02X."
                                   % (actual, expected))

    return capsule


def capsule_start_angle(capsule):
    return (capsule.start_angle_sync_q6 & 0x7FFF) / 64.0


def _offset_angle(distance_angle, offset_q3):
    # sign-magnitude q3: bit 1 of the distance word is the sign,
    # bit 0 the top bit of the magnitude
    magnitude = ((distance_angle & 0x1) << 4) | offset_q3
    if distance_angle & 0x2:
        return -magnitude / 8.0
    return magnitude / 8.0


def capsule_to_measurements(capsule, next_start_angle, calibration):
    """Decode the 32 samples of capsule.

    Args:
        capsule: a parsed capsule.

        next_start_angle: start angle in degrees of the following capsule.

        calibration: AngleCalibration applied to every angle.

    Returns:
        a list of 32 Measurement, quality is always None.
    """

    start_angle = capsule_start_angle(capsule)
    angle_step = ((next_start_angle - start_angle) % 360.0) / 32.0
    is_new_scan = bool(capsule.start_angle_sync_q6 & RPLIDAR_EXPRESS_START_FLAG)

    measurements = []
    for cabin in capsule.cabins:
        for distance_angle, offset_q3 in (
                (cabin.distance_angle_1, cabin.offset_angles_q3 & 0xF),
                (cabin.distance_angle_2, cabin.offset_angles_q3 >> 4)):
            k = len(measurements)
            angle = (start_angle + angle_step * k -
                     _offset_angle(distance_angle, offset_q3)) % 360.0
            measurements.append(Measurement(
                is_new_scan=(is_new_scan and k == 0),
                angle=calibration.apply(angle),
                distance=(distance_angle >> 2) / 1000.0))

    return measurements


class ScanDecoder:
    """Pull-based decoder of one continuous scan answer.

    Subclasses set frame_size and implement decode_frame().

    Attributes:
        transport: the transport the scan answer streams from.

        calibration: shared AngleCalibration, changes apply immediately.

        timeout_ms: budget for completing one frame.

        skipped_bytes: number of bytes dropped while resynchronizing.
    """

    frame_size = None
    name = "scan"

    def __init__(self, transport, calibration, timeout_ms):

        self.transport = transport
        self.calibration = calibration
        self.timeout_ms = timeout_ms
        self.skipped_bytes = 0

        self._buffer = bytearray()
        self._pending = deque()

    def decode_frame(self, raw):
        raise NotImplementedError

    def resync(self):
        """Called after a frame was rejected."""

    def clear(self):
        self._buffer.clear()
        self._pending.clear()

    def read_measurement(self):
        """Block until the next measurement is decoded and return it.

        Raises:
            RPLidarTimeoutError: if the stream stalls.

            RPLidarDesyncError: if bytes keep arriving but no valid frame
            is found before the timeout.

            RPLidarTransportError: if the serial port fails.
        """

        start_time = self.transport.now_monotonic_ms()
        skipped = 0

        while not self._pending:
            self._fill(self.frame_size)

            raw = bytes(self._buffer[:self.frame_size])
            try:
                self._pending.extend(self.decode_frame(raw))
            except RPLidarChecksumError as e:
                logger.debug("%s Dropping one byte.", e.message)
                del self._buffer[0]
                self.skipped_bytes += 1
                skipped += 1
                self.resync()

                if (self.transport.now_monotonic_ms() - start_time >
                        self.timeout_ms):
                    raise RPLidarDesyncError(
                        "No valid %s frame found after %d bytes." % (
                            self.name, skipped))
                continue

            del self._buffer[:self.frame_size]

        return self._pending.popleft()

    def __iter__(self):
        return self

    def __next__(self):
        return self.read_measurement()

    def _fill(self, size):
        start_time = self.transport.now_monotonic_ms()

        while len(self._buffer) < size:
            missing = size - len(self._buffer)
            available = self.transport.bytes_available()
            chunk = self.transport.read(min(max(missing, available),
                                            SCAN_READ_CHUNK))
            if not chunk:
                raise RPLidarTimeoutError("Timeout at receiving %s data." %
                                          self.name)
            self._buffer.extend(chunk)

            if (len(self._buffer) < size and
                    self.transport.now_monotonic_ms() - start_time >
                    self.timeout_ms):
                raise RPLidarTimeoutError("Timeout at receiving %s data." %
                                          self.name)


class LegacyScanDecoder(ScanDecoder):

    frame_size = RPLIDAR_RESP_MEASUREMENT_SIZE
    name = "scan"

    def decode_frame(self, raw):
        return [decode_measurement(raw, self.calibration)]


class ExpressScanDecoder(ScanDecoder):

    frame_size = RPLIDAR_RESP_CAPSULE_SIZE
    name = "express scan"

    def __init__(self, transport, calibration, timeout_ms):
        super().__init__(transport, calibration, timeout_ms)
        self._previous = None

    def decode_frame(self, raw):
        capsule = parse_capsule(raw)
        previous, self._previous = self._previous, capsule
        if previous is None:
            return []
        return capsule_to_measurements(previous,
                                       capsule_start_angle(capsule),
                                       self.calibration)

    def resync(self):
        # deltas are only valid between consecutive capsules
        self._previous = None

    def clear(self):
        super().clear()
        self._previous = None


SCAN_DECODERS = {
    RPLIDAR_ANS_TYPE_MEASUREMENT: LegacyScanDecoder,
    RPLIDAR_ANS_TYPE_MEASUREMENT_CAPSULED: ExpressScanDecoder,
}


def decoder_for(descriptor, expected, response_name, transport, calibration,
                timeout_ms):
    """Pick the decoder matching the descriptor a scan command answered.

    Args:
        descriptor: the descriptor read after the scan command.

        expected: the descriptor the sent command normally produces.

    Raises:
        RPLidarDescriptorError: if the answer type has no decoder or the
        descriptor does not match its answer type.
    """

    if descriptor.data_type not in SCAN_DECODERS:
        raise RPLidarDescriptorError(response_name, "data_type",
                                     expected.data_type, descriptor.data_type)

    check_descriptor(SCAN_DESCRIPTORS[descriptor.data_type], descriptor,
                     response_name)
    return SCAN_DECODERS[descriptor.data_type](transport, calibration,
                                               timeout_ms)
