"""
RPLidar Viewer

Live XY or polar plot of the measurements of a connected RPLidar.

    rplidar-viewer /dev/ttyUSB0 --express --polar

"""


import argparse
import logging
import queue

import matplotlib.pyplot as plt
import numpy as np

from rplidar import RPLidar
from rplidar_monitor import RPLidarMonitor
from rplidar_types import RPLidarError, RPLidarFrame, RPLidarSettings


logger = logging.getLogger(__name__)


class RPLidarViewer:
    """A matplotlib figure re-drawn from the most recent measurements.

    Attributes:
        frame: RPLidarFrame holding the points on screen.

        polar: draw a polar plot instead of an XY plot.
    """

    def __init__(self, polar=False, max_range=5.0, maxlen=720):

        self.frame = RPLidarFrame(maxlen=maxlen)
        self.polar = polar

        plt.ion()
        self.figure = plt.figure(figsize=(6, 6),
                                 dpi=160,
                                 facecolor="w",
                                 edgecolor="k")
        if polar:
            self.ax = self.figure.add_subplot(111, polar=True)
            self.ax.set_rmax(max_range)
            self.ax.set_theta_direction(-1)  # set to clockwise
            self.ax.set_theta_offset(np.pi / 2)  # 0 degree at 12 o'clock
        else:
            self.ax = self.figure.add_subplot(111)
            self.ax.set_xlim(-max_range, max_range)
            self.ax.set_ylim(-max_range, max_range)
            self.ax.set_aspect("equal")
            self.ax.grid()

        self.lines, = self.ax.plot([], [],
                                   linestyle="none",
                                   marker=".",
                                   markersize=3,
                                   markerfacecolor="blue")

    def add_measurements(self, measurements):
        """Move everything waiting in the measurements queue into frame.
        Returns the number of measurements taken."""

        count = 0
        while True:
            try:
                measurement = measurements.get_nowait()
            except queue.Empty:
                return count
            self.frame.add_measurement(measurement)
            count += 1

    def update(self):
        """ re-draw the plot with the current frame """

        if self.polar:
            self.lines.set_xdata(list(self.frame.angle_r))
            self.lines.set_ydata(list(self.frame.distance))
        else:
            self.lines.set_xdata(list(self.frame.x))
            self.lines.set_ydata(list(self.frame.y))
        self.figure.canvas.draw()

    def close(self):
        plt.close(self.figure)


def parse_args(argv=None):

    parser = argparse.ArgumentParser(
        description="Live plot of RPLidar measurements.")
    parser.add_argument("port", help="serial port, e.g. /dev/ttyUSB0")
    parser.add_argument("-b", "--baudrate", type=int, default=115200)
    parser.add_argument("-e", "--express", action="store_true",
                        help="use express scan (no quality values)")
    parser.add_argument("-p", "--polar", action="store_true",
                        help="polar plot instead of XY plot")
    parser.add_argument("--offset", type=float, default=0.0,
                        help="angle offset in degrees")
    parser.add_argument("--flipped", action="store_true",
                        help="device is mounted upside down")
    parser.add_argument("--range", type=float, default=5.0, dest="max_range",
                        help="plot range in meters")
    parser.add_argument("--interval", type=float, default=0.15,
                        help="seconds between redraws")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="debug logging")
    return parser.parse_args(argv)


def main(argv=None):

    args = parse_args(argv)

    # logging config
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="[%(levelname)s] (%(threadName)-10s) %(message)s")

    settings = RPLidarSettings(args.port,
                               baudrate=args.baudrate,
                               angle_offset=args.offset,
                               is_flipped=args.flipped)
    rplidar = RPLidar(settings)
    if not rplidar.connect():
        return 1

    try:
        info = rplidar.get_device_info()
        logger.info("Model %d, firmware %s, hardware %d, serial %s",
                    info.model, info.firmware_version, info.hardware,
                    info.serial_number_hex)
        health = rplidar.get_health()
        logger.info("Health %s, error code %d", health.status.name,
                    health.error_code)

        monitor = RPLidarMonitor(rplidar, express=args.express)
        viewer = RPLidarViewer(polar=args.polar, max_range=args.max_range)
        monitor.start()

        try:
            while monitor.is_alive():
                viewer.add_measurements(monitor.measurements)
                viewer.update()
                plt.pause(args.interval)
        except KeyboardInterrupt:
            logger.debug("CTRL-c pressed, exiting...")

        monitor.join()
        viewer.close()

        status = 0
        while not monitor.errors.empty():
            logger.error("Scan stopped: %s", monitor.errors.get().log())
            status = 1
        return status

    except RPLidarError:
        return 1

    finally:
        rplidar.disconnect()


if __name__ == "__main__":
    raise SystemExit(main())
