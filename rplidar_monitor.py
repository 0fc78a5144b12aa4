"""
RPLidar Monitor

Define the class for a monitor thread, continuously reading measurements from
RPLidar on its serial port.

"""


import logging
import queue
import threading

from rplidar_types import RPLidarError


logger = logging.getLogger(__name__)


class RPLidarMonitor(threading.Thread):
    """ A thread for monitoring RPLidar on a COM port.

        When started, the thread turns on the motor, sends SCAN or
        EXPRESS_SCAN to RPLidar, continuously reads measurements and puts them
        into self.measurements for further processing.

        The driver must not be used by anyone else while the monitor runs;
        lock serializes every call the monitor makes on it.

        Attributes:
            name: thread name.

            rplidar: the RPLidar instance, already connected.

            express: use EXPRESS_SCAN instead of SCAN.

            alive: the monitor thread is working when alive is set() and stops
            when alive is clear().

            measurements: Queue of Measurement.

            errors: Queue receiving the RPLidarError that ended the scan.

            lock: Lock held around every use of rplidar.
    """

    def __init__(self, rplidar, express=False):

        logger.debug("Initializing rplidar_monitor thread.")

        threading.Thread.__init__(self)
        self.name = "rplidar_monitor"
        self.daemon = True
        self.rplidar = rplidar
        self.express = express

        self.alive = threading.Event()
        self.alive.set()
        self.lock = threading.Lock()

        self.measurements = queue.Queue()
        self.errors = queue.Queue()

        logger.debug("rplidar_monitor thread initialized.")

    def start_scan(self):
        """Start the motor and send the scan command."""

        with self.lock:
            self.rplidar.start_motor()
            if self.express:
                self.rplidar.start_express_scan()
            else:
                self.rplidar.start_scan()

    def stop_scan(self):
        """Send STOP command to RPLidar and stop the motor."""

        with self.lock:
            if self.rplidar.is_scanning:
                self.rplidar.stop_scan()
            self.rplidar.stop_motor()

    def run(self):
        """Main thread function.

        Continuously reads measurements until alive is cleared. An error
        from the driver is put into errors and ends the thread; the stream
        cannot continue after it.
        """

        try:
            self.start_scan()

            while self.alive.is_set():
                with self.lock:
                    measurement = self.rplidar.read_measurement()

                self.measurements.put(measurement)

        except RPLidarError as e:
            self.errors.put(e)
            self.alive.clear()

    def join(self, timeout=1.0):

        self.alive.clear()
        threading.Thread.join(self, timeout)
        try:
            self.stop_scan()
        except RPLidarError as e:
            self.errors.put(e)
        logger.debug("rplidar_monitor thread closed.")
