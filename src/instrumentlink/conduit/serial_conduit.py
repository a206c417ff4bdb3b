"""
Implements a conduit over a serial port.
"""

import logging

import serial
from serial.tools import list_ports

from instrumentlink.conduit.base import Conduit
from instrumentlink.errors import TransportIOError

logger = logging.getLogger(__name__)


class SerialConduit(Conduit):
    """
    A conduit that provides comms via a serial port.
    Reads return the bytes waiting in the input buffer, or block until at least one byte
    arrives or the port's read timeout elapses.
    """

    def __init__(self, ser: serial.Serial):
        self.ser = ser
        # patch flushing since this causes a lockup if the serial is disconnected during
        # the flush.
        ser.flush = self._no_flush

    def _no_flush(self, *args, **kwargs):
        pass

    @property
    def target(self):
        return self.ser

    def read(self, size) -> bytes:
        ser = self.ser
        try:
            count = min(size, max(1, ser.in_waiting))
            return ser.read(count)
        except (serial.SerialException, OSError, TypeError) as e:
            # pyserial raises TypeError when the port is closed during a blocking read
            raise TransportIOError("error reading from serial port %s: %s" % (ser.port, e)) from e

    def write(self, data: bytes):
        ser = self.ser
        try:
            ser.write(data)
        except (serial.SerialException, OSError) as e:
            raise TransportIOError("error writing to serial port %s: %s" % (ser.port, e)) from e

    @property
    def open(self) -> bool:
        return self.ser.is_open

    def close(self):
        ser = self.ser
        if hasattr(ser, 'cancel_read'):
            try:
                ser.cancel_read()
            except (serial.SerialException, OSError):
                pass
        ser.close()


def serial_ports():
    """
    Returns a generator for all available serial port device names.
    """
    for port in serial_port_info():
        yield port.device


def serial_port_info():
    """
    :return: a tuple of serial port info tuples,
    :rtype:
    """
    return tuple(list_ports.comports())
