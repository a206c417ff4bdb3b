import logging
import threading

import serial
from serial import Serial, SerialException

from instrumentlink.conduit.base import Conduit, DelimitedWriteConduit
from instrumentlink.conduit.serial_conduit import SerialConduit, serial_ports
from instrumentlink.config.config import SerialEndpoint, Timeouts, BufferSizes
from instrumentlink.errors import LinkError, PortUnavailableError
from instrumentlink.transport.base import AbstractTransport

logger = logging.getLogger(__name__)

parities = {
    'NONE': serial.PARITY_NONE,
    'ODD': serial.PARITY_ODD,
    'EVEN': serial.PARITY_EVEN,
    'MARK': serial.PARITY_MARK,
    'SPACE': serial.PARITY_SPACE,
}

stop_bits = {
    'ONE': serial.STOPBITS_ONE,
    'ONEPOINTFIVE': serial.STOPBITS_ONE_POINT_FIVE,
    'TWO': serial.STOPBITS_TWO,
}

# handshake name -> (xonxoff, rtscts)
handshakes = {
    'NONE': (False, False),
    'XONXOFF': (True, False),
    'REQUESTTOSEND': (False, True),
    'REQUESTTOSENDXONXOFF': (True, True),
}


def _lookup(table, name, default, what, log=logger):
    key = str(name).replace(' ', '').replace('_', '').upper()
    if key not in table:
        log.warning("unknown %s '%s', using %s", what, name, default)
        key = default
    return table[key]


def parse_parity(name, log=logger):
    """
    >>> parse_parity('even')
    'E'
    """
    return _lookup(parities, name, 'NONE', 'parity', log)


def parse_stop_bits(name, log=logger):
    """
    >>> parse_stop_bits('OnePointFive')
    1.5
    """
    return _lookup(stop_bits, name, 'ONE', 'stop bits', log)


def parse_handshake(name, log=logger):
    """
    :return: a tuple (xonxoff, rtscts)
    >>> parse_handshake('RequestToSend')
    (False, True)
    """
    return _lookup(handshakes, name, 'NONE', 'handshake', log)


class SerialTransport(AbstractTransport):
    """
    Implements a transport that communicates data via a serial port.
    The port is opened on connect() with the configured line settings and closed on disconnect().
    """

    stream_oriented = True

    def __init__(self, endpoint: SerialEndpoint, timeouts: Timeouts=Timeouts(), buffers: BufferSizes=BufferSizes(),
                 delimiter: bytes=b'', log=logger):
        super().__init__(log)
        self._endpoint = endpoint
        self.timeouts = timeouts
        self.buffers = buffers
        self.delimiter = delimiter

    @property
    def endpoint(self):
        return self._endpoint.port

    def _try_available(self):
        try:
            return self._endpoint.port in serial_ports()
        except SerialException:
            return False

    def _not_available(self) -> LinkError:
        try:
            available = sorted(serial_ports())
        except SerialException:
            available = []
        return PortUnavailableError("serial port %s is not available. Available ports: %s" %
                                    (self.endpoint, ', '.join(available) or 'none'))

    def _new_serial(self) -> Serial:
        """ creates the serial instance, configured and not yet open """
        e = self._endpoint
        xonxoff, rtscts = parse_handshake(e.handshake, self.logger)
        s = Serial()
        s.port = e.port
        s.baudrate = e.baudrate
        s.bytesize = e.data_bits
        s.parity = parse_parity(e.parity, self.logger)
        s.stopbits = parse_stop_bits(e.stop_bits, self.logger)
        s.xonxoff = xonxoff
        s.rtscts = rtscts
        s.timeout = self.timeouts.receive or None
        s.write_timeout = self.timeouts.send or None
        s.dtr = e.dtr
        s.rts = e.rts
        return s

    def _connect(self, cancel: threading.Event) -> Conduit:
        try:
            s = self._new_serial()
            s.open()
        except (SerialException, ValueError) as e:
            raise LinkError("error opening serial port %s: %s" % (self.endpoint, e)) from e
        if hasattr(s, 'set_buffer_size'):
            # only supported on windows
            s.set_buffer_size(rx_size=self.buffers.read, tx_size=self.buffers.write)
        if cancel.is_set():
            s.close()
            return None
        self.logger.info("opened serial port %s %s baud", self.endpoint, self._endpoint.baudrate)
        conduit = SerialConduit(s)
        return DelimitedWriteConduit(conduit, self.delimiter) if self.delimiter else conduit
