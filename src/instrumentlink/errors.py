"""
Errors raised by the link.

Connect and I/O failures on an established link are handled by the connection manager,
which logs them, reports a status change and retries. Errors from send() are raised to the caller.
"""


class LinkError(Exception):
    """ Indicates an error condition with the link to the instrument. """


class ConnectTimeoutError(LinkError):
    """ The connection was not established within the connect timeout. """


class PortUnavailableError(LinkError):
    """ The requested serial port is not among the ports available on this machine. """


class NotConnectedError(LinkError):
    """ The link is not in the connected state when a connection is required. """


class DirectionNotAllowedError(LinkError):
    """ The operation is not permitted for the configured communication direction. """


class TransportIOError(LinkError):
    """ Reading from or writing to an established link failed, or the peer closed it. """


class FramingError(LinkError):
    """ The byte stream contains a malformed marker sequence. """


class FrameBufferOverflowError(FramingError):
    """ The frame buffer grew beyond its limit without yielding a complete frame. """


class MaxReconnectAttemptsExceededError(LinkError):
    """ The reconnect policy gave up. A new start() is required to try again. """

    def __init__(self, attempts):
        super().__init__("maximum reconnect attempts (%d) reached" % attempts)
        self.attempts = attempts
