import logging
import socket
import threading

from instrumentlink.conduit.base import Conduit
from instrumentlink.conduit.socket_conduit import SocketConduit
from instrumentlink.config.config import TcpEndpoint, Timeouts
from instrumentlink.errors import ConnectTimeoutError, LinkError
from instrumentlink.events import server_error_status
from instrumentlink.transport.base import AbstractTransport, ListeningEvent

logger = logging.getLogger(__name__)


def _timeout(seconds):
    """ socket timeouts of zero or less mean blocking """
    return seconds if seconds and seconds > 0 else None


class TcpClientTransport(AbstractTransport):
    """
    A transport that connects out to the instrument. Each connection uses a new socket.
    """
    def __init__(self, endpoint: TcpEndpoint, timeouts: Timeouts=Timeouts(), log=logger):
        super().__init__(log)
        self._endpoint = endpoint
        self.timeouts = timeouts
        self._pending = None        # the socket being connected

    @property
    def endpoint(self):
        return "%s:%s" % (self._endpoint.address, self._endpoint.port)

    def _connect(self, cancel: threading.Event) -> Conduit:
        address = (self._endpoint.address, self._endpoint.port)
        try:
            family, type_, proto, _, sockaddr = socket.getaddrinfo(*address, type=socket.SOCK_STREAM)[0]
        except OSError as e:
            raise LinkError("unable to resolve %s: %s" % (self.endpoint, e)) from e
        sock = self._pending = socket.socket(family, type_, proto)
        try:
            sock.settimeout(_timeout(self.timeouts.connect))
            sock.connect(sockaddr)
        except socket.timeout as e:
            sock.close()
            raise ConnectTimeoutError("connection attempt to %s timed out after %s seconds" %
                                      (self.endpoint, self.timeouts.connect)) from e
        except OSError as e:
            sock.close()
            if cancel.is_set():
                return None
            raise LinkError("error connecting to %s: %s" % (self.endpoint, e)) from e
        finally:
            self._pending = None
        if cancel.is_set():
            sock.close()
            return None
        sock.settimeout(_timeout(self.timeouts.receive))
        self.logger.info("opened socket to %s", self.endpoint)
        return SocketConduit(sock)

    def _abort(self):
        sock = self._pending
        if sock is not None:
            sock.close()

    def _try_available(self):
        # could try pinging the host?
        return True


class TcpServerTransport(AbstractTransport):
    """
    A transport that listens for the instrument to connect. The listening socket is opened on the
    first connect() and kept until release(). Each connect() accepts one peer; further peers wait
    in the backlog until the current one is disconnected.
    """
    def __init__(self, endpoint: TcpEndpoint, timeouts: Timeouts=Timeouts(), accept_poll=0.5, log=logger):
        super().__init__(log)
        self._endpoint = endpoint
        self.timeouts = timeouts
        self.accept_poll = accept_poll
        self._listener = None
        self.peer = None

    @property
    def endpoint(self):
        return "%s:%s" % (self._endpoint.address, self._endpoint.port)

    @property
    def listening(self):
        return self._listener is not None

    @property
    def server_address(self):
        """ the address the listener is bound to """
        listener = self._listener
        return listener.getsockname() if listener is not None else None

    def _listen(self):
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            listener.bind((self._endpoint.address, self._endpoint.port))
            listener.listen(1)
            listener.settimeout(self.accept_poll)
        except OSError as e:
            listener.close()
            raise LinkError("unable to listen on %s: %s" % (self.endpoint, e)) from e
        self._listener = listener
        self.logger.info("TCP server listening on %s", self.endpoint)
        self.events.fire(ListeningEvent(self))

    def _connect(self, cancel: threading.Event) -> Conduit:
        if self._listener is None:
            self._listen()
        listener = self._listener
        while not cancel.is_set():
            try:
                sock, address = listener.accept()
            except socket.timeout:
                continue
            except OSError as e:
                self._close_listener()
                if cancel.is_set():
                    return None
                raise LinkError("error accepting connection on %s: %s" % (self.endpoint, e)) from e
            self.peer = address
            self.logger.info("client connected from %s:%s", address[0], address[1])
            sock.settimeout(_timeout(self.timeouts.receive))
            return SocketConduit(sock)
        return None

    def _disconnect(self):
        self.peer = None

    def _close_listener(self):
        listener = self._listener
        self._listener = None
        if listener is not None:
            listener.close()

    def _abort(self):
        self._close_listener()

    def release(self):
        super().release()
        self._close_listener()

    def _try_available(self):
        return True

    def failure_status(self, error) -> str:
        return server_error_status(error)
