import socket

from instrumentlink.conduit import base
from instrumentlink.errors import TransportIOError


class SocketConduit(base.Conduit):
    """
    A conduit that provides communication via a socket.
    :param sock The open, connected socket
    """
    def __init__(self, sock: socket.socket):
        """
        :param sock: the client socket that represents the connection
        :type sock: socket
        """
        self.sock = sock

    @property
    def open(self) -> bool:
        return self.sock.fileno() >= 0

    @property
    def target(self):
        return self.sock

    def read(self, size) -> bytes:
        try:
            data = self.sock.recv(size)
        except socket.timeout:
            return b''
        except OSError as e:
            raise TransportIOError("error reading from socket: %s" % e) from e
        if not data:
            raise TransportIOError("connection closed by peer")
        return data

    def write(self, data: bytes):
        try:
            self.sock.sendall(data)
        except OSError as e:
            raise TransportIOError("error writing to socket: %s" % e) from e

    def close(self):
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
            # swallow it - the peer may have closed the socket
        finally:
            self.sock.close()
