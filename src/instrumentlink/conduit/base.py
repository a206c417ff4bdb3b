import threading
from abc import abstractmethod
from queue import Queue, Empty

from instrumentlink.errors import TransportIOError


class Conduit:
    """
    A conduit allows two-way communication of bytes with an open endpoint.
    """

    @property
    @abstractmethod
    def target(self):
        raise NotImplementedError

    @abstractmethod
    def read(self, size) -> bytes:
        """ reads at most size bytes. Returns an empty bytes object when no data arrived
            before the read timeout.
            Raises TransportIOError when the endpoint has failed or was closed by the peer. """
        raise NotImplementedError

    @abstractmethod
    def write(self, data: bytes):
        """ writes all of data to the endpoint. Raises TransportIOError on failure. """
        raise NotImplementedError

    @property
    @abstractmethod
    def open(self) -> bool:
        """ determines if this conduit is open. When open, the conduit can be read from/written to."""
        raise NotImplementedError

    @abstractmethod
    def close(self):
        """
        Closes the conduit. Any read blocked on another thread should return promptly.
        """
        raise NotImplementedError


class ConduitDecorator(Conduit):
    """
    A ConduitDecorator wraps another conduit and delegates to it's methods.
    This allows subclasses to easily override some behaviors while keeping others
    unchanged.
    """

    def __init__(self, decorate: Conduit):
        self.decorate = decorate

    @property
    def target(self):
        return self.decorate.target

    def close(self):
        self.decorate.close()

    def read(self, size) -> bytes:
        return self.decorate.read(size)

    def write(self, data: bytes):
        self.decorate.write(data)

    @property
    def open(self) -> bool:
        return self.decorate.open


class DelimitedWriteConduit(ConduitDecorator):
    """ appends a fixed delimiter to every write. Reads are unchanged. """

    def __init__(self, decorate: Conduit, delimiter: bytes):
        super().__init__(decorate)
        self.delimiter = delimiter

    def write(self, data: bytes):
        self.decorate.write(bytes(data) + self.delimiter)


class LoopbackConduit(Conduit):
    """
    An in-memory conduit. Data given to feed() is returned by read(), in the chunks it was fed.
    Data written is recorded in written.
    Used to simulate an instrument.
    """

    def __init__(self, target='loopback', read_timeout=0.05):
        self._target = target
        self.read_timeout = read_timeout
        self.incoming = Queue()
        self.written = []
        self._closed = threading.Event()
        self.fail_writes = False

    @property
    def target(self):
        return self._target

    def feed(self, data: bytes):
        """ makes data available to the next read """
        self.incoming.put(bytes(data))

    def hangup(self):
        """ simulates the peer closing the connection """
        self.incoming.put(None)

    def read(self, size) -> bytes:
        if self._closed.is_set():
            raise TransportIOError("conduit closed")
        try:
            data = self.incoming.get(timeout=self.read_timeout)
        except Empty:
            return b''
        if data is None:
            raise TransportIOError("connection closed by peer")
        return data

    def write(self, data: bytes):
        if self._closed.is_set():
            raise TransportIOError("conduit closed")
        if self.fail_writes:
            raise TransportIOError("write failed")
        self.written.append(bytes(data))

    @property
    def open(self) -> bool:
        return not self._closed.is_set()

    def close(self):
        self._closed.set()
