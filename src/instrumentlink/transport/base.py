import logging
import threading
from abc import abstractmethod

from instrumentlink.conduit.base import Conduit
from instrumentlink.errors import LinkError, NotConnectedError
from instrumentlink.events import connection_failed_status
from instrumentlink.support.events import EventSource

logger = logging.getLogger(__name__)


class TransportEvent:
    """ base class for transport events. """
    def __init__(self, transport):
        self.transport = transport


class TransportConnectedEvent(TransportEvent):
    """ The transport was connected. """


class TransportDisconnectedEvent(TransportEvent):
    """ The transport was disconnected. """


class ListeningEvent(TransportEvent):
    """ A server transport is listening for a peer to connect. """


class Transport:
    """ A transport describes an endpoint to which a conduit can be established. """

    stream_oriented = False
    """ True when reads are an unframed byte stream, False when each read is one message """

    def __init__(self):
        self.events = EventSource()

    @property
    @abstractmethod
    def endpoint(self):
        """ the endpoint that this transport reaches out to """
        raise NotImplementedError

    @property
    @abstractmethod
    def connected(self) -> bool:
        """
        Determines if this transport is connected to its underlying resource.
        :return: True if this transport is connected to it's underlying resource. False otherwise.
        :rtype: bool
        """
        raise NotImplementedError

    @property
    @abstractmethod
    def conduit(self) -> Conduit:
        """
        Retrieves the conduit for this connection.
        If the connection is not connected, raises NotConnectedError
        """
        raise NotConnectedError

    @property
    @abstractmethod
    def available(self) -> bool:
        """ Determines if the underlying resource for this transport is available.
        :return: True if the resource is available and can be connected to.
        :rtype: bool
        """
        raise NotImplementedError

    @abstractmethod
    def connect(self, cancel: threading.Event=None) -> Conduit:
        """
        Connects this transport to the underlying resource.
        If the transport is already connected, the existing conduit is returned.
        Raises LinkError if the connection cannot be established.
        :param cancel: set by another thread to abandon the attempt.
        :return: the conduit for the connection, or None if the attempt was cancelled.
        """
        raise NotImplementedError

    @abstractmethod
    def disconnect(self):
        raise NotImplementedError

    def abort(self):
        """
        Called from another thread to unblock any connect, read or write in progress.
        """

    def release(self):
        """
        Frees any resources held across connections, such as a listening socket.
        The transport may be connected again afterwards.
        """
        self.disconnect()

    def read(self, size) -> bytes:
        return self.conduit.read(size)

    def write(self, data: bytes):
        self.conduit.write(data)

    def failure_status(self, error) -> str:
        """ the status text reported when connecting fails with the given error """
        return connection_failed_status(error)


class AbstractTransport(Transport):
    """ Manages the connection cycle to an endpoint."""

    def __init__(self, log=logger):
        super().__init__()
        self._conduit = None
        self.logger = log

    @property
    def available(self):
        return False if self.connected else self._try_available()

    @property
    def connected(self):
        return self._conduit is not None and self._connected()

    def connect(self, cancel: threading.Event=None) -> Conduit:
        if self.connected:
            return self._conduit

        if not self.available:
            raise self._not_available()

        conduit = self._connect(cancel if cancel is not None else threading.Event())
        if conduit is None:
            return None
        self._conduit = conduit
        self.events.fire(TransportConnectedEvent(self))
        return conduit

    def disconnect(self):
        conduit = self._conduit
        if conduit is None:
            return
        self._conduit = None
        self._disconnect()
        conduit.close()
        self.events.fire(TransportDisconnectedEvent(self))

    def abort(self):
        conduit = self._conduit
        if conduit is not None:
            conduit.close()
        self._abort()

    @abstractmethod
    def _connect(self, cancel: threading.Event) -> Conduit:
        """ Template method for subclasses to perform the connection.
            If connection is not possible, a LinkError should be raised.
            Returns None when cancel is set before the connection is made.
        """
        raise NotImplementedError

    @abstractmethod
    def _try_available(self):
        """ Determine if this connection is available. This method is only called when
            the connection is disconnected.
        :return: True if the connection is available or False otherwise.
        :rtype: bool
        """
        raise NotImplementedError

    def _not_available(self) -> LinkError:
        return LinkError("%s is not available" % (self.endpoint,))

    def _disconnect(self):
        """ perform any actions needed on disconnection.
        The base class takes care of closing the conduit, which happens
        after this method has been called.
        """

    def _abort(self):
        """ template method to unblock a connection attempt in progress """

    def _connected(self):
        return self._conduit is not None and self._conduit.open

    @property
    def conduit(self) -> Conduit:
        """
        Retrieves the conduit for this connection.
        raises NotConnectedError if not connected
        """
        conduit = self._conduit
        if conduit is None:
            raise NotConnectedError("%s is not connected" % (self.endpoint,))
        return conduit
