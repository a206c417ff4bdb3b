import threading
import unittest
from unittest.mock import Mock

from hamcrest import assert_that, is_, raises, calling, instance_of, none, contains_string

from instrumentlink.errors import LinkError, NotConnectedError
from instrumentlink.transport.base import TransportEvent, TransportConnectedEvent, TransportDisconnectedEvent, \
    ListeningEvent, Transport, AbstractTransport
from instrumentlink.support.events import EventSource, EventChannel


class TransportEventsTest(unittest.TestCase):

    def test_transport_event(self):
        for event_class in (TransportEvent, TransportConnectedEvent, TransportDisconnectedEvent, ListeningEvent):
            source = Mock()
            event = event_class(source)
            assert_that(event.transport, is_(source))
            source.assert_not_called()


class TransportTest(unittest.TestCase):
    def test_abstract_methods(self):
        sut = Transport()
        assert_that(sut.events, is_(instance_of(EventSource)))
        assert_that(calling(sut.disconnect), raises(NotImplementedError))
        assert_that(calling(sut.connect), raises(NotImplementedError))
        assert_that(calling(getattr).with_args(sut, 'endpoint'), raises(NotImplementedError))
        assert_that(calling(getattr).with_args(sut, 'connected'), raises(NotImplementedError))
        assert_that(calling(getattr).with_args(sut, 'available'), raises(NotImplementedError))
        assert_that(calling(getattr).with_args(sut, 'conduit'), raises(NotConnectedError))

    def test_failure_status(self):
        assert_that(Transport().failure_status(LinkError("refused")), is_("Connection failed: refused"))


class FakeTransport(AbstractTransport):
    """ connects to a mock conduit """

    def __init__(self):
        super().__init__()
        self.next_conduit = Mock()
        self.next_conduit.open = True
        self.is_available = True
        self.disconnected = 0
        self.aborted = 0

    @property
    def endpoint(self):
        return 'fake'

    def _connect(self, cancel):
        return None if cancel.is_set() else self.next_conduit

    def _try_available(self):
        return self.is_available

    def _disconnect(self):
        self.disconnected += 1

    def _abort(self):
        self.aborted += 1


class AbstractTransportTest(unittest.TestCase):

    def setUp(self):
        self.sut = FakeTransport()
        self.channel = EventChannel()
        self.sut.events += self.channel

    def test_constructor(self):
        sut = FakeTransport()
        assert_that(sut._conduit, is_(none()))
        assert_that(sut.connected, is_(False))

    def test_conduit_not_connected(self):
        assert_that(calling(getattr).with_args(self.sut, 'conduit'), raises(NotConnectedError, 'fake'))

    def test_connect(self):
        conduit = self.sut.connect()
        assert_that(conduit, is_(self.sut.next_conduit))
        assert_that(self.sut.conduit, is_(conduit))
        assert_that(self.sut.connected, is_(True))
        event = self.channel.get(0)
        assert_that(event, is_(instance_of(TransportConnectedEvent)))
        assert_that(event.transport, is_(self.sut))

    def test_connect_already_connected(self):
        conduit = self.sut.connect()
        self.sut.next_conduit = Mock()
        assert_that(self.sut.connect(), is_(conduit))
        assert_that(len(self.channel.drain()), is_(1))

    def test_connect_not_available(self):
        self.sut.is_available = False
        assert_that(calling(self.sut.connect), raises(LinkError, "fake is not available"))

    def test_connect_cancelled(self):
        cancel = threading.Event()
        cancel.set()
        assert_that(self.sut.connect(cancel), is_(none()))
        assert_that(self.sut.connected, is_(False))
        assert_that(self.channel.drain(), is_([]))

    def test_available_when_connected_is_false(self):
        self.sut.connect()
        assert_that(self.sut.available, is_(False))

    def test_connected_follows_conduit(self):
        conduit = self.sut.connect()
        conduit.open = False
        assert_that(self.sut.connected, is_(False))

    def test_disconnect(self):
        conduit = self.sut.connect()
        self.channel.drain()
        self.sut.disconnect()
        conduit.close.assert_called_once_with()
        assert_that(self.sut.disconnected, is_(1))
        assert_that(self.channel.get(0), is_(instance_of(TransportDisconnectedEvent)))
        assert_that(self.sut.connected, is_(False))

    def test_disconnect_not_connected_does_nothing(self):
        self.sut.disconnect()
        assert_that(self.sut.disconnected, is_(0))
        assert_that(self.channel.drain(), is_([]))

    def test_abort_closes_conduit(self):
        conduit = self.sut.connect()
        self.sut.abort()
        conduit.close.assert_called_once_with()
        assert_that(self.sut.aborted, is_(1))

    def test_release_disconnects(self):
        self.sut.connect()
        self.sut.release()
        assert_that(self.sut.connected, is_(False))

    def test_read_write_use_conduit(self):
        conduit = self.sut.connect()
        conduit.read.return_value = b'abc'
        assert_that(self.sut.read(10), is_(b'abc'))
        conduit.read.assert_called_once_with(10)
        self.sut.write(b'x')
        conduit.write.assert_called_once_with(b'x')

    def test_write_not_connected(self):
        assert_that(calling(self.sut.write).with_args(b'x'), raises(NotConnectedError))

    def test_not_available_error(self):
        assert_that(str(self.sut._not_available()), contains_string("not available"))
