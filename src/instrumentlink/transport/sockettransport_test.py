import socket
import threading
import unittest

from hamcrest import assert_that, is_, raises, calling, instance_of, none, starts_with, contains_string
import timeout_decorator

from instrumentlink.conduit.socket_conduit import SocketConduit
from instrumentlink.config.config import TcpEndpoint, Timeouts
from instrumentlink.errors import LinkError
from instrumentlink.support.events import EventChannel
from instrumentlink.transport.base import ListeningEvent, TransportConnectedEvent
from instrumentlink.transport.sockettransport import TcpClientTransport, TcpServerTransport

timeouts = Timeouts(connect=2, receive=1, send=1)


class TcpClientTransportTest(unittest.TestCase):

    def setUp(self):
        self.server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.server.bind(('127.0.0.1', 0))
        self.server.listen(1)
        self.port = self.server.getsockname()[1]

    def tearDown(self):
        self.server.close()

    def test_endpoint(self):
        sut = TcpClientTransport(TcpEndpoint('localhost', 1234))
        assert_that(sut.endpoint, is_('localhost:1234'))
        assert_that(sut.stream_oriented, is_(False))

    @timeout_decorator.timeout(5)
    def test_connect_and_exchange(self):
        sut = TcpClientTransport(TcpEndpoint('127.0.0.1', self.port), timeouts)
        conduit = sut.connect()
        peer, _ = self.server.accept()
        try:
            assert_that(conduit, is_(instance_of(SocketConduit)))
            assert_that(conduit.target.gettimeout(), is_(1))
            peer.sendall(b'\x01\x02')
            assert_that(sut.read(10), is_(b'\x01\x02'))
            sut.write(b'\xff\xfe')
            assert_that(peer.recv(10), is_(b'\xff\xfe'))
        finally:
            sut.disconnect()
            peer.close()
        assert_that(sut.connected, is_(False))

    @timeout_decorator.timeout(5)
    def test_each_connect_uses_a_new_socket(self):
        sut = TcpClientTransport(TcpEndpoint('127.0.0.1', self.port), timeouts)
        first = sut.connect().target
        sut.disconnect()
        second = sut.connect().target
        sut.disconnect()
        assert_that(first is second, is_(False))

    @timeout_decorator.timeout(5)
    def test_connect_refused(self):
        self.server.close()
        sut = TcpClientTransport(TcpEndpoint('127.0.0.1', self.port), timeouts)
        assert_that(calling(sut.connect), raises(LinkError, "error connecting to 127.0.0.1"))
        assert_that(sut.connected, is_(False))

    def test_failure_status(self):
        sut = TcpClientTransport(TcpEndpoint('127.0.0.1', self.port))
        assert_that(sut.failure_status(LinkError("refused")), is_("Connection failed: refused"))

    def test_zero_receive_timeout_blocks(self):
        sut = TcpClientTransport(TcpEndpoint('127.0.0.1', self.port), Timeouts(receive=0))
        conduit = sut.connect()
        try:
            assert_that(conduit.target.gettimeout(), is_(none()))
        finally:
            sut.disconnect()


class TcpServerTransportTest(unittest.TestCase):

    def setUp(self):
        self.sut = TcpServerTransport(TcpEndpoint('127.0.0.1', 0), timeouts, accept_poll=0.05)
        self.channel = EventChannel()
        self.sut.events += self.channel

    def tearDown(self):
        self.sut.release()

    def connect_client(self):
        """ connects a client once the server is listening. """
        assert_that(self.channel.get(2), is_(instance_of(ListeningEvent)))
        client = socket.create_connection(self.sut.server_address, 2)
        self.addCleanup(client.close)
        return client

    @timeout_decorator.timeout(5)
    def test_accept(self):
        result = {}
        t = threading.Thread(target=lambda: result.setdefault('conduit', self.sut.connect()))
        t.start()
        client = self.connect_client()
        t.join()
        assert_that(result['conduit'], is_(instance_of(SocketConduit)))
        assert_that(self.channel.get(1), is_(instance_of(TransportConnectedEvent)))
        client.sendall(b'hello')
        assert_that(self.sut.read(10), is_(b'hello'))

    @timeout_decorator.timeout(5)
    def test_listener_is_kept_across_connections(self):
        t = threading.Thread(target=self.sut.connect)
        t.start()
        self.connect_client()
        t.join()
        address = self.sut.server_address
        self.sut.disconnect()
        assert_that(self.sut.listening, is_(True))

        client = socket.create_connection(address, 2)
        self.addCleanup(client.close)
        self.sut.connect()
        assert_that(self.sut.connected, is_(True))
        assert_that(self.sut.server_address, is_(address))

    @timeout_decorator.timeout(5)
    def test_cancelled_accept_returns_none(self):
        cancel = threading.Event()
        result = []
        t = threading.Thread(target=lambda: result.append(self.sut.connect(cancel)))
        t.start()
        assert_that(self.channel.get(2), is_(instance_of(ListeningEvent)))
        cancel.set()
        t.join()
        assert_that(result, is_([None]))

    @timeout_decorator.timeout(5)
    def test_abort_unblocks_accept(self):
        cancel = threading.Event()
        result = []
        t = threading.Thread(target=lambda: result.append(self.sut.connect(cancel)))
        t.start()
        assert_that(self.channel.get(2), is_(instance_of(ListeningEvent)))
        cancel.set()
        self.sut.abort()
        t.join()
        assert_that(result, is_([None]))
        assert_that(self.sut.listening, is_(False))

    def test_bind_failure(self):
        occupied = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.addCleanup(occupied.close)
        occupied.bind(('127.0.0.1', 0))
        occupied.listen(1)
        sut = TcpServerTransport(TcpEndpoint('127.0.0.1', occupied.getsockname()[1]), accept_poll=0.05)
        assert_that(calling(sut.connect), raises(LinkError, "unable to listen"))
        assert_that(sut.listening, is_(False))

    def test_failure_status(self):
        assert_that(self.sut.failure_status(LinkError("address in use")),
                    starts_with("Server error: "))
        assert_that(self.sut.failure_status(LinkError("address in use")), contains_string("address in use"))

    def test_release_closes_listener(self):
        cancel = threading.Event()
        cancel.set()
        self.sut.connect(cancel)
        assert_that(self.sut.listening, is_(True))
        self.sut.release()
        assert_that(self.sut.listening, is_(False))
        assert_that(self.sut.server_address, is_(none()))
