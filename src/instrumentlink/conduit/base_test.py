import unittest
from unittest.mock import Mock

from hamcrest import assert_that, is_, calling, raises, equal_to

from instrumentlink.conduit.base import ConduitDecorator, DelimitedWriteConduit, LoopbackConduit
from instrumentlink.errors import TransportIOError


class ConduitDecoratorTest(unittest.TestCase):

    def setUp(self):
        self.conduit = Mock()
        self.sut = ConduitDecorator(self.conduit)

    def test_delegates_target(self):
        assert_that(self.sut.target, is_(self.conduit.target))

    def test_delegates_open(self):
        assert_that(self.sut.open, is_(self.conduit.open))

    def test_delegates_read(self):
        self.conduit.read.return_value = b'abc'
        assert_that(self.sut.read(10), is_(b'abc'))
        self.conduit.read.assert_called_once_with(10)

    def test_delegates_write(self):
        self.sut.write(b'abc')
        self.conduit.write.assert_called_once_with(b'abc')

    def test_delegates_close(self):
        self.sut.close()
        self.conduit.close.assert_called_once_with()


class DelimitedWriteConduitTest(unittest.TestCase):

    def test_appends_delimiter(self):
        conduit = Mock()
        sut = DelimitedWriteConduit(conduit, b'\r\n')
        sut.write(b'\xff\xfe')
        conduit.write.assert_called_once_with(b'\xff\xfe\r\n')

    def test_reads_are_unchanged(self):
        conduit = Mock()
        conduit.read.return_value = b'data\r\n'
        sut = DelimitedWriteConduit(conduit, b'\r\n')
        assert_that(sut.read(5), is_(b'data\r\n'))


class LoopbackConduitTest(unittest.TestCase):

    def setUp(self):
        self.sut = LoopbackConduit(read_timeout=0.01)

    def test_read_returns_fed_chunks(self):
        self.sut.feed(b'one')
        self.sut.feed(b'two')
        assert_that(self.sut.read(100), is_(b'one'))
        assert_that(self.sut.read(100), is_(b'two'))

    def test_read_timeout_returns_empty(self):
        assert_that(self.sut.read(100), is_(b''))

    def test_hangup_raises_on_read(self):
        self.sut.hangup()
        assert_that(calling(self.sut.read).with_args(100), raises(TransportIOError, "closed by peer"))

    def test_write_is_recorded(self):
        self.sut.write(bytearray(b'abc'))
        assert_that(self.sut.written, is_(equal_to([b'abc'])))

    def test_failing_write(self):
        self.sut.fail_writes = True
        assert_that(calling(self.sut.write).with_args(b'abc'), raises(TransportIOError))

    def test_closed(self):
        assert_that(self.sut.open, is_(True))
        self.sut.close()
        assert_that(self.sut.open, is_(False))
        assert_that(calling(self.sut.read).with_args(1), raises(TransportIOError))
        assert_that(calling(self.sut.write).with_args(b'a'), raises(TransportIOError))
