"""
The connection manager keeps a link to an instrument open.

A lifetime runs from start() to stop(). During a lifetime, a monitor loop opens the transport,
retrying as configured, and while the link is connected a receive loop reads and frames the
incoming bytes and a keep-alive loop periodically writes a ping. Each connection is torn down
before the next attempt begins.

All activity is reported through the manager's EventSink as MessageReceivedEvent and
ConnectionStatusChangedEvent instances.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, Future
from enum import Enum
from typing import Callable

from instrumentlink.codecs import to_payload, PayloadDecoder
from instrumentlink.config.config import LinkConfig, Direction
from instrumentlink.errors import LinkError, DirectionNotAllowedError, NotConnectedError, TransportIOError, \
    MaxReconnectAttemptsExceededError
from instrumentlink.events import EventSink, STATUS_CONNECTED, STATUS_DISCONNECTED, STATUS_SERVER_STARTED, \
    connection_failed_status
from instrumentlink.message import MessageEnvelope, MessageDirection
from instrumentlink.protocol.framing import FrameAssembler, PacketFrameAssembler
from instrumentlink.support.background import BackgroundLoop
from instrumentlink.support.retry_strategy import BoundedRetryStrategy
from instrumentlink.transport.base import Transport, ListeningEvent, TransportEvent
from instrumentlink.transport.factory import create_transport

logger = logging.getLogger(__name__)

KEEP_ALIVE_PAYLOAD = b'\xff\xfe'


class ConnectionState(Enum):
    DISCONNECTED = 'Disconnected'
    CONNECTING = 'Connecting'
    CONNECTED = 'Connected'
    CLOSING = 'Closing'


def create_assembler(transport: Transport, config: LinkConfig, log=logger):
    """ stream transports, and TCP when framing is configured, reassemble frames from markers.
        Otherwise each read is one frame. """
    if transport.stream_oriented or config.tcp_framing:
        return FrameAssembler(max_buffer=config.max_frame_buffer, log=log)
    return PacketFrameAssembler()


class ReceiveLoop(BackgroundLoop):
    """ reads from the transport and publishes each complete frame. """

    def __init__(self, manager, transport: Transport, assembler, read_size, monitor, stop_event, log=logger):
        super().__init__(stop_event=stop_event, name='link-receive', log=log)
        self.manager = manager
        self.transport = transport
        self.assembler = assembler
        self.read_size = read_size
        self.monitor = monitor

    def running(self):
        return super().running() and self.monitor.running()

    def loop(self):
        try:
            data = self.transport.read(self.read_size)
        except LinkError as e:
            if self.running():
                self.logger.warning("error receiving from %s: %s", self.transport.endpoint, e)
                self.stop_event.set()
                self.monitor.connection_lost()
            return
        for frame in self.assembler.feed(data):
            self.manager._received(frame)


class KeepAliveLoop(BackgroundLoop):
    """ sends the keep-alive payload at a fixed interval while the connection is open. """

    def __init__(self, manager, interval, stop_event, log=logger):
        super().__init__(stop_event=stop_event, name='link-keepalive', log=log)
        self.manager = manager
        self.interval = interval

    def loop(self):
        if self.wait(self.interval):
            return
        try:
            self.manager.send(KEEP_ALIVE_PAYLOAD)
        except LinkError as e:
            self.logger.warning("keep-alive failed: %s", e)


class MonitorLoop(BackgroundLoop):
    """
    Maintains the connection for one lifetime. Each iteration makes one connection attempt,
    and when successful, serves the connection until it is lost or the loop is stopped.
    """

    def __init__(self, manager, transport: Transport, config: LinkConfig, stop_event=None, poll_interval=0.5,
                 log=logger):
        super().__init__(stop_event=stop_event, name='link-monitor', log=log)
        self.manager = manager
        self.transport = transport
        self.config = config
        self.retry = BoundedRetryStrategy(config.reconnect.interval, config.reconnect.max_attempts)
        self.poll_interval = poll_interval
        self.exhausted = False
        self._lost = False
        self._wakeup = threading.Event()
        self._loops = ()

    def running(self):
        return not self.exhausted and super().running()

    def connection_lost(self):
        """ called from another thread when the current connection has failed """
        self._lost = True
        self._wakeup.set()

    def signal(self):
        """ requests the loop to stop without waiting for it """
        self.stop_event.set()
        self._wakeup.set()

    def stop(self, timeout=None):
        self.signal()
        super().stop(timeout)

    def on_own_thread(self):
        """ true when called from the monitor thread or from one of the connection threads it runs """
        current = threading.current_thread()
        return any(loop.background_thread is current for loop in (self,) + self._loops)

    def shutdown(self):
        if self.manager._lifetime_ended(self):
            self.logger.info("link to %s cancelled", self.transport.endpoint)
            self.manager._status(STATUS_DISCONNECTED)

    def loop(self):
        transport = self.transport
        attempt = self.retry.attempt()
        self.manager._set_state(self, ConnectionState.CONNECTING)
        self.logger.info("connecting to %s, attempt %d", transport.endpoint, attempt)
        try:
            conduit = transport.connect(self.stop_event)
        except LinkError as e:
            self._connect_failed(e)
            return
        if conduit is None:
            return      # stopped while connecting
        self.retry.reset()
        self._serve()
        if self.running():
            self._wait_before_retry()

    def _connect_failed(self, error):
        manager = self.manager
        manager._set_state(self, ConnectionState.DISCONNECTED)
        if not self.running():
            return
        self.logger.warning("unable to connect to %s: %s", self.transport.endpoint, error)
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug("connection failure", exc_info=True)
        manager._status(self.transport.failure_status(error))
        if self.retry.exhausted:
            self.exhausted = True
            failure = MaxReconnectAttemptsExceededError(self.retry.attempts)
            self.logger.error("giving up on %s: %s", self.transport.endpoint, failure)
            manager._lifetime_ended(self)
            manager._status(connection_failed_status(failure))
            return
        self._wait_before_retry()

    def _wait_before_retry(self):
        delay = self.retry()
        self.logger.info("waiting %s seconds before the next connection attempt", delay)
        self.wait(delay)

    def _serve(self):
        """ runs the connection until it is lost or the loop is stopped, then tears it down. """
        manager, transport, config = self.manager, self.transport, self.config
        self._lost = False
        self._wakeup.clear()
        manager._connection_opened(self)

        connection_stop = threading.Event()
        loops = []
        if config.direction is not Direction.OUTPUT:
            assembler = create_assembler(transport, config, self.logger)
            loops.append(ReceiveLoop(manager, transport, assembler, config.buffers.read, self, connection_stop,
                                     self.logger))
        if config.keep_alive.enabled and config.direction is not Direction.INPUT:
            loops.append(KeepAliveLoop(manager, config.keep_alive.interval, connection_stop, self.logger))
        self._loops = tuple(loops)
        for loop in loops:
            loop.start()

        while self.running() and not self._lost and transport.connected:
            self._wakeup.wait(self.poll_interval)

        lost = self.running()
        connection_stop.set()
        transport.disconnect()
        for loop in loops:
            loop.stop()
        manager._set_state(self, ConnectionState.DISCONNECTED)
        if lost:
            self.logger.warning("connection to %s lost", transport.endpoint)
            manager._status(STATUS_DISCONNECTED)


class ConnectionManager:
    """
    Maintains a link to an instrument as described by a LinkConfig, and sends and receives messages
    over it.

    :param config: the link configuration
    :param transport_factory: creates the transport for a configuration. A new transport is created
        for each lifetime.
    :param events: the EventSink that notifications are published to. Created when not given.
    :param decoder: an optional PayloadDecoder used to fill in MessageEnvelope.decoded
    """

    def __init__(self, config: LinkConfig, transport_factory: Callable[[LinkConfig], Transport]=create_transport,
                 events: EventSink=None, decoder: PayloadDecoder=None, log=logger):
        self._config = config
        self.transport_factory = transport_factory
        self.events = events if events is not None else EventSink(self)
        self.decoder = decoder
        self.logger = log
        self._lock = threading.RLock()
        self._lifecycle = threading.RLock()     # serializes start() and stop()
        self._write_lock = threading.Lock()
        self._state = ConnectionState.DISCONNECTED
        self._monitor = None
        self._transport = None
        self._supervisor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='link-supervisor')

    @classmethod
    def from_source(cls, source, **kwargs):
        """
        Creates a manager with the configuration from the given ConfigSource.
        The manager restarts whenever the source reports a changed configuration.
        """
        manager = cls(source.load(), **kwargs)
        source.changed += manager.update_config
        return manager

    @property
    def config(self) -> LinkConfig:
        return self._config

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def running(self) -> bool:
        return self._monitor is not None

    def start(self, cancel: threading.Event=None):
        """
        Starts maintaining the link on a background thread and returns immediately.
        :param cancel: an optional event that stops the link when set.
        """
        with self._lifecycle:
            with self._lock:
                if self._monitor is not None:
                    self.logger.warning("the link is already running")
                    return
                config = self._config
                transport = self.transport_factory(config)
                transport.events += self._transport_event
                monitor = MonitorLoop(self, transport, config, stop_event=cancel, log=self.logger)
                self._transport, self._monitor = transport, monitor
            self.logger.info("starting link %s, direction %s", config.describe(), config.direction.value)
            monitor.start()

    def stop(self):
        """
        Stops the link and waits for its threads to finish. Does nothing when not running.

        When called from one of the link's own threads, such as from an event handler, the link is
        stopped but the wait and the final "Disconnected" status happen on the supervisor thread.
        """
        with self._lock:
            monitor = self._monitor
        if monitor is None:
            return
        if monitor.on_own_thread():
            stopping = self._begin_stop()
            if stopping:
                self._supervisor.submit(self._finish_stop, *stopping)
            return
        with self._lifecycle:
            stopping = self._begin_stop()
            if stopping:
                self._finish_stop(*stopping)

    def _begin_stop(self):
        """ detaches the running lifetime and interrupts it.
        :return: the monitor and transport of the lifetime, or None when not running
        """
        with self._lock:
            monitor, transport = self._monitor, self._transport
            if monitor is None:
                return None
            self._monitor = self._transport = None
            self._state = ConnectionState.CLOSING
        self.logger.info("stopping link to %s", transport.endpoint)
        monitor.signal()
        transport.abort()
        return monitor, transport

    def _finish_stop(self, monitor, transport):
        monitor.stop()
        self._release(transport)
        with self._lock:
            if self._monitor is None:
                self._state = ConnectionState.DISCONNECTED
        self.events.status_changed(STATUS_DISCONNECTED)

    def close(self):
        """ stops the link and frees the supervisor thread. The manager cannot be restarted. """
        with self._lock:
            monitor = self._monitor
        own_thread = monitor is not None and monitor.on_own_thread()
        self.stop()
        self._supervisor.shutdown(wait=not own_thread)

    def update_config(self, config: LinkConfig) -> Future:
        """
        Replaces the configuration. A running link is restarted with the new configuration on the
        supervisor thread.
        :return: a Future for the restart, or None when the link is not running.
        """
        with self._lock:
            self._config = config
            running = self._monitor is not None
        self.logger.info("configuration changed: %s", config.describe())
        if not running:
            return None
        return self._supervisor.submit(self._restart)

    def _restart(self):
        self.stop()
        self.start()

    def send(self, payload) -> MessageEnvelope:
        """
        Sends a message to the instrument.
        :param payload: the message as bytes, or as a hex string.
        :return: the envelope for the sent message
        """
        data = to_payload(payload)
        with self._lock:
            if self._config.direction is Direction.INPUT:
                self.logger.warning("attempted to send on an input only link")
                raise DirectionNotAllowedError("sending is not allowed on an input only link")
            if self._state is not ConnectionState.CONNECTED:
                raise NotConnectedError("the link is not connected")
            transport = self._transport
        envelope = MessageEnvelope(data, MessageDirection.SENT, decoded=self._decode(data))
        try:
            with self._write_lock:
                transport.write(data)
        except LinkError as e:
            self.logger.error("error sending message %s: %s", envelope.hex, e)
            if isinstance(e, TransportIOError):
                self._connection_failed()
            raise
        self.logger.info("sent message: %s", envelope.hex)
        self.events.message_received(envelope)
        return envelope

    def _decode(self, payload):
        decoder = self.decoder
        if decoder is None:
            return None
        try:
            return decoder.decode(payload)
        except ValueError as e:
            self.logger.warning("unable to decode message: %s", e)
            return None

    def _received(self, frame: bytes):
        envelope = MessageEnvelope(frame, MessageDirection.RECEIVED, decoded=self._decode(frame))
        self.logger.info("received message: %s", envelope.hex)
        self.events.message_received(envelope)

    def _status(self, status: str):
        self.logger.info("link status: %s", status)
        self.events.status_changed(status)

    def _set_state(self, monitor, state: ConnectionState):
        """ updates the state on behalf of the current monitor. Updates from a stopped monitor are ignored. """
        with self._lock:
            if self._monitor is monitor:
                self._state = state

    def _connection_opened(self, monitor):
        self._set_state(monitor, ConnectionState.CONNECTED)
        self.logger.info("connected to %s", monitor.transport.endpoint)
        self._status(STATUS_CONNECTED)

    def _connection_failed(self):
        with self._lock:
            monitor = self._monitor
        if monitor is not None:
            monitor.connection_lost()

    def _lifetime_ended(self, monitor) -> bool:
        """ called by a monitor that has given up or was cancelled.
        :return: True if the monitor's lifetime was still current and is now ended.
        """
        with self._lock:
            if self._monitor is not monitor:
                return False
            transport = self._transport
            self._monitor = self._transport = None
            self._state = ConnectionState.DISCONNECTED
        self._release(transport)
        return True

    def _release(self, transport: Transport):
        transport.events -= self._transport_event
        transport.release()

    def _transport_event(self, event: TransportEvent):
        if isinstance(event, ListeningEvent):
            self._status(STATUS_SERVER_STARTED)
