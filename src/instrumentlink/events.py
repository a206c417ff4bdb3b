"""
Notifications published by the connection manager.

Events are delivered synchronously, in the order they are produced, to every handler added to
an EventSink. A slow handler delays the thread that produced the event.
"""
from instrumentlink.message import MessageEnvelope
from instrumentlink.support.events import EventSource

STATUS_CONNECTED = "Connected"
STATUS_DISCONNECTED = "Disconnected"
STATUS_SERVER_STARTED = "Server started, waiting for connections"


def connection_failed_status(cause):
    """
    >>> connection_failed_status('timed out')
    'Connection failed: timed out'
    """
    return "Connection failed: %s" % cause


def server_error_status(cause):
    return "Server error: %s" % cause


class LinkEvent:
    """ base class for link events. """
    def __init__(self, source):
        self.source = source


class MessageReceivedEvent(LinkEvent):
    """ A message was received from, or sent to, the instrument. See envelope.direction. """
    def __init__(self, source, envelope: MessageEnvelope):
        super().__init__(source)
        self.envelope = envelope

    def __repr__(self):
        return "MessageReceivedEvent(%r)" % self.envelope


class ConnectionStatusChangedEvent(LinkEvent):
    """ The status of the link changed. The status is a short human readable text. """
    def __init__(self, source, status: str):
        super().__init__(source)
        self.status = status

    def __repr__(self):
        return "ConnectionStatusChangedEvent(%r)" % self.status


class LinkListener:
    """
    A listener interface for link notifications. Add an instance to an EventSink;
    events are dispatched to the matching method.
    """

    def __call__(self, event: LinkEvent):
        if isinstance(event, MessageReceivedEvent):
            self.message_received(event.envelope)
        elif isinstance(event, ConnectionStatusChangedEvent):
            self.status_changed(event.status)

    def message_received(self, envelope: MessageEnvelope):
        """
        notifies a message sent or received.
        """

    def status_changed(self, status: str):
        """
        notifies a change in the connection status.
        """


class EventSink(EventSource):
    """
    Publishes link events to the registered handlers. Handlers receive a LinkEvent.
    """

    def __init__(self, source=None):
        super().__init__()
        self.source = source

    def message_received(self, envelope: MessageEnvelope):
        self.fire(MessageReceivedEvent(self.source, envelope))

    def status_changed(self, status: str):
        self.fire(ConnectionStatusChangedEvent(self.source, status))
