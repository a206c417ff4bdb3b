from datetime import datetime
from enum import Enum

from instrumentlink.codecs import bytes_to_hex


class MessageDirection(Enum):
    SENT = 'Sent'
    RECEIVED = 'Received'


class MessageEnvelope:
    """
    A message sent to or received from the instrument. Envelopes are immutable.

    :param payload: the raw bytes of the message
    :param direction: whether the message was sent or received
    :param timestamp: when the message was sent or received. Defaults to now.
    :param decoded: the content decoded from the payload, if any.
    """
    __slots__ = ('_payload', '_direction', '_timestamp', '_decoded')

    def __init__(self, payload, direction: MessageDirection, timestamp: datetime=None, decoded=None):
        object.__setattr__(self, '_payload', bytes(payload))
        object.__setattr__(self, '_direction', direction)
        object.__setattr__(self, '_timestamp', timestamp if timestamp is not None else datetime.now())
        object.__setattr__(self, '_decoded', decoded)

    def __setattr__(self, key, value):
        raise AttributeError("MessageEnvelope is immutable")

    @property
    def payload(self) -> bytes:
        return self._payload

    @property
    def hex(self) -> str:
        """ the payload as an uppercase hex string """
        return bytes_to_hex(self._payload)

    @property
    def direction(self) -> MessageDirection:
        return self._direction

    @property
    def timestamp(self) -> datetime:
        return self._timestamp

    @property
    def decoded(self):
        return self._decoded

    def __eq__(self, other):
        return isinstance(other, MessageEnvelope) and \
            (self._payload, self._direction, self._timestamp, self._decoded) == \
            (other._payload, other._direction, other._timestamp, other._decoded)

    def __hash__(self):
        return hash((self._payload, self._direction, self._timestamp))

    def __repr__(self):
        return "MessageEnvelope(%s %s at %s)" % (self._direction.value, self.hex, self._timestamp.isoformat())
