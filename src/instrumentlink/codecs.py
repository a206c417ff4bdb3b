"""
Conversions between payload bytes and their hex representation, and decoders that turn
a payload into something more readable.
"""
import binascii
from abc import abstractmethod
from xml.dom import minidom
from xml.parsers.expat import ExpatError


def bytes_to_hex(data) -> str:
    """
    Converts bytes to an uppercase hex string with no separators.
    >>> bytes_to_hex(b'\\xff\\xfe')
    'FFFE'
    >>> bytes_to_hex(b'')
    ''
    """
    return binascii.hexlify(bytes(data)).decode('ascii').upper()


def hex_to_bytes(text) -> bytes:
    """
    Converts a hex string to bytes. Either case is accepted.
    Raises ValueError if the text is not an even number of hex digits.
    >>> hex_to_bytes('fffe')
    b'\\xff\\xfe'
    """
    try:
        return binascii.unhexlify(text)
    except (ValueError, TypeError) as e:
        raise ValueError("not a valid hex string: '%s'" % text) from e


def to_payload(value) -> bytes:
    """
    Converts a value given to send() to bytes. Strings are interpreted as hex.
    >>> to_payload('FFFE')
    b'\\xff\\xfe'
    >>> to_payload(bytearray(b'abc'))
    b'abc'
    """
    if isinstance(value, str):
        return hex_to_bytes(value)
    return bytes(value)


class PayloadDecoder:
    """
    Knows how to convert the bytes of a message into decoded content.
    """

    @abstractmethod
    def decode(self, payload: bytes):
        """
        :return: the decoded content.
        Raises ValueError when the payload cannot be decoded.
        """
        raise NotImplementedError()


class TextPayloadDecoder(PayloadDecoder):
    """
    Decodes the payload as text. Text that is well formed XML is pretty-printed.

    >>> TextPayloadDecoder().decode(b'<R><A>1</A></R>')
    '<R>\\n  <A>1</A>\\n</R>'
    >>> TextPayloadDecoder().decode(b'<!--:Begin:Msg:1--><!--:End:Msg:1-->')
    '<!--:Begin:Msg:1--><!--:End:Msg:1-->'
    """

    def __init__(self, encoding='utf-8', indent='  '):
        self.encoding = encoding
        self.indent = indent

    def decode(self, payload: bytes):
        text = bytes(payload).decode(self.encoding)
        try:
            document = minidom.parseString(text)
        except ExpatError:
            return text
        pretty = "".join(node.toprettyxml(indent=self.indent, newl="\n") for node in document.childNodes)
        return pretty.strip()
