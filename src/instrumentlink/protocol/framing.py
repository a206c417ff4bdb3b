"""
Extracts application frames from the bytes read from a transport.

Instruments on a serial line wrap each message in comment markers:

    <!--:Begin:Msg:ID1--> ... <!--:End:Msg:ID1-->

A frame runs from the start marker through the closing sequence that ends the end marker.
Bytes arrive in arbitrary chunks, so the assembler accumulates them and emits frames as they
complete.
"""
import logging

from instrumentlink.errors import FramingError, FrameBufferOverflowError

logger = logging.getLogger(__name__)

START_MARKER = b'<!--:Begin:Msg:'
END_MARKER = b'<!--:End:Msg:'
CLOSING_SEQUENCE = b'-->'


class PacketFrameAssembler:
    """
    Treats each read as one complete frame. Used for packet-oriented transports.
    """

    def feed(self, data) -> list:
        return [bytes(data)] if data else []

    @property
    def buffer(self) -> bytes:
        return b''


class FrameAssembler:
    """
    Accumulates bytes and extracts the complete frames delimited by a start marker and an end marker
    that is itself terminated by a closing sequence.

    Anything preceding a start marker is discarded along with the frame it precedes. Data that has not
    yet formed a complete frame is kept for the next feed().

    >>> assembler = FrameAssembler()
    >>> assembler.feed(b'noise<!--:Begin:Msg:1-->A<!--:End:')
    []
    >>> assembler.feed(b'Msg:1-->')
    [b'<!--:Begin:Msg:1-->A<!--:End:Msg:1-->']
    >>> assembler.buffer
    b''

    :param max_buffer: the largest the buffer may grow without producing a frame. None for no limit.
        On overflow, data before the last start marker is discarded. When the buffer holds no start
        marker after its first byte, it is emptied except for a trailing partial start marker, so a
        single frame larger than the limit is dropped.
    """

    def __init__(self, start_marker=START_MARKER, end_marker=END_MARKER, closing_sequence=CLOSING_SEQUENCE,
                 max_buffer=None, log=logger):
        if not (start_marker and end_marker and closing_sequence):
            raise ValueError("markers must not be empty")
        self.start_marker = bytes(start_marker)
        self.end_marker = bytes(end_marker)
        self.closing_sequence = bytes(closing_sequence)
        self.max_buffer = max_buffer
        self.logger = log
        self._buffer = bytearray()

    @property
    def buffer(self) -> bytes:
        """ the bytes received that are not yet part of a complete frame """
        return bytes(self._buffer)

    def reset(self):
        self._buffer.clear()

    def feed(self, data) -> list:
        """
        Adds data to the buffer and extracts all complete frames.
        :return: the list of frames completed by this data, in the order they were received.
        """
        self._buffer += data
        frames = []
        frame = self._extract()
        while frame is not None:
            try:
                self._check(frame)
            except FramingError as e:
                self.logger.warning("malformed frame: %s", e)
            frames.append(frame)
            frame = self._extract()
        if self.max_buffer is not None:
            try:
                self._check_overflow()
            except FrameBufferOverflowError as e:
                self.logger.warning("%s", e)
        return frames

    def _extract(self):
        """
        Removes the first complete frame from the buffer, along with any bytes preceding it.
        :return: the frame, or None if the buffer does not yet hold a complete frame.
        """
        buffer = self._buffer
        start = buffer.find(self.start_marker)
        if start < 0:
            return None
        end = buffer.find(self.end_marker, start + len(self.start_marker))
        if end < 0:
            return None
        closing = buffer.find(self.closing_sequence, end + len(self.end_marker))
        if closing < 0:
            return None
        stop = closing + len(self.closing_sequence)
        frame = bytes(buffer[start:stop])
        del buffer[:stop]
        return frame

    def _check(self, frame):
        """ raises FramingError if the frame holds a second start marker before its end marker """
        end = frame.find(self.end_marker, len(self.start_marker))
        nested = frame.find(self.start_marker, len(self.start_marker), end)
        if nested >= 0:
            raise FramingError("start marker repeated at offset %d before the end marker" % nested)

    def _check_overflow(self):
        buffer = self._buffer
        if len(buffer) <= self.max_buffer:
            return
        size = len(buffer)
        last_start = buffer.rfind(self.start_marker)
        if last_start > 0:
            del buffer[:last_start]
        else:
            # no start marker to resynchronize on, or one frame larger than the limit
            del buffer[:size - self._partial_start_length()]
        raise FrameBufferOverflowError("frame buffer exceeded %d bytes (%d buffered), %d bytes discarded" %
                                       (self.max_buffer, size, size - len(buffer)))

    def _partial_start_length(self):
        """ the length of the longest prefix of the start marker that ends the buffer """
        buffer = self._buffer
        for length in range(min(len(self.start_marker) - 1, len(buffer)), 0, -1):
            if buffer.endswith(self.start_marker[:length]):
                return length
        return 0
