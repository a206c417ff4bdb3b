"""

Instrument Links

- Conduit: abstraction of a bi-directional byte channel to an open endpoint.
- Transport: knows how to open a conduit to an endpoint and close it again
 - TCP client, connecting out to the instrument
 - TCP server, waiting for the instrument to connect
 - local serial ports
- Framing - the instrument wraps each message in comment markers
    <!--:Begin:Msg:ID--> ... <!--:End:Msg:ID-->
  Serial links are an unframed byte stream, so frames are reassembled from the markers.
  On TCP, each read is one message unless marker framing is configured.
- ConnectionManager - maintains the link for a given LinkConfig. A background monitor thread
  opens the transport, retrying at the configured interval until a connection is made or the
  maximum number of attempts is used up. While connected, a receive thread publishes each
  incoming message and a keep-alive thread writes FFFE periodically.
- Events - ConnectionStatusChangedEvent and MessageReceivedEvent are published to the
  manager's EventSink, on the thread that produced them.
- Configuration - ConfigObj files validated against a schema. A FileConfigSource watches the
  file, and the manager restarts the link when it changes.


## Threading

Each start() begins a lifetime with its own monitor thread, transport and reconnect counter.
stop() ends it: blocking I/O is interrupted by closing the conduit (or the listening socket)
from the stopping thread, and all threads are joined before "Disconnected" is published.
A stop() from an event handler returns at once and the joining happens on the supervisor
thread. Setting the cancel event given to start() ends the lifetime the same way.

send() runs on the caller's thread. Writes are serialized so each call is one write to the
transport.

update_config() restarts the link on a supervisor thread so that the caller is not blocked,
and so that restarts never overlap.

"""
