"""
The conduit package provides an abstraction of a bi-directional byte channel to an open endpoint.
Concrete implementations include serial ports, TCP sockets and an in-memory loopback used
to simulate an instrument.
"""
