from instrumentlink.config.config import LinkConfig, CommunicationKind, LinkMode
from instrumentlink.transport.base import Transport
from instrumentlink.transport.serialtransport import SerialTransport
from instrumentlink.transport.sockettransport import TcpClientTransport, TcpServerTransport


def create_transport(config: LinkConfig) -> Transport:
    """ creates a new, unconnected transport for the kind and mode of link configured. """
    if config.kind is CommunicationKind.SERIAL:
        return SerialTransport(config.serial, config.timeouts, config.buffers, config.delimiter)
    if config.mode is LinkMode.SERVER:
        return TcpServerTransport(config.tcp, config.timeouts)
    return TcpClientTransport(config.tcp, config.timeouts)
