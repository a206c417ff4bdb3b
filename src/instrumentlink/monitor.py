"""
A command line monitor for manual testing. Runs a link from a configuration file and logs the
status changes and messages. The link restarts when the configuration file is edited.

    python -m instrumentlink.monitor [link.cfg]
"""
import logging
import sys
import time

from instrumentlink.codecs import TextPayloadDecoder
from instrumentlink.config.config import FileConfigSource, config_extension
from instrumentlink.events import LinkListener
from instrumentlink.link import ConnectionManager
from instrumentlink.message import MessageEnvelope

logger = logging.getLogger(__name__)

default_config_file = 'link' + config_extension


class LoggingListener(LinkListener):
    """ logs each notification from the link """

    def __init__(self, log=logger):
        self.logger = log

    def message_received(self, envelope: MessageEnvelope):
        self.logger.info("message %s: %s at %s", envelope.direction.value, envelope.hex,
                         envelope.timestamp.isoformat(sep=' '))
        if envelope.decoded:
            self.logger.info("content:\n%s", envelope.decoded)

    def status_changed(self, status: str):
        self.logger.info("connection status changed: %s", status)


def configure_logging(level):
    root = logging.getLogger('instrumentlink')
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s: %(message)s'))
        root.addHandler(handler)
    root.setLevel(level)


def monitor(file=default_config_file, status_interval=30):
    """ runs the link until interrupted, periodically logging the connection status. """
    source = FileConfigSource(file)
    manager = ConnectionManager.from_source(source, decoder=TextPayloadDecoder())
    configure_logging(manager.config.log_level)
    manager.events += LoggingListener()
    source.watch()
    manager.start()
    try:
        while True:
            time.sleep(status_interval)
            logger.info("link %s, state %s", manager.config.describe(), manager.state.value)
    except KeyboardInterrupt:
        logger.info("stopping")
    finally:
        source.close()
        manager.close()


def main(argv=None):
    args = sys.argv[1:] if argv is None else argv
    monitor(args[0] if args else default_config_file)


if __name__ == '__main__':
    main()
