"""
The link configuration, and loading it from ConfigObj files.

A LinkConfig is an immutable value. The connection manager never modifies a config in place;
a changed configuration is a new LinkConfig handed to update_config().
"""
import codecs
import logging
import os
from abc import abstractmethod
from enum import Enum
from typing import NamedTuple, Optional

from configobj import ConfigObj, ConfigObjError, Section
from validate import Validator

from instrumentlink.support.background import BackgroundLoop
from instrumentlink.support.events import EventSource

logger = logging.getLogger(__name__)

# The default extension for configuration files
config_extension = '.cfg'


class ConfigEnum(Enum):
    """ an enum that can be parsed case-insensitively from configuration text. """

    @classmethod
    def parse(cls, value):
        """
        >>> Direction.parse('input')
        <Direction.INPUT: 'Input'>
        >>> Direction.parse(Direction.OUTPUT)
        <Direction.OUTPUT: 'Output'>
        """
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == text or member.name.lower() == text:
                return member
        raise ValueError("'%s' is not a valid %s. Expected one of %s" %
                         (value, cls.__name__, ', '.join(m.value for m in cls)))


class CommunicationKind(ConfigEnum):
    TCP = 'TCP'
    SERIAL = 'SERIAL'


class LinkMode(ConfigEnum):
    """ TCP only: whether the link connects out to the instrument or waits for it to connect. """
    CLIENT = 'client'
    SERVER = 'server'


class Direction(ConfigEnum):
    INPUT = 'Input'
    OUTPUT = 'Output'
    BIDIRECTIONAL = 'Bidirectional'


class TcpEndpoint(NamedTuple):
    address: str = '127.0.0.1'
    port: int = 8080


class SerialEndpoint(NamedTuple):
    port: str = 'COM1'
    baudrate: int = 9600
    parity: str = 'None'
    data_bits: int = 8
    stop_bits: str = 'One'
    handshake: str = 'None'
    dtr: bool = False
    rts: bool = False


class Timeouts(NamedTuple):
    """ timeouts in seconds """
    connect: float = 10
    receive: float = 30
    send: float = 10


class ReconnectPolicy(NamedTuple):
    interval: float = 30
    max_attempts: int = -1      # negative for no limit


class KeepAlivePolicy(NamedTuple):
    enabled: bool = True
    interval: float = 60


class BufferSizes(NamedTuple):
    read: int = 4096
    write: int = 2048


class LinkConfig(NamedTuple):
    kind: CommunicationKind = CommunicationKind.SERIAL
    mode: LinkMode = LinkMode.CLIENT
    direction: Direction = Direction.BIDIRECTIONAL
    tcp: TcpEndpoint = TcpEndpoint()
    serial: SerialEndpoint = SerialEndpoint()
    timeouts: Timeouts = Timeouts()
    reconnect: ReconnectPolicy = ReconnectPolicy()
    keep_alive: KeepAlivePolicy = KeepAlivePolicy()
    buffers: BufferSizes = BufferSizes()
    delimiter: bytes = b''              # appended to outbound serial writes
    tcp_framing: bool = False           # apply marker framing to TCP reads
    max_frame_buffer: Optional[int] = None
    log_level: str = 'INFO'

    def describe(self):
        """
        >>> LinkConfig(kind=CommunicationKind.TCP, tcp=TcpEndpoint('10.0.0.2', 5000)).describe()
        'TCP client 10.0.0.2:5000'
        >>> LinkConfig(serial=SerialEndpoint('/dev/ttyUSB0', 115200)).describe()
        'SERIAL /dev/ttyUSB0 115200 None 8 One'
        """
        if self.kind is CommunicationKind.TCP:
            return "TCP %s %s:%s" % (self.mode.value, self.tcp.address, self.tcp.port)
        s = self.serial
        return "SERIAL %s %s %s %s %s" % (s.port, s.baudrate, s.parity, s.data_bits, s.stop_bits)


config_spec = """
kind = string(default='SERIAL')
mode = string(default='client')
direction = string(default='Bidirectional')
delimiter = string(default='')
tcp_framing = boolean(default=False)
max_frame_buffer = integer(min=0, default=0)
log_level = string(default='INFO')
[tcp]
address = string(default='127.0.0.1')
port = integer(min=0, max=65535, default=8080)
[serial]
port = string(default='COM1')
baudrate = integer(min=1, default=9600)
parity = string(default='None')
data_bits = integer(min=5, max=8, default=8)
stop_bits = string(default='One')
handshake = string(default='None')
dtr = boolean(default=False)
rts = boolean(default=False)
[timeouts]
connect = float(min=0, default=10)
receive = float(min=0, default=30)
send = float(min=0, default=10)
[reconnect]
interval = float(min=0, default=30)
max_attempts = integer(min=-1, default=-1)
[keepalive]
enabled = boolean(default=True)
interval = float(min=0, default=60)
[buffers]
read = integer(min=1, default=4096)
write = integer(min=1, default=2048)
""".splitlines()


def load_config_file_base(file, must_exist=True):
    """
    Loads a configuration file, validated against the link config schema.
    :param file:        The configuration file to load
    :param must_exist:  when True, the file must exist or an exception is thrown.
    :return: The ConfigObj instance for the file.
    """
    try:
        config = ConfigObj(file, configspec=config_spec, interpolation='Template', file_error=must_exist) \
            if must_exist or os.path.exists(file) else ConfigObj(configspec=config_spec)
    except ConfigObjError as e:
        raise type(e)(str(e) + ' at ' + file)
    result = config.validate(Validator())
    if result is not True:
        raise ConfigObjError("the config file %s failed validation %s" % (file, result))
    return config


def unescape(text):
    r"""
    Converts backslash escapes in configuration text to the bytes they represent.
    >>> unescape(r'\r\n')
    b'\r\n'
    >>> unescape('')
    b''
    """
    return codecs.decode(text, 'unicode_escape').encode('latin-1')


def link_config_from_section(conf: Section) -> LinkConfig:
    """
    Builds a LinkConfig from a validated configuration.
    Raises ValueError when an enumerated value is not recognised.
    """
    tcp, ser, timeouts = conf['tcp'], conf['serial'], conf['timeouts']
    reconnect, keep_alive, buffers = conf['reconnect'], conf['keepalive'], conf['buffers']
    return LinkConfig(
        kind=CommunicationKind.parse(conf['kind']),
        mode=LinkMode.parse(conf['mode']),
        direction=Direction.parse(conf['direction']),
        tcp=TcpEndpoint(tcp['address'], tcp['port']),
        serial=SerialEndpoint(ser['port'], ser['baudrate'], ser['parity'], ser['data_bits'],
                              ser['stop_bits'], ser['handshake'], ser['dtr'], ser['rts']),
        timeouts=Timeouts(timeouts['connect'], timeouts['receive'], timeouts['send']),
        reconnect=ReconnectPolicy(reconnect['interval'], reconnect['max_attempts']),
        keep_alive=KeepAlivePolicy(keep_alive['enabled'], keep_alive['interval']),
        buffers=BufferSizes(buffers['read'], buffers['write']),
        delimiter=unescape(conf['delimiter']),
        tcp_framing=conf['tcp_framing'],
        max_frame_buffer=conf['max_frame_buffer'] or None,
        log_level=conf['log_level'].upper())


def load_link_config(file, must_exist=True) -> LinkConfig:
    """
    Loads the link configuration from a file. Values missing from the file take their defaults.
    Raises ConfigObjError when the file is malformed or fails validation.
    """
    conf = load_config_file_base(file, must_exist)
    try:
        return link_config_from_section(conf)
    except ValueError as e:
        raise ConfigObjError("the config file %s failed validation: %s" % (file, e)) from e


class ConfigSource:
    """
    Provides the link configuration, and notifies listeners when it changes.
    Listeners added to changed receive the new LinkConfig.
    """

    def __init__(self):
        self.changed = EventSource()

    @abstractmethod
    def load(self) -> LinkConfig:
        raise NotImplementedError


class StaticConfigSource(ConfigSource):
    """ A config source held in memory. Calling update() notifies listeners. """

    def __init__(self, config: LinkConfig=None):
        super().__init__()
        self._config = config if config is not None else LinkConfig()

    def load(self) -> LinkConfig:
        return self._config

    def update(self, config: LinkConfig):
        self._config = config
        self.changed.fire(config)


class FileConfigSource(ConfigSource):
    """
    Loads the configuration from a file, and when watched, polls the file for modifications.
    A modified file that fails to load is logged and the previous configuration kept.
    """

    def __init__(self, file, poll_interval=2, log=logger):
        super().__init__()
        self.file = file
        self.poll_interval = poll_interval
        self.logger = log
        self._config = None
        self._modified = None
        self._watcher = None

    def load(self) -> LinkConfig:
        self._modified = self._modification_time()
        self._config = load_link_config(self.file)
        self.logger.info("configuration loaded from %s: %s", self.file, self._config.describe())
        return self._config

    def _modification_time(self):
        try:
            return os.stat(self.file).st_mtime_ns
        except OSError:
            return None

    def check(self):
        """
        Reloads the configuration if the file has changed since last loaded.
        :return: True if a new configuration was loaded and listeners notified.
        """
        modified = self._modification_time()
        if modified is None or modified == self._modified:
            return False
        self._modified = modified
        try:
            config = load_link_config(self.file)
        except (ConfigObjError, OSError) as e:
            self.logger.error("unable to reload configuration from %s, keeping the previous configuration: %s",
                              self.file, e)
            return False
        if config == self._config:
            return False
        self.logger.info("configuration file %s changed", self.file)
        self._config = config
        self.changed.fire(config)
        return True

    def watch(self):
        """ starts polling the file for changes on a background thread. """
        if self._watcher is None:
            if self._modified is None:
                self._modified = self._modification_time()

            def poll():
                if not watcher.wait(self.poll_interval):
                    self.check()
            watcher = self._watcher = BackgroundLoop(poll, name='config-watch', log=self.logger)
            watcher.start()

    def close(self):
        watcher = self._watcher
        self._watcher = None
        if watcher is not None:
            watcher.stop()
