"""
Settings and logging setup shared by the DDSC dump utilities.

Settings live in a YAML file (dump_settings.yaml by default). Every key is
optional; anything missing falls back to the values the DDSC cluster was
dumped with.
"""
import codecs
import logging
import os

import yaml
from cassandra import ConsistencyLevel

# --- Defaults ---
DEFAULT_NODES = [
    '10.100.239.201', '10.100.239.203',  # EasyNet
    '10.100.239.202', '10.100.239.204',  # GlobalSwitch
]
DEFAULT_PORT = 9042  # native_transport_port
DEFAULT_KEYSPACE = 'ddsc'
DEFAULT_COLUMN_FAMILY = 'events'
DEFAULT_PAGE_SIZE = 24 * 365  # one year of hourly values
DEFAULT_ENCODING = 'UTF-8'
DEFAULT_CONSISTENCY = 'ONE'
DEFAULT_CONNECT_TIMEOUT = 30
DEFAULT_REQUEST_TIMEOUT = 600

DEFAULT_CONFIG_FILE = 'dump_settings.yaml'
DEFAULT_DUMP_FILE = 'ddsc.json.gz'

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


class SettingsError(ValueError):
    """Raised when the settings file holds a value we cannot use."""


class DumpSettings:
    """Connection and paging settings for one dump run."""

    def __init__(self, nodes=None, port=DEFAULT_PORT, keyspace=DEFAULT_KEYSPACE,
                 column_family=DEFAULT_COLUMN_FAMILY, page_size=DEFAULT_PAGE_SIZE,
                 encoding=DEFAULT_ENCODING, consistency=DEFAULT_CONSISTENCY,
                 connect_timeout=DEFAULT_CONNECT_TIMEOUT,
                 request_timeout=DEFAULT_REQUEST_TIMEOUT,
                 log_file=None, progress=True):
        self.nodes = list(DEFAULT_NODES if nodes is None else nodes)
        self.port = port
        self.keyspace = keyspace
        self.column_family = column_family
        self.page_size = page_size
        self.encoding = encoding
        self.consistency = str(consistency).upper()
        self.connect_timeout = connect_timeout
        self.request_timeout = request_timeout
        self.log_file = log_file
        self.progress = bool(progress)
        self.validate()

    def validate(self):
        if not self.nodes:
            raise SettingsError("At least one Cassandra node is required")
        try:
            self.port = int(self.port)
            self.page_size = int(self.page_size)
        except (TypeError, ValueError) as e:
            raise SettingsError(f"CASSANDRA_PORT and PAGE_SIZE must be integers: {e}")
        if not isinstance(self.encoding, str):
            raise SettingsError(f"ENCODING must be a string, got {self.encoding!r}")
        if self.page_size <= 0:
            raise SettingsError(f"PAGE_SIZE must be positive, got {self.page_size}")
        try:
            codecs.lookup(self.encoding)
        except LookupError:
            raise SettingsError(f"Unknown ENCODING: {self.encoding}")
        if self.consistency not in ConsistencyLevel.name_to_value:
            raise SettingsError(f"Unknown CONSISTENCY: {self.consistency}")

    @property
    def consistency_level(self):
        return ConsistencyLevel.name_to_value[self.consistency]

    @classmethod
    def from_dict(cls, config):
        if not isinstance(config, dict):
            raise SettingsError("Settings file must contain a mapping")
        nodes = config.get('CASSANDRA_NODES', DEFAULT_NODES)
        if isinstance(nodes, str):
            nodes = [n.strip() for n in nodes.split(',') if n.strip()]
        return cls(
            nodes=nodes,
            port=config.get('CASSANDRA_PORT', DEFAULT_PORT),
            keyspace=config.get('KEYSPACE', DEFAULT_KEYSPACE),
            column_family=config.get('COLUMN_FAMILY', DEFAULT_COLUMN_FAMILY),
            page_size=config.get('PAGE_SIZE', DEFAULT_PAGE_SIZE),
            encoding=config.get('ENCODING', DEFAULT_ENCODING),
            consistency=config.get('CONSISTENCY', DEFAULT_CONSISTENCY),
            connect_timeout=config.get('CONNECT_TIMEOUT', DEFAULT_CONNECT_TIMEOUT),
            request_timeout=config.get('REQUEST_TIMEOUT', DEFAULT_REQUEST_TIMEOUT),
            log_file=config.get('LOG_FILE'),
            progress=config.get('PROGRESS', True),
        )


def load_settings(config_file=DEFAULT_CONFIG_FILE):
    """
    Load settings from a YAML file.
    A missing file gives the defaults; an empty one is an empty mapping.
    """
    if not os.path.exists(config_file):
        return DumpSettings()
    with open(config_file, 'r') as file:
        config = yaml.safe_load(file)
    return DumpSettings.from_dict(config or {})


def setup_logging(log_file=None, verbose=False):
    """Configure the root logger once per process."""
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers
    )
