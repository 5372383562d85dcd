import os
import configparser
from pathlib import Path

DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Built-in settings; config/settings.ini overrides any of them
DEFAULTS = {
    'DATABASE': {
        'url': 'sqlite:///./inventory.db',
        'echo': False,
        'pool_size': 10,
        'max_overflow': 20,
        'pool_timeout': 30,
        'pool_recycle': 1800,
    },
    'LOGGING': {
        'level': 'INFO',
        'format': DEFAULT_LOG_FORMAT,
        'directory': 'logs',
        'max_size_mb': 10,
        'backup_count': 5,
        'console_output': True,
    },
    'FORECAST': {
        'default_lead_time_days': 14,
        'default_safety_days': 14,
        'velocity_window_days': 30,
        'target_stock_days': 60,
        'warning_buffer_days': 7,
    },
    'CONCURRENCY': {
        'max_retries': 3,
    },
    'API': {
        'default_list_limit': 50,
    },
}


class Config:
    """Settings for the inventory engine.

    Values come from ``DEFAULTS`` overlaid with ``settings.ini`` from the
    directory named by ``INVENTORY_CONFIG_DIR`` (``config`` by default).
    Each typed section is returned as a plain dict, converted using the type
    of the matching default.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(Config, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._config_dir = Path(os.getenv('INVENTORY_CONFIG_DIR', 'config'))
        self._config_path = self._config_dir / 'settings.ini'

        self._parser = configparser.ConfigParser(interpolation=None)
        self._parser.read_dict({
            section: {key: str(value) for key, value in options.items()}
            for section, options in DEFAULTS.items()
        })
        self._parser.read(self._config_path)

        self._initialized = True

    @property
    def path(self):
        return self._config_path

    def write_default_config(self):
        """Write the current settings out to settings.ini."""
        self._config_dir.mkdir(parents=True, exist_ok=True)
        with self._config_path.open('w') as handle:
            self._parser.write(handle)

    def _lookup(self, section, key, default, convert):
        if not self._parser.has_option(section, key):
            return default
        raw = self._parser.get(section, key)
        try:
            return convert(raw)
        except ValueError:
            return default

    def get(self, section, key, default=None):
        return self._lookup(section, key, default, str)

    def get_int(self, section, key, default=None):
        return self._lookup(section, key, default, int)

    def get_boolean(self, section, key, default=None):
        return self._lookup(section, key, default, self._to_bool)

    def _to_bool(self, raw):
        value = raw.strip().lower()
        if value not in configparser.ConfigParser.BOOLEAN_STATES:
            raise ValueError(f"Not a boolean: {raw}")
        return configparser.ConfigParser.BOOLEAN_STATES[value]

    def set(self, section, key, value):
        """Override a setting for this process; nothing is written to disk."""
        if not self._parser.has_section(section):
            self._parser.add_section(section)
        self._parser.set(section, key, str(value))

    def section(self, name):
        """All settings of a known section, typed after their defaults."""
        typed = {}
        for key, default in DEFAULTS[name].items():
            if isinstance(default, bool):
                typed[key] = self.get_boolean(name, key, default)
            elif isinstance(default, int):
                typed[key] = self.get_int(name, key, default)
            else:
                typed[key] = self.get(name, key, default)
        return typed

    def get_db_url(self):
        """SQLAlchemy database URL; INVENTORY_DB_URL wins over the file."""
        return os.getenv('INVENTORY_DB_URL') or self.get('DATABASE', 'url', DEFAULTS['DATABASE']['url'])

    @property
    def log_config(self):
        return self.section('LOGGING')

    @property
    def forecast_rules(self):
        """Defaults used by the velocity and forecast services."""
        return self.section('FORECAST')

    @property
    def max_retries(self):
        return self.section('CONCURRENCY')['max_retries']


# Global config instance
config = Config()
