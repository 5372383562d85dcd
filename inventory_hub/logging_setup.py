import logging
import logging.handlers
from pathlib import Path

from inventory_hub.config import config

LOG_FILE_PREFIX = 'inventory'


class Logger:
    """Logging manager for the inventory engine.

    Every named logger writes to its own rotating file
    (``logs/inventory-<name>.log``) and propagates to the root logger,
    which owns the single console handler.
    """

    _instance = None
    _loggers = {}

    def __new__(cls):
        """Singleton pattern implementation."""
        if cls._instance is None:
            cls._instance = super(Logger, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize the logger if not already initialized."""
        if self._initialized:
            return

        settings = config.log_config
        self._level = self._parse_level(settings['level'])
        self._formatter = logging.Formatter(settings['format'])
        self._max_bytes = settings['max_size_mb'] * 1024 * 1024
        self._backup_count = settings['backup_count']
        self._console_output = settings['console_output']

        self._log_dir = Path(settings['directory'])
        self._log_dir.mkdir(parents=True, exist_ok=True)

        self._configure_root_logger()
        self._app_logger = self.get_logger('app')

        self._initialized = True

    @staticmethod
    def _parse_level(level_name):
        return getattr(logging, str(level_name).upper(), logging.INFO)

    def _configure_root_logger(self):
        root_logger = logging.getLogger()
        root_logger.setLevel(self._level)

        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        if self._console_output:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(self._formatter)
            root_logger.addHandler(console_handler)

    def _file_handler(self, name):
        handler = logging.handlers.RotatingFileHandler(
            self._log_dir / f"{LOG_FILE_PREFIX}-{name}.log",
            maxBytes=self._max_bytes,
            backupCount=self._backup_count,
            delay=True
        )
        handler.setFormatter(self._formatter)
        return handler

    def get_logger(self, name):
        """Get a logger with the specified name.

        Args:
            name: Component name ('stock', 'purchase_orders', 'api', ...)

        Returns:
            Configured logger instance
        """
        if name in self._loggers:
            return self._loggers[name]

        named_logger = logging.getLogger(name)
        named_logger.setLevel(self._level)

        for handler in named_logger.handlers[:]:
            named_logger.removeHandler(handler)
        named_logger.addHandler(self._file_handler(name))

        self._loggers[name] = named_logger
        return named_logger

    def set_level(self, level_name):
        """Change the level of the root logger and every named logger."""
        self._level = self._parse_level(level_name)
        logging.getLogger().setLevel(self._level)
        for named_logger in self._loggers.values():
            named_logger.setLevel(self._level)

    def log_exception(self, logger_name, exception, message=None):
        """Log an exception with its stack trace.

        Args:
            logger_name: Logger name
            exception: Exception object
            message: Optional message to include
        """
        text = f"{message}: {exception}" if message else str(exception)
        self.get_logger(logger_name).error(text, exc_info=exception)

    @property
    def app_logger(self):
        """Get the application logger."""
        return self._app_logger


# Global logger instance
logger = Logger()


def get_logger(name):
    """Get a logger with the specified name."""
    return logger.get_logger(name)


def log_exception(logger_name, exception, message=None):
    """Log an exception with stack trace."""
    logger.log_exception(logger_name, exception, message)
