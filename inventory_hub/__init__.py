from .config import config
from .db import db, session_scope, run_in_transaction
from .logging_setup import logger, get_logger
from .exceptions import (
    InventoryError, ConfigError, ValidationError, StateTransitionError,
    NegativeStockError, NotFoundError, PersistenceError
)

__version__ = '0.1.0'

__all__ = [
    'config',
    'db',
    'session_scope',
    'run_in_transaction',
    'logger',
    'get_logger',
    'InventoryError',
    'ConfigError',
    'ValidationError',
    'StateTransitionError',
    'NegativeStockError',
    'NotFoundError',
    'PersistenceError'
]
