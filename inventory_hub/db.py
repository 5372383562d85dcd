from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker, scoped_session
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import StaticPool

from inventory_hub.config import config
from inventory_hub.exceptions import ConfigError, PersistenceError
from inventory_hub.logging_setup import get_logger

logger = get_logger('db')

# Errors that mean "somebody else wrote first"; the unit of work is retried
RETRYABLE_ERRORS = (StaleDataError, IntegrityError, OperationalError)


def engine_options(url):
    """Keyword arguments for ``create_engine`` given a parsed URL."""
    settings = config.section('DATABASE')
    options = {'echo': settings['echo']}

    if url.get_backend_name() != 'sqlite':
        options.update(
            pool_size=settings['pool_size'],
            max_overflow=settings['max_overflow'],
            pool_timeout=settings['pool_timeout'],
            pool_recycle=settings['pool_recycle'],
            pool_pre_ping=True,
        )
        return options

    options['connect_args'] = {'check_same_thread': False}
    if url.database in (None, '', ':memory:'):
        # One shared connection, otherwise every session sees an empty db
        options['poolclass'] = StaticPool
    return options


def _enable_foreign_keys(dbapi_conn, _):
    cursor = dbapi_conn.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON;")
    finally:
        cursor.close()


class Database:
    """Engine and scoped session registry shared by the API, CLI and tests."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(Database, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._engine = None
        self._registry = None
        self._initialized = True

    def initialize(self, connection_string=None):
        """(Re)bind the engine and session registry.

        Args:
            connection_string: Database URL; the configured one when omitted
        """
        if connection_string is None:
            connection_string = config.get_db_url()
        if not connection_string:
            raise ConfigError("No database URL configured", details={'section': 'DATABASE'})

        url = make_url(connection_string)
        self.dispose()

        self._engine = create_engine(url, **engine_options(url))
        if url.get_backend_name() == 'sqlite':
            event.listen(self._engine, 'connect', _enable_foreign_keys)

        self._registry = scoped_session(sessionmaker(bind=self._engine, autoflush=False))
        logger.info(f"Database initialized ({url.get_backend_name()})")

    def dispose(self):
        """Drop the current sessions and close pooled connections."""
        if self._registry is not None:
            self._registry.remove()
            self._registry = None
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def create_all_tables(self):
        from inventory_hub.models import Base
        Base.metadata.create_all(self.engine)

    def drop_all_tables(self):
        from inventory_hub.models import Base
        Base.metadata.drop_all(self.engine)

    @property
    def session(self):
        """The scoped session registry, binding the configured URL on first use."""
        if self._registry is None:
            self.initialize()
        return self._registry

    @property
    def engine(self):
        if self._engine is None:
            self.initialize()
        return self._engine

    @contextmanager
    def session_scope(self):
        """Commit on success, roll back on any error.

        Domain and retryable errors propagate unchanged; any other
        SQLAlchemy error is wrapped in PersistenceError.
        """
        registry = self.session
        session = registry()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            if isinstance(e, SQLAlchemyError) and not isinstance(e, RETRYABLE_ERRORS):
                logger.error(f"Database error, transaction rolled back: {e}")
                raise PersistenceError(f"Database operation failed: {e}") from e
            raise
        finally:
            registry.remove()

    def run_in_transaction(self, work, max_retries=None):
        """Run ``work(session)`` in its own transaction, retrying lost races.

        A stale version counter or a duplicate key means another writer
        committed first; the whole unit of work is rolled back and re-run
        against fresh rows.

        Args:
            work: Callable taking a session and returning a result
            max_retries: Attempts before giving up (defaults to config)

        Returns:
            Whatever ``work`` returns

        Raises:
            PersistenceError: code CONFLICT once every attempt lost its race
        """
        attempts = max(1, config.max_retries if max_retries is None else max_retries)

        attempt = 0
        while True:
            attempt += 1
            try:
                with self.session_scope() as session:
                    return work(session)
            except RETRYABLE_ERRORS as e:
                if attempt >= attempts:
                    logger.error(f"Giving up after {attempt} attempts: {e}")
                    raise PersistenceError(
                        f"Concurrent update conflict: {e}", code='CONFLICT'
                    ) from e
                logger.warning(f"Concurrent update detected (attempt {attempt}), retrying")


# Global database instance
db = Database()


@contextmanager
def session_scope():
    with db.session_scope() as session:
        yield session


def run_in_transaction(work, max_retries=None):
    """Run a unit of work with optimistic-concurrency retries."""
    return db.run_in_transaction(work, max_retries)
