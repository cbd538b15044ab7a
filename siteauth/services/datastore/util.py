"""Engine, session factory and Flask application integration."""

from typing import Generator, Any, Dict, Optional
from datetime import datetime
from contextlib import contextmanager
import logging

from pytz import UTC
from flask import Flask, current_app
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session
from sqlalchemy.pool import StaticPool

from ..exceptions import Unavailable
from .models import Base

logger = logging.getLogger(__name__)

_MEMORY_URIS = ('sqlite://', 'sqlite:///:memory:')


def now() -> datetime:
    """Get the current time, in UTC."""
    return datetime.now(tz=UTC)


class Datastore:
    """
    Handle on the credential store.

    Owns a SQLAlchemy engine and hands out a fresh :class:`Session` for each
    unit of work via :meth:`transaction`, so an instance may be shared freely
    between threads.
    """

    def __init__(self, uri: str, pool_pre_ping: bool = True,
                 **engine_kwargs: Any) -> None:
        """Build the engine for ``uri``."""
        kwargs: Dict[str, Any] = {'pool_pre_ping': pool_pre_ping}
        if uri.startswith('sqlite'):
            kwargs['connect_args'] = {'check_same_thread': False,
                                      'timeout': 30}
            if uri in _MEMORY_URIS:
                kwargs['poolclass'] = StaticPool
        kwargs.update(engine_kwargs)
        self.uri = uri
        self.engine: Engine = create_engine(uri, **kwargs)
        self._sessionmaker = sessionmaker(bind=self.engine,
                                          expire_on_commit=False)

    @contextmanager
    def transaction(self) -> Generator[Session, None, None]:
        """
        Context manager for a database transaction.

        Commits when the block exits cleanly, otherwise rolls back and
        re-raises. Loss of connectivity is reported as :class:`.Unavailable`.
        """
        session = self._sessionmaker()
        try:
            yield session
            session.commit()
        except OperationalError as e:
            logger.error('Database error, rolling back: %s', e)
            session.rollback()
            raise Unavailable('Database is temporarily unavailable') from e
        except Exception as e:
            logger.debug('Rolling back: %s', type(e).__name__)
            session.rollback()
            raise
        finally:
            session.close()

    def is_available(self) -> bool:
        """Determine whether the database is reachable."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text('SELECT 1'))
        except OperationalError as e:
            logger.error('Database is not available: %s', e)
            return False
        return True

    def create_all(self) -> None:
        """Create all tables in the database."""
        Base.metadata.create_all(self.engine)

    def drop_all(self) -> None:
        """Drop all tables in the database."""
        Base.metadata.drop_all(self.engine)

    def dispose(self) -> None:
        """Close all pooled connections."""
        self.engine.dispose()


def init_app(app: Flask, datastore: Optional[Datastore] = None) -> Datastore:
    """Build a :class:`.Datastore` from config and attach it to ``app``."""
    if datastore is None:
        datastore = Datastore(
            app.config['SQLALCHEMY_DATABASE_URI'],
            pool_pre_ping=app.config.get('SQLALCHEMY_POOL_PRE_PING', True)
        )
    app.extensions['datastore'] = datastore
    if app.config.get('CREATE_DB'):
        datastore.create_all()
    return datastore


def current_datastore() -> Datastore:
    """Get the :class:`.Datastore` attached to the current application."""
    return current_app.extensions['datastore']  # type: ignore
