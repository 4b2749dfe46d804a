""" Provides the sqlalchemy session for spotres.

All reads and writes of a single request (an assignment, a release, ...)
happen in one transaction with SERIALIZABLE isolation. Two requests touching
the same spot concurrently either see each other's complete result or one of
them fails on commit, in which case it is rolled back completely and a
:class:`spotres.modules.errors.StorageError` is raised. spotres does not
retry, that is up to the caller.

On SQLite the same holds by running one transaction at a time, the second
request waits for the first one to finish.

"""
from __future__ import annotations

import functools
import logging

from sqlalchemy import create_engine
from sqlalchemy import event
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.pool import QueuePool
from sqlalchemy.orm import scoped_session, sessionmaker

from spotres.context.core import StoppableService
from spotres.modules import errors


from typing import Any
from typing import TypeVar
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from sqlalchemy.engine import Connection, Engine
    from typing_extensions import Concatenate, ParamSpec

    from spotres.context.core import ContextServicesMixin

    _P = ParamSpec('_P')
    _M = TypeVar('_M', bound=ContextServicesMixin)

_T = TypeVar('_T')


log = logging.getLogger('spotres')


SERIALIZABLE = 'SERIALIZABLE'

_marker = 'spotres.serialized'


class SessionProvider(StoppableService):
    """Global session utility. It provides a SERIALIZABLE session to spotres.
    If you want to override this provider, be sure to set the isolation_level
    to SERIALIZABLE as well.

    If you don't do that, concurrent assignments on the same spot may
    produce overlapping intervals!

    SQLite has no SERIALIZABLE level that pysqlite honours, there every
    transaction takes the write lock up front instead, see
    :func:`lock_sqlite_transactions`.

    """

    def __init__(
        self,
        dsn: str,
        engine_config: dict[str, Any] | None = None,
        session_config: dict[str, Any] | None = None
    ):
        assert dsn, 'No database configured, set settings.dsn'
        self.dsn = dsn

        engine_options: dict[str, Any] = {'isolation_level': SERIALIZABLE}

        if self.is_postgres:
            self.assert_valid_postgres_version(dsn)
            engine_options.update({
                'poolclass': QueuePool,
                'pool_size': 5,
                'max_overflow': 5
            })
        elif self.is_sqlite:
            engine_options = {}

        self.engine = create_engine(
            dsn,
            **engine_options,
            **(engine_config or {})
        )

        if self.is_sqlite:
            lock_sqlite_transactions(self.engine)

        self.session = scoped_session(sessionmaker(
            bind=self.engine, **(session_config or {})
        ))

    @property
    def is_postgres(self) -> bool:
        return self.dsn.startswith('postgres')

    @property
    def is_sqlite(self) -> bool:
        return self.dsn.startswith('sqlite')

    def stop_service(self) -> None:
        """ Called by the spotres context when the session provider is being
        discarded (only in testing).

        This makes sure that replacing the session provider on the context
        doesn't leave behind any idle connections.

        """

        self.session.remove()
        self.engine.dispose()

    def get_postgres_version(self, dsn: str) -> tuple[str, int]:
        """ Returns the postgres version as a tuple (string, integer).

        Uses its own connection to be independent from any session.

        """
        assert 'postgres' in dsn, 'Not a postgres database'

        query = text("""
            SELECT current_setting('server_version'),
                   current_setting('server_version_num')
        """)

        engine = create_engine(dsn)

        try:
            with engine.connect() as connection:
                result = connection.execute(query).first()

            assert result is not None
            version, number = result
            return version, int(number)
        finally:
            engine.dispose()

    def assert_valid_postgres_version(self, dsn: str) -> str:
        v, n = self.get_postgres_version(dsn)

        if n < 90100:
            raise RuntimeError(f'PostgreSQL 9.1+ is required, got {v}')

        return dsn


def lock_sqlite_transactions(engine: Engine) -> None:
    """ Makes every transaction on the given SQLite engine start with
    ``BEGIN IMMEDIATE``.

    pysqlite defers ``BEGIN`` until the first write, so the reads before it
    (e.g. the overlap check of an assignment) run outside of the
    transaction. With the immediate begin the whole transaction holds the
    database write lock and concurrent transactions run one after the
    other.

    This is the recipe of the SQLAlchemy docs for the pysqlite driver.

    """

    @event.listens_for(engine, 'connect')
    def disable_pysqlite_begin(
        dbapi_connection: Any,
        connection_record: object
    ) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, 'begin')
    def begin_immediate(connection: Connection) -> None:
        connection.exec_driver_sql('BEGIN IMMEDIATE')


def serialized(
    fn: Callable[Concatenate[_M, _P], _T]
) -> Callable[Concatenate[_M, _P], _T]:
    """ Runs the wrapped method in a transaction of its own. The session is
    committed if the method returns and rolled back if it raises.

    Database errors are raised as
    :class:`~spotres.modules.errors.StorageError`, all other errors are
    raised as they are.

    Serialized methods may call each other, only the outermost call
    commits.

    """

    @functools.wraps(fn)
    def wrapper(self: _M, *args: _P.args, **kwargs: _P.kwargs) -> _T:
        session = self.session

        if session.info.get(_marker):
            return fn(self, *args, **kwargs)

        session.info[_marker] = True

        try:
            result = fn(self, *args, **kwargs)
            session.commit()
        except DBAPIError as e:
            log.warning(f'{fn.__name__} failed in the database: {e.orig}')
            session.rollback()
            raise errors.StorageError(str(e.orig)) from e
        except BaseException:
            session.rollback()
            raise
        finally:
            session.info.pop(_marker, None)

        return result

    return wrapper
