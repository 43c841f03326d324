"""
Database session management for the library circulation service.

Connection management and session handling for SQLAlchemy. Circulation
transitions depend on it for:

1. Thread Safety: requests for different assets run concurrently
2. Transaction Management: each transition commits or rolls back as a whole
3. Connection Pooling: one connection per worker thread for file databases
4. Error Recovery: database failures surface as RepositoryException

Sessions are short-lived: one per transition or read view.
"""

import logging
from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_config
from ..errors import RepositoryException
from .schema import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Seconds SQLite waits on a locked database file before raising
SQLITE_BUSY_TIMEOUT = 30

# Execution option naming the SQLite BEGIN mode of a session's transaction
SQLITE_BEGIN_OPTION = "sqlite_begin"


def _is_in_memory(database_url: str) -> bool:
    return database_url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in database_url


class DatabaseManager:
    """
    Manages database connections and sessions.

    This class provides:
    - Engine creation tuned for SQLite or server databases
    - Session factory with explicit transactions
    - Schema creation and connection checks
    """

    def __init__(self, database_url: str | None = None):
        """
        Initialize the database manager.

        Args:
            database_url: SQLAlchemy database URL. If None, uses the configured SQLite file.
        """
        if database_url is None:
            config = get_config()
            db_path = config.database_path

            if not db_path.is_absolute():
                db_path = Path.cwd() / db_path

            db_path.parent.mkdir(exist_ok=True, parents=True)

            database_url = f"sqlite:///{db_path}"
            logger.info("Using SQLite database at: %s", db_path)

        self.database_url = database_url
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def engine(self) -> Engine:
        """
        Get or create the database engine.

        File-backed SQLite gets a regular pool (one connection per thread) and
        a busy timeout so concurrent writers queue on the file lock. In-memory
        SQLite must share a single connection, so it is only suitable for
        single-threaded use.

        SNAPSHOT READS:
        The sqlite3 driver only emits BEGIN in front of the first INSERT or
        UPDATE, so every SELECT before that runs in its own implicit
        transaction. A read view made of several SELECTs could then see one
        half of a concurrent transition. For file databases the driver's
        transaction handling is switched off and SQLAlchemy's ``begin`` event
        issues BEGIN itself, so each session is one real transaction. WAL
        journaling lets such a reader keep its snapshot while a writer
        commits.
        """
        if self._engine is None:
            if self.database_url.startswith("sqlite"):
                if _is_in_memory(self.database_url):
                    self._engine = create_engine(
                        self.database_url,
                        poolclass=StaticPool,
                        connect_args={"check_same_thread": False},
                        echo=False,
                    )

                    @event.listens_for(self._engine, "connect")
                    def set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ARG001
                        cursor = dbapi_connection.cursor()
                        cursor.execute("PRAGMA foreign_keys=ON")
                        cursor.close()
                else:
                    self._engine = create_engine(
                        self.database_url,
                        connect_args={
                            "check_same_thread": False,
                            "timeout": SQLITE_BUSY_TIMEOUT,
                        },
                        echo=False,
                    )

                    @event.listens_for(self._engine, "connect")
                    def set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ARG001
                        # SQLAlchemy emits BEGIN from now on, see begin_transaction
                        dbapi_connection.isolation_level = None
                        cursor = dbapi_connection.cursor()
                        cursor.execute("PRAGMA foreign_keys=ON")
                        cursor.execute("PRAGMA journal_mode=WAL")
                        cursor.close()

                    @event.listens_for(self._engine, "begin")
                    def begin_transaction(conn):
                        # Writers take the write lock up front; a deferred
                        # reader could not upgrade once its snapshot is stale
                        mode = conn.get_execution_options().get(SQLITE_BEGIN_OPTION, "DEFERRED")
                        conn.exec_driver_sql(f"BEGIN {mode}")
            else:
                self._engine = create_engine(
                    self.database_url,
                    pool_size=10,
                    max_overflow=20,
                    pool_pre_ping=True,
                    echo=False,
                )

            logger.info("Database engine created: %s", self._engine.url)

        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        """Get or create the session factory."""
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                autocommit=False,
                autoflush=False,
                # Keep returned rows usable after the transaction ends
                expire_on_commit=False,
            )
        return self._session_factory

    def create_session(self) -> Session:
        """
        Create a new database session.

        Returns:
            A new SQLAlchemy session

        Note:
            Prefer session_scope(); a bare session must be closed by the caller.
        """
        return self.session_factory()

    @contextmanager
    def session_scope(self, write: bool = False) -> Generator[Session, None, None]:
        """
        Provide a transactional scope for database operations.

        ```python
        with db_manager.session_scope(write=True) as session:
            ledger = CheckoutLedger(session)
            ledger.open_checkout(asset_id, card_id, now)
        # committed here, or rolled back if the block raised
        ```

        Every read in the scope sees the same committed snapshot.

        Args:
            write: Take SQLite's write lock when the transaction starts. Use it
                for scopes that read and then write, such as circulation
                transitions.

        Yields:
            Database session
        """
        session = self.create_session()
        try:
            if write:
                session.connection(execution_options={SQLITE_BEGIN_OPTION: "IMMEDIATE"})
            yield session
            session.commit()
            logger.debug("Database transaction committed successfully")
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def init_database(self, drop_existing: bool = False) -> None:
        """
        Initialize the database schema.

        Args:
            drop_existing: If True, drop all tables before creating
        """
        engine = self.engine

        if drop_existing:
            logger.warning("Dropping all existing tables...")
            Base.metadata.drop_all(bind=engine)

        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database initialization complete")

    def verify_connection(self) -> bool:
        """
        Verify the database connection is working.

        Returns:
            True if connection is successful, False otherwise
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database connection verified")
            return True
        except SQLAlchemyError:
            logger.exception("Database connection failed")
            return False

    def close(self) -> None:
        """Dispose of the engine and its connections."""
        if self._engine:
            self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._session_factory = None


_db_manager: DatabaseManager | None = None


def get_db_manager(database_url: str | None = None) -> DatabaseManager:
    """
    Get the global database manager instance.

    Args:
        database_url: Database URL (only used on first call)

    Returns:
        The database manager singleton
    """
    global _db_manager  # noqa: PLW0603 - Singleton pattern for database manager

    if _db_manager is None:
        _db_manager = DatabaseManager(database_url)

    return _db_manager


def reset_db_manager() -> None:
    """Close and forget the global database manager (useful for testing)."""
    global _db_manager  # noqa: PLW0603

    if _db_manager is not None:
        _db_manager.close()
    _db_manager = None


@contextmanager
def session_scope(write: bool = False) -> Generator[Session, None, None]:
    """
    Convenience context manager for sessions on the global database manager.

    Example:
        ```python
        with session_scope() as session:
            status = AssetRegistry(session).get_status(asset_id)
        ```
    """
    with get_db_manager().session_scope(write=write) as session:
        yield session


def safe_flush(session: Session, operation: str) -> None:
    """
    Flush pending changes, translating database errors.

    Args:
        session: The database session
        operation: Description of the operation (for error messages)

    Raises:
        RepositoryException: If the flush fails
    """
    try:
        session.flush()
    except SQLAlchemyError as e:
        raise RepositoryException(f"Database operation '{operation}' failed: {e!s}") from e


def safe_query(session: Session, query_func: Callable[[Session], T], error_msg: str) -> T:
    """
    Execute a query, translating database errors.

    Args:
        session: The database session
        query_func: Function that performs the query
        error_msg: Error message prefix

    Returns:
        Query result

    Raises:
        RepositoryException: If the query fails
    """
    try:
        return query_func(session)
    except SQLAlchemyError as e:
        logger.exception("Query failed")
        raise RepositoryException(f"{error_msg}: Database query failed") from e
