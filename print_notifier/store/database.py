"""Database connection and session management.

The Database object owns the async engine and session factory. It is created
explicitly at startup and handed to the JobStore, so tests can point it at a
throwaway SQLite file.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from sqlalchemy import event, text
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from print_notifier.logging import get_logger

from .exceptions import DatabaseConnectionError
from .schema import create_schema

logger = get_logger(__name__, component="database")


class Database:
    """Async database handle.

    Example:
        >>> database = Database("sqlite+aiosqlite:///./data/print_notifier.db")
        >>> await database.connect()
        >>> async with database.session() as session:
        ...     ...
        >>> await database.close()
    """

    def __init__(self, database_url: str, echo: bool = False):
        if not database_url or not isinstance(database_url, str):
            raise DatabaseConnectionError("Database URL must be a non-empty string")

        self.database_url = database_url
        self.echo = echo
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise DatabaseConnectionError(
                "Database not connected. Call connect() before using the store"
            )
        return self._engine

    async def connect(self) -> None:
        """Create the engine, validate the connection and create the schema.

        Calling connect() on an already connected database is a no-op.

        Raises:
            DatabaseConnectionError: If initialisation fails
        """
        if self._engine is not None:
            return

        logger.info(
            "Connecting to database",
            extra={"event": "database.connecting", "database_url": redact_url(self.database_url)},
        )

        try:
            url = make_url(self.database_url)
        except ArgumentError as e:
            raise DatabaseConnectionError(f"Invalid database URL: {e}") from e

        is_sqlite = url.get_backend_name() == "sqlite"
        if is_sqlite and url.database and url.database != ":memory:":
            db_file = Path(url.database)
            if not db_file.parent.exists():
                logger.info(f"Creating database directory: {db_file.parent}")
                db_file.parent.mkdir(parents=True, exist_ok=True)

        try:
            engine = create_async_engine(
                self.database_url,
                echo=self.echo,
                pool_pre_ping=True,
                connect_args={"timeout": 30} if is_sqlite else {},
            )
            if is_sqlite:
                _configure_sqlite(engine)

            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))

            await create_schema(engine)
        except Exception as e:
            error_msg = f"Failed to initialize database: {e}"
            logger.error(error_msg, exc_info=True, extra={"event": "database.connect.failed"})
            raise DatabaseConnectionError(error_msg) from e

        self._engine = engine
        self._session_factory = async_sessionmaker(
            bind=engine,
            autoflush=True,
            expire_on_commit=False,
        )

        logger.info(
            "Database connected",
            extra={"event": "database.connected", "database_url": redact_url(self.database_url)},
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Provide a session that commits on success and rolls back on error.

        Raises:
            DatabaseConnectionError: If the database is not connected
        """
        if self._session_factory is None:
            raise DatabaseConnectionError(
                "Database not connected. Call connect() before using the store"
            )

        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.warning(
                f"Database session rolled back due to exception: {e}",
                extra={"event": "database.session.rolled_back", "error_type": type(e).__name__},
            )
            raise
        finally:
            await session.close()

    async def close(self) -> None:
        """Dispose of the engine. The database may be connected again later."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database connections closed", extra={"event": "database.closed"})


def _configure_sqlite(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()


def redact_url(url: str) -> str:
    """Hide the password of a database URL for logging."""
    try:
        return make_url(url).render_as_string(hide_password=True)
    except ArgumentError:
        return "<invalid url>"
