"""Database Configuration for IdBridge."""

from __future__ import annotations

from pathlib import Path
from types import TracebackType

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from idbridge import __file__ as package_file
from idbridge import log
from idbridge.exceptions import DataPathError

__all__ = ["IdBridgeDB"]


class DatabaseSession:
    """Short-lived session context handed out by `IdBridgeDB.__call__`.

    The session is opened lazily and closed when the context exits, so each
    cache operation works against its own session.
    """

    def __init__(self, factory: sessionmaker[Session]) -> None:
        self._factory = factory
        self._session: Session | None = None

    def __enter__(self) -> DatabaseSession:
        """Enter the context, opening a new session."""
        self._session = self._factory()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Roll back on error and close the session opened for this context."""
        if self._session is None:
            return
        if exc_type is not None:
            self._session.rollback()
        self._session.close()
        self._session = None

    @property
    def session(self) -> Session:
        """Return the current SQLAlchemy session, creating it if needed."""
        if self._session is None:
            self._session = self._factory()
        return self._session


class IdBridgeDB:
    """Database manager for the IdBridge equivalence cache.

    Handles the creation, initialization, and migration of the SQLite database,
    including file system operations and schema management. Uses SQLAlchemy for ORM
    and Alembic for database migrations.

    Calling the instance returns a fresh session context:

        with db() as ctx:
            ctx.session.execute(...)
    """

    def __init__(self, data_path: Path, *, migrate: bool = True) -> None:
        """Initializes the database manager.

        Args:
            data_path (Path): Directory where the database should be stored
            migrate (bool): Run Alembic migrations. When False the schema is
                created directly from the model metadata.

        Raises:
            DataPathError: If data_path exists but is a file instead of a directory
        """
        self.data_path = data_path
        self.db_path = data_path / "idbridge.db"

        self.engine = self._setup_db()
        self._SessionLocal = sessionmaker(
            bind=self.engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
            future=True,
        )

        if migrate:
            self._do_migrations()
        else:
            from idbridge.models.db import Base

            Base.metadata.create_all(self.engine)

    def _setup_db(self) -> Engine:
        """Creates and initializes the SQLite database.

        Returns:
            Engine: Configured SQLAlchemy engine instance

        Raises:
            DataPathError: If data_path exists but is a file instead of a directory
        """
        import idbridge.models.db  # noqa: F401

        if not self.data_path.exists():
            self.data_path.mkdir(parents=True, exist_ok=True)
        elif self.data_path.is_file():
            raise DataPathError(
                f"{self.__class__.__name__}: The path '{self.data_path}' is a file, "
                "please delete it first or choose a different data folder path",
            )

        engine = create_engine(
            f"sqlite:///{self.db_path}",
            connect_args={"check_same_thread": False},
            pool_pre_ping=True,
            future=True,
        )

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, _connection_record):
            cur = dbapi_connection.cursor()
            try:
                cur.execute("PRAGMA journal_mode=WAL;")
                cur.execute("PRAGMA synchronous=NORMAL;")
                cur.execute("PRAGMA temp_store=MEMORY;")
                cur.execute("PRAGMA cache_size=-20000;")
                cur.execute("PRAGMA foreign_keys=ON;")
            finally:
                cur.close()

        return engine

    def _do_migrations(self) -> None:
        """Executes database migrations using Alembic.

        Raises:
            AlembicError: If migration execution fails
            FileNotFoundError: If Alembic migration scripts are not found
        """
        from alembic import command
        from alembic.config import Config

        cfg = Config()
        cfg.set_main_option(
            "script_location",
            str(Path(package_file).resolve().parent.parent / "alembic"),
        )
        cfg.set_main_option("sqlalchemy.url", f"sqlite:///{self.db_path}")

        log.debug(f"Running database migrations on $$'{self.db_path}'$$")
        with self.engine.begin() as connection:
            cfg.attributes["connection"] = connection
            command.upgrade(cfg, "head")

    def __call__(self) -> DatabaseSession:
        """Open a new session context."""
        return DatabaseSession(self._SessionLocal)

    def dispose(self) -> None:
        """Release every pooled connection held by the engine."""
        self.engine.dispose()

