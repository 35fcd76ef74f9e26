"""Single-connection store handle.

Every database operation in the package goes through one ``StoreHandle``:
it owns the only connection to the SQLite file and hands it out for the
duration of one scoped access at a time.
"""
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, TypeVar, Union

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from notekeeper.exceptions import ErrorCode, NotekeeperError, StorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MEMORY_DATABASE = ":memory:"


class StoreHandle:
    """Owner of the one physical connection to the embedded database.

    All access, reads and writes alike, is serialized through a single
    mutex. A caller blocks until the current holder's statements finish.

    Args:
        database_path: Path to the SQLite file, or ``":memory:"``.
        busy_timeout_ms: How long SQLite waits on a file lock held by
            another process before the statement fails.

    Raises:
        StorageError: If the containing directory does not exist or the
            file cannot be opened.
    """

    def __init__(
        self,
        database_path: Union[str, Path],
        busy_timeout_ms: int = 5000,
    ) -> None:
        self.in_memory = str(database_path) == MEMORY_DATABASE
        self.database_path: Optional[Path] = (
            None if self.in_memory else Path(database_path)
        )

        if self.database_path is not None and not self.database_path.parent.is_dir():
            raise StorageError(
                f"Database directory does not exist: {self.database_path.parent}",
                operation="open",
                path=str(self.database_path),
                code=ErrorCode.STORAGE_CONNECTION_FAILED,
            )

        url = "sqlite://" if self.in_memory else f"sqlite:///{self.database_path}"
        # StaticPool keeps exactly one DBAPI connection for the engine's lifetime
        self.engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={
                "check_same_thread": False,
                "timeout": busy_timeout_ms / 1000,
            },
        )

        in_memory = self.in_memory

        @event.listens_for(self.engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            if not in_memory:
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
            cursor.close()

        try:
            # Open the connection eagerly so a bad path fails here, not later
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, sqlite3.Error) as e:
            self.engine.dispose()
            raise StorageError(
                f"Failed to open database at {database_path}",
                operation="open",
                path=str(database_path),
                code=ErrorCode.STORAGE_CONNECTION_FAILED,
                original_error=e,
            ) from e

        self.session_factory = sessionmaker(bind=self.engine)
        self._lock = threading.Lock()
        self._closed = False

        logger.info(
            f"StoreHandle opened: "
            f"{'in-memory database' if self.in_memory else self.database_path}"
        )

    @property
    def closed(self) -> bool:
        """Whether close() has been called."""
        return self._closed

    @contextmanager
    def access(
        self,
        operation: str = "access",
        code: ErrorCode = ErrorCode.STORAGE_WRITE_FAILED,
    ) -> Iterator[Session]:
        """Acquire exclusive access to the connection.

        Yields a session bound to the single connection. The session is
        committed when the block exits normally and rolled back otherwise;
        the lock is released on every exit path.

        Engine errors are re-raised as ``StorageError`` carrying ``code``;
        errors from this package's own hierarchy propagate unchanged.
        """
        with self._lock:
            if self._closed:
                raise StorageError(
                    "Store handle is closed",
                    operation=operation,
                    code=ErrorCode.STORE_CLOSED,
                )
            session = self.session_factory()
            try:
                yield session
                session.commit()
            except NotekeeperError:
                session.rollback()
                raise
            except (SQLAlchemyError, sqlite3.Error) as e:
                session.rollback()
                logger.error(f"Database error during {operation}: {e}")
                raise StorageError(
                    f"Database error during {operation}",
                    operation=operation,
                    path=str(self.database_path) if self.database_path else None,
                    code=code,
                    original_error=e,
                ) from e
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    def with_connection(
        self,
        fn: Callable[[Session], T],
        operation: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_WRITE_FAILED,
    ) -> T:
        """Run ``fn`` against the connection under exclusive access.

        Args:
            fn: Callable receiving the session; its return value is returned.
            operation: Name used in error details. Defaults to fn's name.
            code: Error code for mapped engine failures.
        """
        name = operation or getattr(fn, "__name__", "access")
        with self.access(name, code=code) as session:
            return fn(session)

    def close(self) -> None:
        """Close the connection. Later access raises StorageError."""
        with self._lock:
            if self._closed:
                return
            self.engine.dispose()
            self._closed = True
        logger.info("StoreHandle closed")

    def __enter__(self) -> "StoreHandle":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
