"""Schema creation and additive migrations."""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import Column, Text, func, insert, inspect, select, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from notekeeper.exceptions import ErrorCode, StorageError
from notekeeper.models.db_models import (
    NOTES_FTS_DDL,
    Base,
    DBFolder,
    DBNote,
    DBSchemaMigration,
)
from notekeeper.models.schema import utc_now_iso
from notekeeper.storage.store import StoreHandle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColumnMigration:
    """An additive migration adding one nullable column to a table."""

    version: int
    name: str
    table: str
    column_name: str

    def build_column(self) -> Column:
        # A fresh Column per run: Column objects bind to a single Table
        return Column(self.column_name, Text, nullable=True)


# Columns introduced after the first release, in the order they shipped
MIGRATIONS: Tuple[ColumnMigration, ...] = (
    ColumnMigration(1, "add_notes_pinned_at", "notes", "pinned_at"),
    ColumnMigration(2, "add_notes_font", "notes", "font"),
)


class SchemaManager:
    """Creates and upgrades the database schema.

    ``initialize()`` is idempotent: it can run any number of times, against
    a new file or one written by an older release.
    """

    def __init__(self, store: StoreHandle):
        self.store = store

    def initialize(self) -> str:
        """Create tables, indexes and the search index, then migrate.

        Returns:
            A confirmation message.

        Raises:
            StorageError: If any table, index or migration step fails.
        """
        with self.store.access(
            "initialize", code=ErrorCode.SCHEMA_INIT_FAILED
        ) as session:
            conn = session.connection()
            Base.metadata.create_all(
                conn,
                tables=[
                    DBNote.__table__,
                    DBFolder.__table__,
                    DBSchemaMigration.__table__,
                ],
            )
            applied = self._apply_migrations(conn)
            # create_all only builds indexes for tables it creates itself
            for index in DBNote.__table__.indexes:
                index.create(conn, checkfirst=True)
            conn.execute(text(NOTES_FTS_DDL))

        if applied:
            logger.info(f"Applied schema migrations: {', '.join(applied)}")
        logger.info("Database initialized successfully")
        return "Database initialized"

    def _apply_migrations(self, conn: Connection) -> List[str]:
        """Apply every migration not yet recorded in the ledger.

        A column that already exists was added by a release that predates
        the ledger; it is recorded without altering the table.
        """
        done = set(conn.execute(select(DBSchemaMigration.version)).scalars())
        operations = Operations(MigrationContext.configure(conn))
        applied: List[str] = []

        for migration in MIGRATIONS:
            if migration.version in done:
                continue
            try:
                columns = {
                    col["name"] for col in inspect(conn).get_columns(migration.table)
                }
                if migration.column_name in columns:
                    logger.debug(
                        f"Column {migration.table}.{migration.column_name} already "
                        f"present, recording migration {migration.name}"
                    )
                else:
                    operations.add_column(migration.table, migration.build_column())
                conn.execute(
                    insert(DBSchemaMigration).values(
                        version=migration.version,
                        name=migration.name,
                        applied_at=utc_now_iso(),
                    )
                )
            except SQLAlchemyError as e:
                raise StorageError(
                    f"Schema migration {migration.name} failed",
                    operation="migrate",
                    code=ErrorCode.MIGRATION_FAILED,
                    original_error=e,
                ) from e
            applied.append(migration.name)

        return applied

    def applied_migrations(self) -> List[Dict[str, Any]]:
        """List the migrations recorded in the ledger, oldest first."""
        with self.store.access(
            "applied_migrations", code=ErrorCode.STORAGE_READ_FAILED
        ) as session:
            rows = session.scalars(
                select(DBSchemaMigration).order_by(DBSchemaMigration.version)
            ).all()
            return [
                {"version": r.version, "name": r.name, "applied_at": r.applied_at}
                for r in rows
            ]

    def schema_version(self) -> int:
        """Highest applied migration version, 0 for a fresh ledger."""
        with self.store.access(
            "schema_version", code=ErrorCode.STORAGE_READ_FAILED
        ) as session:
            version = session.scalar(select(func.max(DBSchemaMigration.version)))
            return version or 0
