"""FTS5 full-text search index for notes.

Holds the statements that keep ``notes_fts`` in step with the ``notes``
table, plus the maintenance operations used to detect and repair drift.
"""
import logging
from typing import Any, Dict, List

from sqlalchemy import text
from sqlalchemy.orm import Session

from notekeeper.exceptions import ErrorCode
from notekeeper.storage.store import StoreHandle

logger = logging.getLogger(__name__)


class FtsIndex:
    """FTS5 search index maintenance.

    Row-level writes take the caller's session so they run inside the
    caller's scoped access. ``rebuild()`` and ``health()`` acquire their own.

    Args:
        store: The store handle owning the connection.
    """

    def __init__(self, store: StoreHandle) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Row-level writes
    # ------------------------------------------------------------------

    @staticmethod
    def upsert(session: Session, note_id: str, title: str, content: str) -> None:
        """Insert or replace the index row for a note.

        FTS5 tables have no unique constraint to upsert against, so any
        existing row for the id is removed first.
        """
        session.execute(
            text("DELETE FROM notes_fts WHERE id = :id"), {"id": note_id}
        )
        session.execute(
            text(
                "INSERT INTO notes_fts (id, title, content) "
                "VALUES (:id, :title, :content)"
            ),
            {"id": note_id, "title": title, "content": content},
        )

    @staticmethod
    def remove(session: Session, note_id: str) -> int:
        """Remove the index row for a note. Returns rows removed."""
        result = session.execute(
            text("DELETE FROM notes_fts WHERE id = :id"), {"id": note_id}
        )
        return result.rowcount

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def rebuild(self) -> int:
        """Rebuild the index from the notes table.

        Returns:
            Number of notes indexed.
        """
        with self.store.access(
            "rebuild_index", code=ErrorCode.INDEX_SYNC_FAILED
        ) as session:
            session.execute(text("DELETE FROM notes_fts"))
            session.execute(
                text(
                    "INSERT INTO notes_fts (id, title, content) "
                    "SELECT id, title, content FROM notes"
                )
            )
            count = session.execute(text("SELECT COUNT(*) FROM notes_fts")).scalar()

        logger.info(f"Search index rebuilt with {count} notes")
        return count

    def health(self) -> Dict[str, Any]:
        """Compare the index against the notes table.

        Returns:
            Dict with ``healthy``, ``note_count``, ``index_count``,
            ``missing_ids`` (notes with no index row), ``orphaned_ids``
            (index rows with no note) and ``stale_ids`` (index rows whose
            title or content differ from the note).
        """
        with self.store.access(
            "index_health", code=ErrorCode.STORAGE_READ_FAILED
        ) as session:
            note_count = session.execute(text("SELECT COUNT(*) FROM notes")).scalar()
            index_count = session.execute(
                text("SELECT COUNT(*) FROM notes_fts")
            ).scalar()
            missing = self._ids(session, """
                SELECT n.id FROM notes n
                WHERE NOT EXISTS (SELECT 1 FROM notes_fts f WHERE f.id = n.id)
            """)
            orphaned = self._ids(session, """
                SELECT f.id FROM notes_fts f
                WHERE NOT EXISTS (SELECT 1 FROM notes n WHERE n.id = f.id)
            """)
            stale = self._ids(session, """
                SELECT DISTINCT n.id FROM notes n
                JOIN notes_fts f ON f.id = n.id
                WHERE f.title IS NOT n.title OR f.content IS NOT n.content
            """)

        report = {
            "healthy": not (missing or orphaned or stale),
            "note_count": note_count,
            "index_count": index_count,
            "missing_ids": missing,
            "orphaned_ids": orphaned,
            "stale_ids": stale,
        }
        if not report["healthy"]:
            logger.warning(
                f"Search index out of sync: {len(missing)} missing, "
                f"{len(orphaned)} orphaned, {len(stale)} stale"
            )
        return report

    @staticmethod
    def _ids(session: Session, sql: str) -> List[str]:
        return [row[0] for row in session.execute(text(sql)).fetchall()]
