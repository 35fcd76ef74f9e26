"""Repository for note storage and retrieval."""

import logging
import sqlite3
from typing import Any, List, Mapping, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from notekeeper.exceptions import ErrorCode, IndexSyncError, NotFoundError
from notekeeper.models.db_models import DBNote
from notekeeper.models.schema import Note, utc_now_iso, validate_identifier
from notekeeper.storage.fts_index import FtsIndex
from notekeeper.storage.store import StoreHandle

logger = logging.getLogger(__name__)

# Everything except id and created_at is overwritten when a note is re-saved
_NOTE_UPSERT_COLUMNS = (
    "title",
    "content",
    "folder_id",
    "is_pinned",
    "pinned_at",
    "font",
    "updated_at",
)

# Pinned first, most recently pinned at the top of the pinned group, then
# most recently edited
NOTE_ORDERING = (
    DBNote.is_pinned.desc(),
    DBNote.pinned_at.desc(),
    DBNote.updated_at.desc(),
)


def note_from_row(row: Mapping[str, Any]) -> Note:
    """Build a Note from a mapping of ``notes`` columns."""
    return Note(
        id=row["id"],
        title=row["title"] or "",
        content=row["content"] or "",
        folder_id=row["folder_id"],
        is_pinned=bool(row["is_pinned"]),
        pinned_at=row["pinned_at"],
        font=row["font"],
        updated_at=row["updated_at"],
        created_at=row["created_at"],
    )


class NoteRepository:
    """Repository for note storage and retrieval.

    Every write keeps the ``notes`` table and the ``notes_fts`` search
    index in step. The primary row is committed before the index row is
    written: an index failure leaves the note saved and is reported as
    ``IndexSyncError`` so the caller knows search may be stale.
    """

    def __init__(self, store: StoreHandle, fts: Optional[FtsIndex] = None):
        """Initialize the repository.

        Args:
            store: The store handle all access goes through.
            fts: Search index helper. Created from ``store`` if omitted.
        """
        self.store = store
        self._fts = fts or FtsIndex(store)

    @staticmethod
    def _db_note_to_model(db_note: DBNote) -> Note:
        """Convert a SQLAlchemy DBNote to a domain Note."""
        return Note(
            id=db_note.id,
            title=db_note.title or "",
            content=db_note.content or "",
            folder_id=db_note.folder_id,
            is_pinned=bool(db_note.is_pinned),
            pinned_at=db_note.pinned_at,
            font=db_note.font,
            updated_at=db_note.updated_at,
            created_at=db_note.created_at,
        )

    @staticmethod
    def _prepare_for_save(note: Note) -> Note:
        """Return a copy of ``note`` with server-side fields resolved.

        ``updated_at`` keeps the caller's value unless it is empty.
        ``pinned_at`` is brought in line with ``is_pinned``.
        """
        now = utc_now_iso()
        changes = {}
        if not note.updated_at:
            changes["updated_at"] = now
        if note.is_pinned and not note.pinned_at:
            changes["pinned_at"] = now
        elif not note.is_pinned and note.pinned_at is not None:
            changes["pinned_at"] = None
        if not note.created_at:
            changes["created_at"] = now
        return note.model_copy(update=changes) if changes else note

    def save(self, note: Note) -> Note:
        """Insert or overwrite a note and its search index row.

        Args:
            note: The note to store.

        Returns:
            The note as stored (with server-assigned timestamps filled in).
            ``created_at`` is the caller's value; on overwrite the stored
            creation time is kept, use ``get()`` to read it back.

        Raises:
            ValidationError: If the ID is empty or too long.
            IndexSyncError: If the note was saved but indexing failed.
            StorageError: If the primary write failed.
        """
        validate_identifier(note.id, "Note ID")
        stored = self._prepare_for_save(note)

        values = {
            "id": stored.id,
            "title": stored.title,
            "content": stored.content,
            "folder_id": stored.folder_id,
            "is_pinned": stored.is_pinned,
            "pinned_at": stored.pinned_at,
            "font": stored.font,
            "updated_at": stored.updated_at,
            "created_at": stored.created_at,
        }
        stmt = sqlite_insert(DBNote.__table__).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={col: stmt.excluded[col] for col in _NOTE_UPSERT_COLUMNS},
        )

        def _save(session: Session) -> None:
            session.execute(stmt)
            session.commit()
            try:
                self._fts.upsert(session, stored.id, stored.title, stored.content)
                session.commit()
            except (SQLAlchemyError, sqlite3.Error) as e:
                logger.warning(f"Search index sync failed for note {stored.id}: {e}")
                raise IndexSyncError(stored.id, original_error=e) from e

        self.store.with_connection(
            _save, operation="save_note", code=ErrorCode.STORAGE_WRITE_FAILED
        )
        logger.debug(f"Saved note {stored.id}")
        return stored

    def get(self, id: str) -> Optional[Note]:
        """Get a note by ID.

        Returns:
            Note object if found, None otherwise.

        Raises:
            ValidationError: If the ID is empty or too long.
        """
        validate_identifier(id, "Note ID")
        with self.store.access("get_note", code=ErrorCode.STORAGE_READ_FAILED) as session:
            db_note = session.get(DBNote, id)
            return self._db_note_to_model(db_note) if db_note else None

    def get_all(self) -> List[Note]:
        """Get every note, pinned notes first."""
        with self.store.access(
            "get_all_notes", code=ErrorCode.STORAGE_READ_FAILED
        ) as session:
            db_notes = session.scalars(select(DBNote).order_by(*NOTE_ORDERING)).all()
            return [self._db_note_to_model(n) for n in db_notes]

    def get_by_folder(self, folder_id: Optional[str]) -> List[Note]:
        """Get the notes filed in a folder, or the unfiled notes for None."""
        if folder_id is None:
            condition = DBNote.folder_id.is_(None)
        else:
            condition = DBNote.folder_id == folder_id
        with self.store.access(
            "get_notes_by_folder", code=ErrorCode.STORAGE_READ_FAILED
        ) as session:
            db_notes = session.scalars(
                select(DBNote).where(condition).order_by(*NOTE_ORDERING)
            ).all()
            return [self._db_note_to_model(n) for n in db_notes]

    def count(self) -> int:
        """Number of stored notes."""
        with self.store.access(
            "count_notes", code=ErrorCode.STORAGE_READ_FAILED
        ) as session:
            return session.scalar(select(func.count()).select_from(DBNote)) or 0

    def delete(self, id: str) -> None:
        """Delete a note and, best-effort, its search index row.

        Deleting a note that does not exist is not an error.

        Raises:
            ValidationError: If the ID is empty or too long.
        """
        validate_identifier(id, "Note ID")

        def _delete(session: Session) -> int:
            deleted = session.execute(delete(DBNote).where(DBNote.id == id)).rowcount
            session.commit()
            try:
                self._fts.remove(session, id)
                session.commit()
            except (SQLAlchemyError, sqlite3.Error) as e:
                # The index row may already be gone; a stale row is
                # filtered out of searches by the join on notes
                session.rollback()
                logger.warning(f"Search index cleanup failed for note {id}: {e}")
            return deleted

        deleted = self.store.with_connection(
            _delete, operation="delete_note", code=ErrorCode.STORAGE_DELETE_FAILED
        )
        if deleted == 0:
            logger.warning(f"Attempted to delete non-existent note: {id}")
        else:
            logger.debug(f"Deleted note {id}")

    def toggle_pin(self, id: str) -> Note:
        """Flip a note's pinned state.

        The read, the flip and the write happen under one scoped access, so
        two concurrent toggles cannot both read the same starting state.

        Returns:
            The updated note.

        Raises:
            ValidationError: If the ID is empty or too long.
            NotFoundError: If no note has this ID.
        """
        validate_identifier(id, "Note ID")

        def _toggle(session: Session) -> Note:
            db_note = session.get(DBNote, id)
            if db_note is None:
                raise NotFoundError("note", id)
            now = utc_now_iso()
            db_note.is_pinned = not bool(db_note.is_pinned)
            db_note.pinned_at = now if db_note.is_pinned else None
            db_note.updated_at = now
            session.flush()
            return self._db_note_to_model(db_note)

        note = self.store.with_connection(
            _toggle, operation="toggle_pin", code=ErrorCode.STORAGE_WRITE_FAILED
        )
        logger.debug(f"Note {id} {'pinned' if note.is_pinned else 'unpinned'}")
        return note

    def move(self, id: str, folder_id: Optional[str]) -> Note:
        """File a note into a folder, or unfile it with None.

        Raises:
            ValidationError: If an ID is empty or too long.
            NotFoundError: If no note has this ID.
        """
        validate_identifier(id, "Note ID")
        if folder_id is not None:
            validate_identifier(folder_id, "Folder ID")

        def _move(session: Session) -> Note:
            db_note = session.get(DBNote, id)
            if db_note is None:
                raise NotFoundError("note", id)
            db_note.folder_id = folder_id
            db_note.updated_at = utc_now_iso()
            session.flush()
            return self._db_note_to_model(db_note)

        return self.store.with_connection(
            _move, operation="move_note", code=ErrorCode.STORAGE_WRITE_FAILED
        )
