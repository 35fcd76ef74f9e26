"""Repository for folder storage and retrieval."""
import logging
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from notekeeper.exceptions import ErrorCode, NotFoundError
from notekeeper.models.db_models import DBFolder, DBNote
from notekeeper.models.schema import Folder, utc_now_iso, validate_identifier
from notekeeper.storage.store import StoreHandle

logger = logging.getLogger(__name__)


class FolderRepository:
    """Repository for managing folders.

    Folders never own their notes: deleting a folder unfiles the notes that
    referenced it instead of deleting them.
    """

    def __init__(self, store: StoreHandle):
        """Initialize the folder repository.

        Args:
            store: The store handle all access goes through.
        """
        self.store = store

    @staticmethod
    def _db_to_model(db_folder: DBFolder) -> Folder:
        return Folder(
            id=db_folder.id, name=db_folder.name, created_at=db_folder.created_at
        )

    def save(self, folder: Folder) -> Folder:
        """Insert a folder, or rename it if the ID already exists.

        Raises:
            ValidationError: If the ID is empty or too long.
        """
        validate_identifier(folder.id, "Folder ID")
        if not folder.created_at:
            folder = folder.model_copy(update={"created_at": utc_now_iso()})

        stmt = sqlite_insert(DBFolder.__table__).values(
            id=folder.id, name=folder.name, created_at=folder.created_at
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"], set_={"name": stmt.excluded["name"]}
        )
        with self.store.access("save_folder") as session:
            session.execute(stmt)

        logger.debug(f"Saved folder {folder.id}")
        return folder

    def get(self, id: str) -> Optional[Folder]:
        """Get a folder by ID, or None if it does not exist."""
        validate_identifier(id, "Folder ID")
        with self.store.access(
            "get_folder", code=ErrorCode.STORAGE_READ_FAILED
        ) as session:
            db_folder = session.get(DBFolder, id)
            return self._db_to_model(db_folder) if db_folder else None

    def get_all(self) -> List[Folder]:
        """Get all folders, newest first."""
        with self.store.access(
            "get_all_folders", code=ErrorCode.STORAGE_READ_FAILED
        ) as session:
            db_folders = session.scalars(
                select(DBFolder).order_by(DBFolder.created_at.desc())
            ).all()
            return [self._db_to_model(f) for f in db_folders]

    def rename(self, id: str, name: str) -> Folder:
        """Rename an existing folder.

        Raises:
            ValidationError: If the ID is empty or too long.
            NotFoundError: If no folder has this ID.
        """
        validate_identifier(id, "Folder ID")

        def _rename(session: Session) -> Folder:
            db_folder = session.get(DBFolder, id)
            if db_folder is None:
                raise NotFoundError("folder", id)
            db_folder.name = name
            session.flush()
            return self._db_to_model(db_folder)

        return self.store.with_connection(_rename, operation="rename_folder")

    def delete(self, id: str) -> None:
        """Unfile every note in the folder, then delete the folder.

        Both statements run under one scoped access and commit together.
        Deleting a folder that does not exist is not an error.

        Raises:
            ValidationError: If the ID is empty or too long.
        """
        validate_identifier(id, "Folder ID")

        with self.store.access(
            "delete_folder", code=ErrorCode.STORAGE_DELETE_FAILED
        ) as session:
            unfiled = session.execute(
                update(DBNote).where(DBNote.folder_id == id).values(folder_id=None)
            ).rowcount
            deleted = session.execute(
                delete(DBFolder).where(DBFolder.id == id)
            ).rowcount

        if deleted == 0:
            logger.warning(f"Attempted to delete non-existent folder: {id}")
        else:
            logger.debug(f"Deleted folder {id}, unfiled {unfiled} notes")
