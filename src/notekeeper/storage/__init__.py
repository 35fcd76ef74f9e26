"""Storage layer for the notekeeper storage core."""

from notekeeper.storage.folder_repository import FolderRepository
from notekeeper.storage.fts_index import FtsIndex
from notekeeper.storage.note_repository import NoteRepository
from notekeeper.storage.schema_manager import SchemaManager
from notekeeper.storage.store import StoreHandle

__all__ = [
    "StoreHandle",
    "SchemaManager",
    "NoteRepository",
    "FolderRepository",
    "FtsIndex",
]
