"""Service layer exposing the storage core to the host application."""
import logging
from typing import Any, Dict, List, Optional

from notekeeper.config import NotekeeperConfig, config as default_config
from notekeeper.exceptions import ErrorCode, StorageError
from notekeeper.models.schema import Folder, Note
from notekeeper.observability import traced
from notekeeper.services.search_service import SearchService
from notekeeper.storage.folder_repository import FolderRepository
from notekeeper.storage.fts_index import FtsIndex
from notekeeper.storage.note_repository import NoteRepository
from notekeeper.storage.schema_manager import SchemaManager
from notekeeper.storage.store import StoreHandle

logger = logging.getLogger(__name__)


class NoteService:
    """The operations a host application calls.

    One ``StoreHandle`` is shared by the schema manager, both repositories
    and the search engine. ``initialize()`` must succeed before any other
    operation is accepted.

    Args:
        store: Store handle to use. When omitted one is opened at the
            configured database path.
        cfg: Configuration. Defaults to the module-level config.
    """

    def __init__(
        self,
        store: Optional[StoreHandle] = None,
        cfg: Optional[NotekeeperConfig] = None,
    ):
        self.config = cfg or default_config
        self.store = store or StoreHandle(
            self.config.get_database_path(),
            busy_timeout_ms=self.config.busy_timeout_ms,
        )
        self.schema = SchemaManager(self.store)
        self.fts = FtsIndex(self.store)
        self.notes = NoteRepository(self.store, self.fts)
        self.folders = FolderRepository(self.store)
        self.searcher = SearchService(self.store, limit=self.config.search_limit)
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise StorageError(
                "Storage has not been initialized; call initialize() first",
                code=ErrorCode.STORE_NOT_INITIALIZED,
            )

    @traced("initialize")
    def initialize(self) -> str:
        """Create or upgrade the schema. Safe to call repeatedly."""
        message = self.schema.initialize()
        self._initialized = True
        return message

    # Notes

    @traced("save_note")
    def save_note(self, note: Note) -> Note:
        self._require_initialized()
        return self.notes.save(note)

    @traced("get_all_notes")
    def get_all_notes(self) -> List[Note]:
        self._require_initialized()
        return self.notes.get_all()

    @traced("get_note")
    def get_note(self, note_id: str) -> Optional[Note]:
        self._require_initialized()
        return self.notes.get(note_id)

    @traced("delete_note")
    def delete_note(self, note_id: str) -> None:
        self._require_initialized()
        self.notes.delete(note_id)

    @traced("toggle_pin")
    def toggle_pin(self, note_id: str) -> Note:
        self._require_initialized()
        return self.notes.toggle_pin(note_id)

    @traced("move_note")
    def move_note(self, note_id: str, folder_id: Optional[str]) -> Note:
        self._require_initialized()
        return self.notes.move(note_id, folder_id)

    @traced("get_notes_in_folder")
    def get_notes_in_folder(self, folder_id: Optional[str]) -> List[Note]:
        """Notes filed in ``folder_id``; unfiled notes when it is None."""
        self._require_initialized()
        return self.notes.get_by_folder(folder_id)

    # Folders

    @traced("save_folder")
    def save_folder(self, folder: Folder) -> Folder:
        self._require_initialized()
        return self.folders.save(folder)

    @traced("get_all_folders")
    def get_all_folders(self) -> List[Folder]:
        self._require_initialized()
        return self.folders.get_all()

    @traced("rename_folder")
    def rename_folder(self, folder_id: str, name: str) -> Folder:
        self._require_initialized()
        return self.folders.rename(folder_id, name)

    @traced("delete_folder")
    def delete_folder(self, folder_id: str) -> None:
        self._require_initialized()
        self.folders.delete(folder_id)

    # Search

    @traced("search_notes")
    def search_notes(self, query: str) -> List[Note]:
        self._require_initialized()
        return self.searcher.search(query)

    @traced("reindex")
    def reindex(self) -> int:
        """Rebuild the search index from the notes table."""
        self._require_initialized()
        return self.fts.rebuild()

    @traced("index_health")
    def index_health(self) -> Dict[str, Any]:
        self._require_initialized()
        return self.fts.health()

    def close(self) -> None:
        self.store.close()
        self._initialized = False
