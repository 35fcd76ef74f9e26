"""Common test fixtures for the notekeeper storage core."""

import logging

import pytest

from notekeeper.config import NotekeeperConfig
from notekeeper.models.schema import Folder, Note
from notekeeper.observability import ROOT_LOGGER_NAME, metrics
from notekeeper.services.note_service import NoteService
from notekeeper.storage.fts_index import FtsIndex
from notekeeper.storage.folder_repository import FolderRepository
from notekeeper.storage.note_repository import NoteRepository
from notekeeper.storage.schema_manager import SchemaManager
from notekeeper.storage.store import StoreHandle


@pytest.fixture
def store():
    """An in-memory store handle, closed after the test."""
    handle = StoreHandle(":memory:")
    yield handle
    handle.close()


@pytest.fixture
def file_store(tmp_path):
    """A store handle backed by a temporary database file."""
    handle = StoreHandle(tmp_path / "notes.db")
    yield handle
    handle.close()


@pytest.fixture
def initialized_store(store):
    """An in-memory store with the schema created."""
    SchemaManager(store).initialize()
    return store


@pytest.fixture
def fts_index(initialized_store):
    return FtsIndex(initialized_store)


@pytest.fixture
def note_repository(initialized_store, fts_index):
    """Create a test note repository."""
    return NoteRepository(initialized_store, fts_index)


@pytest.fixture
def folder_repository(initialized_store):
    """Create a test folder repository."""
    return FolderRepository(initialized_store)


@pytest.fixture
def test_config(tmp_path):
    """Configuration pointing at a temporary data directory."""
    return NotekeeperConfig(data_dir=tmp_path, database_name="test.db")


@pytest.fixture
def note_service(store, test_config):
    """An initialized NoteService over an in-memory store."""
    service = NoteService(store=store, cfg=test_config)
    service.initialize()
    yield service


@pytest.fixture
def make_note():
    """Factory for notes with sensible defaults."""

    def _make(note_id: str = "n1", **kwargs) -> Note:
        kwargs.setdefault("title", f"Note {note_id}")
        kwargs.setdefault("content", f"Content of {note_id}")
        return Note(id=note_id, **kwargs)

    return _make


@pytest.fixture
def make_folder():
    """Factory for folders with sensible defaults."""

    def _make(folder_id: str = "f1", **kwargs) -> Folder:
        kwargs.setdefault("name", f"Folder {folder_id}")
        return Folder(id=folder_id, **kwargs)

    return _make


@pytest.fixture(autouse=True)
def _reset_metrics():
    """Start every test with empty operation metrics."""
    metrics.reset()
    yield


@pytest.fixture
def restore_logging():
    """Remove handlers added to the package logger during a test."""
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    before = list(root_logger.handlers)
    level = root_logger.level
    yield
    for handler in list(root_logger.handlers):
        if handler not in before:
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.setLevel(level)
