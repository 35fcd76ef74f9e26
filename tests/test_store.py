"""Tests for the single-connection store handle."""
import threading
import time

import pytest
from sqlalchemy import text

from notekeeper.exceptions import (
    ErrorCode,
    NotFoundError,
    StorageError,
)
from notekeeper.storage.store import StoreHandle


class TestOpening:
    """Tests for constructing a store handle."""

    def test_missing_directory_fails(self, tmp_path):
        """A database path in a missing directory is rejected at construction."""
        with pytest.raises(StorageError) as exc_info:
            StoreHandle(tmp_path / "missing" / "notes.db")
        assert exc_info.value.code == ErrorCode.STORAGE_CONNECTION_FAILED

    def test_unopenable_file_fails(self, tmp_path):
        """A path that is a directory cannot be opened as a database."""
        directory = tmp_path / "not-a-file"
        directory.mkdir()
        with pytest.raises(StorageError) as exc_info:
            StoreHandle(directory)
        assert exc_info.value.code == ErrorCode.STORAGE_CONNECTION_FAILED
        assert exc_info.value.original_error is not None

    def test_file_database_uses_wal(self, file_store):
        """File databases run in WAL mode."""
        with file_store.access() as session:
            mode = session.execute(text("PRAGMA journal_mode")).scalar()
        assert mode.lower() == "wal"

    def test_in_memory_store(self, store):
        assert store.in_memory is True
        assert store.database_path is None


class TestScopedAccess:
    """Tests for with_connection / access."""

    def test_with_connection_returns_result(self, store):
        result = store.with_connection(
            lambda session: session.execute(text("SELECT 41 + 1")).scalar()
        )
        assert result == 42

    def test_commits_on_success(self, store):
        store.with_connection(
            lambda s: s.execute(text("CREATE TABLE t (v INTEGER)"))
        )
        store.with_connection(lambda s: s.execute(text("INSERT INTO t VALUES (1)")))
        count = store.with_connection(
            lambda s: s.execute(text("SELECT COUNT(*) FROM t")).scalar()
        )
        assert count == 1

    def test_engine_error_is_mapped(self, store):
        """SQL failures surface as StorageError with the operation name."""
        with pytest.raises(StorageError) as exc_info:
            store.with_connection(
                lambda s: s.execute(text("SELECT * FROM no_such_table")),
                operation="probe",
                code=ErrorCode.STORAGE_READ_FAILED,
            )
        err = exc_info.value
        assert err.code == ErrorCode.STORAGE_READ_FAILED
        assert err.operation == "probe"
        assert "no_such_table" in err.details["original_error"]

    def test_package_errors_propagate_unchanged(self, store):
        def _fail(session):
            raise NotFoundError("note", "abc")

        with pytest.raises(NotFoundError):
            store.with_connection(_fail)

    def test_failure_rolls_back(self, store):
        """Statements in a failed access are not committed."""
        store.with_connection(lambda s: s.execute(text("CREATE TABLE t (v INTEGER)")))

        def _insert_then_fail(session):
            session.execute(text("INSERT INTO t VALUES (1)"))
            raise NotFoundError("note", "x")

        with pytest.raises(NotFoundError):
            store.with_connection(_insert_then_fail)

        count = store.with_connection(
            lambda s: s.execute(text("SELECT COUNT(*) FROM t")).scalar()
        )
        assert count == 0

    def test_lock_released_after_failure(self, store):
        """A failed access does not leave the handle locked."""
        with pytest.raises(StorageError):
            store.with_connection(lambda s: s.execute(text("NOT SQL")))
        assert store.with_connection(
            lambda s: s.execute(text("SELECT 1")).scalar()
        ) == 1

    def test_closed_store_rejects_access(self):
        handle = StoreHandle(":memory:")
        handle.close()
        assert handle.closed
        with pytest.raises(StorageError) as exc_info:
            handle.with_connection(lambda s: None)
        assert exc_info.value.code == ErrorCode.STORE_CLOSED

    def test_close_is_idempotent(self):
        handle = StoreHandle(":memory:")
        handle.close()
        handle.close()

    def test_context_manager_closes(self):
        with StoreHandle(":memory:") as handle:
            assert not handle.closed
        assert handle.closed


class TestMutualExclusion:
    """Only one scoped access runs at a time."""

    def test_accesses_never_overlap(self, store):
        active = 0
        max_active = 0
        counter_lock = threading.Lock()
        errors = []

        def _work(session):
            nonlocal active, max_active
            with counter_lock:
                active += 1
                max_active = max(max_active, active)
            time.sleep(0.01)
            session.execute(text("SELECT 1"))
            with counter_lock:
                active -= 1

        def run():
            try:
                for _ in range(5):
                    store.with_connection(_work)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=run) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert max_active == 1
