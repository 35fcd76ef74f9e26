"""Concurrent callers sharing one NoteService."""
import threading

from notekeeper.models.schema import Note


def _run_threads(target, count):
    errors = []

    def wrapper(index):
        try:
            target(index)
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=wrapper, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return errors


class TestConcurrentAccess:
    """All operations are serialized through the store handle."""

    def test_concurrent_saves(self, note_service):
        def save_batch(index):
            for j in range(10):
                note_service.save_note(
                    Note(id=f"t{index}-{j}", content=f"thread{index} batch")
                )

        errors = _run_threads(save_batch, 8)

        assert errors == []
        assert len(note_service.get_all_notes()) == 80
        assert note_service.index_health()["healthy"] is True

    def test_concurrent_toggles_are_not_lost(self, note_service):
        """Each toggle reads the state the previous one wrote."""
        note_service.save_note(Note(id="shared"))

        def toggle(index):
            for _ in range(5):
                note_service.toggle_pin("shared")

        errors = _run_threads(toggle, 4)

        assert errors == []
        # 20 flips in total return the note to its starting state
        stored = note_service.get_note("shared")
        assert stored.is_pinned is False
        assert stored.pinned_at is None

    def test_mixed_readers_and_writers(self, note_service):
        for i in range(5):
            note_service.save_note(Note(id=f"seed{i}", content="seed data"))

        def work(index):
            if index % 2:
                for _ in range(10):
                    note_service.search_notes("seed")
                    note_service.get_all_notes()
            else:
                for j in range(10):
                    note_service.save_note(Note(id=f"w{index}-{j}", content="seed more"))

        errors = _run_threads(work, 6)

        assert errors == []
        assert len(note_service.get_all_notes()) == 5 + 3 * 10
