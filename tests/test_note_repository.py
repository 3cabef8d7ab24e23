"""Tests for the NoteRepository class."""
import datetime

import pytest

from nexus_notes.exceptions import ErrorCode, StorageError, ValidationError
from nexus_notes.storage.note_repository import NoteRepository, _next_timestamp


class TestNoteCreate:
    """Tests for creating and reading notes."""

    def test_create_note(self, note_repository):
        note = note_repository.create("inbox_nb", "Groceries", "- milk")
        assert note.notebook_id == "inbox_nb"
        assert note.title == "Groceries"
        assert note.markdown == "- milk"
        assert note.priority == 0
        assert note.date is None
        assert note.created_at == note.updated_at

        fetched = note_repository.get(note.id)
        assert fetched == note

    def test_create_defaults_to_empty_body(self, note_repository):
        note = note_repository.create("inbox_nb", "Empty")
        assert note.markdown == ""

    def test_blank_title_rejected(self, note_repository):
        with pytest.raises(ValidationError) as exc_info:
            note_repository.create("inbox_nb", "  ")
        assert exc_info.value.code == ErrorCode.NOTE_TITLE_REQUIRED

    def test_missing_notebook_rejected(self, note_repository):
        """Notes cannot be created in a notebook that does not exist."""
        with pytest.raises(StorageError) as exc_info:
            note_repository.create("no-such-notebook", "Orphan")
        assert exc_info.value.code == ErrorCode.CONSTRAINT_VIOLATION

    def test_get_missing_returns_none(self, note_repository):
        assert note_repository.get("nope") is None


class TestNoteList:
    """Tests for listing notes in a notebook."""

    def test_list_only_own_notebook(self, note_repository):
        ids = {note.id for note in note_repository.list_by_notebook("recipes_nb")}
        assert ids == {"note2", "note3"}

    def test_most_recently_updated_first(self, note_repository):
        first = note_repository.create("inbox_nb", "First")
        second = note_repository.create("inbox_nb", "Second")
        note_repository.update(first.id, "First", "edited")

        notes = note_repository.list_by_notebook("inbox_nb")
        assert notes[0].id == first.id
        assert notes[1].id == second.id

    def test_empty_notebook(self, note_repository):
        assert note_repository.list_by_notebook("no-such-notebook") == []


class TestNoteUpdate:
    """Tests for updating notes."""

    def test_update_overwrites_fields(self, note_repository):
        note = note_repository.create("inbox_nb", "Draft", "v1")
        assert note_repository.update(
            note.id, "Final", "v2", priority=3, date="2024-05-01"
        ) is True

        updated = note_repository.get(note.id)
        assert updated.title == "Final"
        assert updated.markdown == "v2"
        assert updated.priority == 3
        assert updated.date == datetime.date(2024, 5, 1)
        assert updated.created_at == note.created_at
        assert updated.updated_at > note.updated_at

    def test_update_accepts_date_object_and_clears(self, note_repository):
        note = note_repository.create("inbox_nb", "Dated")
        note_repository.update(note.id, "Dated", "", date=datetime.date(2025, 1, 2))
        assert note_repository.get(note.id).date == datetime.date(2025, 1, 2)
        note_repository.update(note.id, "Dated", "")
        assert note_repository.get(note.id).date is None

    def test_updated_at_strictly_increases(self, note_repository):
        """Back-to-back updates never produce the same timestamp."""
        note = note_repository.create("inbox_nb", "Busy")
        stamps = [note.updated_at]
        for i in range(10):
            note_repository.update(note.id, "Busy", f"rev {i}")
            stamps.append(note_repository.get(note.id).updated_at)
        assert all(a < b for a, b in zip(stamps, stamps[1:]))

    def test_update_missing_is_noop(self, note_repository):
        assert note_repository.update("nope", "Title", "body") is False

    def test_blank_title_rejected(self, note_repository):
        with pytest.raises(ValidationError):
            note_repository.update("note1", "", "body")
        assert note_repository.get("note1").title == "Welcome to NexusNotes"

    def test_invalid_date_rejected(self, note_repository):
        with pytest.raises(ValidationError) as exc_info:
            note_repository.update("note1", "Title", "body", date="31/12/2024")
        assert exc_info.value.field == "date"
        assert exc_info.value.code == ErrorCode.NOTE_DATE_INVALID
        assert exc_info.value.details["value"] == "31/12/2024"


class TestNoteVersions:
    """Tests for the passive versions table."""

    def test_update_records_version(self, note_repository):
        note = note_repository.create("inbox_nb", "Versioned", "v0")
        note_repository.update(note.id, "Versioned", "v1")
        note_repository.update(note.id, "Versioned", "v2")

        versions = note_repository.list_versions(note.id)
        assert [v.markdown for v in versions] == ["v2", "v1"]
        assert versions[0].saved_at == note_repository.get(note.id).updated_at

    def test_versions_disabled(self, storage):
        repository = NoteRepository(storage, record_versions=False)
        note = repository.create("inbox_nb", "Unversioned")
        repository.update(note.id, "Unversioned", "changed")
        assert repository.list_versions(note.id) == []

    def test_versions_removed_with_note(self, note_repository):
        note = note_repository.create("inbox_nb", "Short-lived")
        note_repository.update(note.id, "Short-lived", "x")
        assert note_repository.delete(note.id) is True
        assert note_repository.list_versions(note.id) == []


class TestNoteDelete:
    """Tests for deleting notes."""

    def test_delete(self, note_repository, tag_repository):
        assert note_repository.delete("note2") is True
        assert note_repository.get("note2") is None
        assert tag_repository.list_for_note("note2") == []
        # Shared tag stays for the other note
        assert [t.name for t in tag_repository.list_for_note("note3")] == ["recipe"]

    def test_delete_missing_is_noop(self, note_repository):
        assert note_repository.delete("nope") is False


class TestNextTimestamp:
    """Tests for the monotonic timestamp helper."""

    def test_no_previous(self):
        assert _next_timestamp(None).tzinfo is not None

    def test_future_previous_is_bumped(self):
        future = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(hours=1)
        assert _next_timestamp(future) == future + datetime.timedelta(microseconds=1)

    def test_naive_previous_treated_as_utc(self):
        past = datetime.datetime(2000, 1, 1)
        assert _next_timestamp(past).year >= 2024
