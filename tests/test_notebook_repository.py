"""Tests for the NotebookRepository class."""
import pytest
from sqlalchemy import text

from nexus_notes.exceptions import ErrorCode, StorageError, ValidationError
from nexus_notes.storage.note_repository import NoteRepository
from nexus_notes.storage.notebook_repository import NotebookRepository
from nexus_notes.storage.tag_repository import TagRepository


class TestNotebookCreate:
    """Tests for creating notebooks."""

    def test_list_seeded_notebooks(self, notebook_repository):
        """Seeded notebooks come back in sort_order."""
        notebooks = notebook_repository.list()
        assert [nb.id for nb in notebooks] == ["inbox_nb", "recipes_nb"]
        assert notebooks[0].icon == "📥"

    def test_create_root_goes_last(self, notebook_repository):
        """A new root gets the highest root sort_order plus one."""
        notebook = notebook_repository.create("Work")
        assert notebook.parent_id is None
        assert notebook.sort_order == 2
        assert notebook_repository.list()[-1].id == notebook.id

    def test_first_child_gets_order_one(self, notebook_repository):
        child = notebook_repository.create("Desserts", parent_id="recipes_nb")
        assert child.sort_order == 1
        second = notebook_repository.create("Breads", parent_id="recipes_nb")
        assert second.sort_order == 2

    def test_root_order_ignores_children(self, notebook_repository):
        """Siblings are counted per parent, roots only among roots."""
        for i in range(5):
            notebook_repository.create(f"Child {i}", parent_id="inbox_nb")
        root = notebook_repository.create("Another root")
        assert root.sort_order == 2

    def test_create_with_explicit_id_and_icon(self, notebook_repository):
        notebook = notebook_repository.create("Travel", icon="✈", id="travel_nb")
        assert notebook.id == "travel_nb"
        fetched = notebook_repository.get("travel_nb")
        assert fetched.icon == "✈"
        assert fetched.created_at == notebook.created_at

    def test_blank_title_rejected(self, notebook_repository):
        """Blank titles are rejected before anything is written."""
        before = len(notebook_repository.list())
        for title in ("", "   ", "\t\n"):
            with pytest.raises(ValidationError) as exc_info:
                notebook_repository.create(title)
            assert exc_info.value.code == ErrorCode.NOTEBOOK_TITLE_REQUIRED
        assert len(notebook_repository.list()) == before

    def test_missing_parent_rejected(self, notebook_repository):
        with pytest.raises(StorageError) as exc_info:
            notebook_repository.create("Lost", parent_id="does-not-exist")
        assert exc_info.value.code == ErrorCode.CONSTRAINT_VIOLATION

    def test_duplicate_id_rejected(self, notebook_repository):
        with pytest.raises(StorageError):
            notebook_repository.create("Second inbox", id="inbox_nb")

    def test_get_missing_returns_none(self, notebook_repository):
        assert notebook_repository.get("nope") is None


class TestNotebookRename:
    """Tests for renaming notebooks."""

    def test_rename(self, notebook_repository):
        assert notebook_repository.rename("inbox_nb", "Capture") is True
        assert notebook_repository.get("inbox_nb").title == "Capture"

    def test_rename_missing_is_noop(self, notebook_repository):
        assert notebook_repository.rename("nope", "Anything") is False

    def test_rename_blank_rejected(self, notebook_repository):
        with pytest.raises(ValidationError):
            notebook_repository.rename("inbox_nb", " ")
        assert notebook_repository.get("inbox_nb").title == "Inbox"


class TestNotebookDelete:
    """Tests for cascading deletion."""

    def test_delete_cascades_to_descendants_and_notes(self, storage):
        """Deleting a notebook removes sub-notebooks, their notes and tag links."""
        notebooks = NotebookRepository(storage)
        notes = NoteRepository(storage)
        tags = TagRepository(storage)

        child = notebooks.create("Desserts", parent_id="recipes_nb")
        grandchild = notebooks.create("Pies", parent_id=child.id)
        pie = notes.create(grandchild.id, "Apple Pie")
        tags.attach(pie.id, "recipe")

        assert notebooks.delete("recipes_nb") is True

        remaining = {nb.id for nb in notebooks.list()}
        assert remaining == {"inbox_nb"}
        assert notes.get(pie.id) is None
        assert notes.get("note2") is None
        with storage.engine.connect() as conn:
            links = conn.execute(
                text("SELECT COUNT(*) FROM note_tags WHERE note_id IN ('note2', 'note3', :id)"),
                {"id": pie.id},
            ).scalar()
        assert links == 0
        # The tag itself outlives its associations
        assert [t.name for t in tags.list_all()] == ["recipe"]

    def test_delete_missing_is_noop(self, notebook_repository):
        assert notebook_repository.delete("nope") is False
        assert len(notebook_repository.list()) == 2


class TestNotebookMove:
    """Tests for reparenting notebooks."""

    def test_move_under_other_notebook(self, notebook_repository):
        assert notebook_repository.move("recipes_nb", "inbox_nb") is True
        moved = notebook_repository.get("recipes_nb")
        assert moved.parent_id == "inbox_nb"
        # sort_order is not renumbered
        assert moved.sort_order == 1

    def test_move_to_root(self, notebook_repository):
        child = notebook_repository.create("Desserts", parent_id="recipes_nb")
        assert notebook_repository.move(child.id, None) is True
        assert notebook_repository.get(child.id).parent_id is None

    def test_move_under_self_rejected(self, notebook_repository):
        with pytest.raises(ValidationError) as exc_info:
            notebook_repository.move("inbox_nb", "inbox_nb")
        assert exc_info.value.code == ErrorCode.NOTEBOOK_CYCLE

    def test_move_under_descendant_rejected(self, notebook_repository):
        """Moving a notebook below its own grandchild would orphan the subtree."""
        child = notebook_repository.create("A", parent_id="inbox_nb")
        grandchild = notebook_repository.create("B", parent_id=child.id)
        with pytest.raises(ValidationError):
            notebook_repository.move("inbox_nb", grandchild.id)
        assert notebook_repository.get("inbox_nb").parent_id is None

    def test_move_to_missing_parent(self, notebook_repository):
        with pytest.raises(StorageError):
            notebook_repository.move("inbox_nb", "does-not-exist")

    def test_move_missing_is_noop(self, notebook_repository):
        assert notebook_repository.move("nope", "inbox_nb") is False


class TestNotebookTree:
    """Tests for the nested tree view."""

    def test_tree(self, notebook_repository):
        child = notebook_repository.create("Desserts", parent_id="recipes_nb")
        grandchild = notebook_repository.create("Pies", parent_id=child.id)

        roots = notebook_repository.tree()
        assert [node.notebook.id for node in roots] == ["inbox_nb", "recipes_nb"]
        recipes = roots[1]
        assert [node.notebook.id for node in recipes.children] == [child.id]
        assert recipes.children[0].children[0].notebook.id == grandchild.id
        assert roots[0].children == []

    def test_tree_empty(self, empty_storage):
        assert NotebookRepository(empty_storage).tree() == []
