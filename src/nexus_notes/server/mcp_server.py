"""MCP server exposing the NexusNotes operations as tools."""

import json
import logging
import uuid
from typing import Any, Callable, Optional

from mcp.server.fastmcp import FastMCP
from pydantic import BaseModel

from nexus_notes.config import config
from nexus_notes.exceptions import NexusNotesError, StorageError
from nexus_notes.observability import timed_operation
from nexus_notes.services.search_service import SearchService
from nexus_notes.storage.engine import StorageEngine
from nexus_notes.storage.note_repository import NoteRepository
from nexus_notes.storage.notebook_repository import NotebookRepository
from nexus_notes.storage.tag_repository import TagRepository

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 500
MAX_MARKDOWN_LENGTH = 1_000_000  # 1 MB

SERVER_INSTRUCTIONS = (
    "Local notebook and note store. Notebooks form a tree; notes live in a "
    "notebook and carry tags. Use nn_search for substring search and "
    "nn_backlinks to find notes that mention a note id."
)


def _validate_input_lengths(
    title: Optional[str] = None, markdown: Optional[str] = None
) -> None:
    """Validate input string lengths at the MCP boundary."""
    if title and len(title) > MAX_TITLE_LENGTH:
        raise ValueError(
            f"Title exceeds maximum length of {MAX_TITLE_LENGTH} characters"
        )
    if markdown and len(markdown) > MAX_MARKDOWN_LENGTH:
        raise ValueError(
            f"Markdown exceeds maximum length of {MAX_MARKDOWN_LENGTH} characters"
        )


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    return value


def to_json(value: Any) -> str:
    """Serialize models, lists of models and plain values as JSON text."""
    return json.dumps(_to_jsonable(value), ensure_ascii=False, indent=2)


class NexusNotesMcpServer:
    """MCP server for NexusNotes."""

    def __init__(self, storage: StorageEngine):
        """Initialize the MCP server.

        Args:
            storage: Open storage engine shared by every repository.
        """
        self.mcp = FastMCP(config.server_name, instructions=SERVER_INSTRUCTIONS)
        self.storage = storage
        self.notebooks = NotebookRepository(storage)
        self.notes = NoteRepository(storage)
        self.tags = TagRepository(storage)
        self.search_service = SearchService(storage)
        self._register_tools()
        logger.info("NexusNotes MCP server initialized")

    def format_error_response(self, error: Exception) -> str:
        """Format an error response in a consistent way.

        Args:
            error: The exception that occurred

        Returns:
            Formatted error message with appropriate level of detail
        """
        # Generate a unique error ID for traceability in logs
        error_id = str(uuid.uuid4())[:8]

        if isinstance(error, StorageError):
            logger.error(
                f"[{error.code.name}] [{error_id}]: {error.message}",
                extra={"nexus_error": error.to_dict()},
            )
            cause = getattr(error.original_error, "orig", None) or error.original_error
            if cause is not None:
                return f"Error: {error.message}: {cause}"
            return f"Error: {error.message}"
        elif isinstance(error, NexusNotesError):
            logger.warning(
                f"[{error.code.name}] [{error_id}]: {error.message}",
                extra={"nexus_error": error.to_dict()},
            )
            return f"Error: {error.message}"
        elif isinstance(error, ValueError):
            logger.error(f"Validation error [{error_id}]: {str(error)}")
            return f"Error: {error}"
        else:
            # Unexpected errors - log with full stack trace but return generic message
            logger.error(f"Unexpected error [{error_id}]: {str(error)}", exc_info=True)
            return f"Error: An unexpected error occurred (ref: {error_id})"

    def _run(self, operation: str, func: Callable[[], Any], **context) -> str:
        """Run one operation, returning JSON on success or an error message."""
        with timed_operation(operation, **context) as call:
            try:
                result = func()
            except Exception as e:
                call["error"] = e
                return self.format_error_response(e)
            call["rows"] = len(result) if isinstance(result, list) else 1
            return to_json(result)

    def _register_tools(self) -> None:
        """Register MCP tools."""

        # Notebooks

        @self.mcp.tool(name="nn_list_notebooks")
        def nn_list_notebooks() -> str:
            """List all notebooks ordered by sort order, then creation time."""
            return self._run("nn_list_notebooks", self.notebooks.list)

        @self.mcp.tool(name="nn_notebook_tree")
        def nn_notebook_tree() -> str:
            """List notebooks as a nested tree of roots and their children."""
            return self._run("nn_notebook_tree", self.notebooks.tree)

        @self.mcp.tool(name="nn_create_notebook")
        def nn_create_notebook(
            title: str,
            parent_id: Optional[str] = None,
            icon: Optional[str] = None,
            notebook_id: Optional[str] = None,
        ) -> str:
            """Create a notebook as the last child of its parent.
            Args:
                title: The title of the notebook
                parent_id: Parent notebook ID (omit for a root notebook)
                icon: Optional glyph shown next to the title
                notebook_id: Explicit ID (optional, generated when omitted)
            """
            def create():
                _validate_input_lengths(title=title)
                return self.notebooks.create(
                    title, parent_id=parent_id, icon=icon, id=notebook_id
                )
            return self._run("nn_create_notebook", create, title=title[:30])

        @self.mcp.tool(name="nn_rename_notebook")
        def nn_rename_notebook(notebook_id: str, title: str) -> str:
            """Rename a notebook.
            Args:
                notebook_id: The ID of the notebook
                title: The new title
            """
            def rename():
                _validate_input_lengths(title=title)
                return {
                    "id": notebook_id,
                    "renamed": self.notebooks.rename(notebook_id, title),
                }
            return self._run("nn_rename_notebook", rename, notebook_id=notebook_id)

        @self.mcp.tool(name="nn_delete_notebook")
        def nn_delete_notebook(notebook_id: str) -> str:
            """Delete a notebook together with its sub-notebooks and all their notes.
            Args:
                notebook_id: The ID of the notebook
            """
            return self._run(
                "nn_delete_notebook",
                lambda: {
                    "id": notebook_id,
                    "deleted": self.notebooks.delete(notebook_id),
                },
                notebook_id=notebook_id,
            )

        @self.mcp.tool(name="nn_move_notebook")
        def nn_move_notebook(notebook_id: str, new_parent_id: Optional[str] = None) -> str:
            """Move a notebook under a new parent, or to the root level.
            Args:
                notebook_id: The ID of the notebook to move
                new_parent_id: The new parent notebook ID (omit to make it a root)
            """
            return self._run(
                "nn_move_notebook",
                lambda: {
                    "id": notebook_id,
                    "moved": self.notebooks.move(notebook_id, new_parent_id),
                },
                notebook_id=notebook_id,
            )

        # Notes

        @self.mcp.tool(name="nn_list_notes")
        def nn_list_notes(notebook_id: str) -> str:
            """List the notes of a notebook, most recently updated first.
            Args:
                notebook_id: The ID of the notebook
            """
            return self._run(
                "nn_list_notes",
                lambda: self.notes.list_by_notebook(notebook_id),
                notebook_id=notebook_id,
            )

        @self.mcp.tool(name="nn_create_note")
        def nn_create_note(notebook_id: str, title: str, markdown: str = "") -> str:
            """Create a note in a notebook.
            Args:
                notebook_id: The ID of the owning notebook
                title: The title of the note
                markdown: The markdown body (optional)
            """
            def create():
                _validate_input_lengths(title=title, markdown=markdown)
                return self.notes.create(notebook_id, title, markdown)
            return self._run("nn_create_note", create, title=title[:30])

        @self.mcp.tool(name="nn_update_note")
        def nn_update_note(
            note_id: str,
            title: str,
            markdown: str,
            priority: int = 0,
            date: Optional[str] = None,
        ) -> str:
            """Overwrite a note's title, body, priority and date.
            Args:
                note_id: The ID of the note
                title: The new title
                markdown: The new markdown body
                priority: Priority (default 0)
                date: Calendar date as YYYY-MM-DD (omit to clear)
            """
            def update():
                _validate_input_lengths(title=title, markdown=markdown)
                return {
                    "id": note_id,
                    "updated": self.notes.update(
                        note_id, title, markdown, priority=priority, date=date
                    ),
                }
            return self._run("nn_update_note", update, note_id=note_id)

        @self.mcp.tool(name="nn_delete_note")
        def nn_delete_note(note_id: str) -> str:
            """Delete a note and its tag associations.
            Args:
                note_id: The ID of the note
            """
            return self._run(
                "nn_delete_note",
                lambda: {"id": note_id, "deleted": self.notes.delete(note_id)},
                note_id=note_id,
            )

        @self.mcp.tool(name="nn_note_versions")
        def nn_note_versions(note_id: str) -> str:
            """List the saved bodies of a note, newest first.
            Args:
                note_id: The ID of the note
            """
            return self._run(
                "nn_note_versions",
                lambda: self.notes.list_versions(note_id),
                note_id=note_id,
            )

        # Tags

        @self.mcp.tool(name="nn_list_note_tags")
        def nn_list_note_tags(note_id: str) -> str:
            """List the tags attached to a note.
            Args:
                note_id: The ID of the note
            """
            return self._run(
                "nn_list_note_tags",
                lambda: self.tags.list_for_note(note_id),
                note_id=note_id,
            )

        @self.mcp.tool(name="nn_list_tags")
        def nn_list_tags() -> str:
            """List every tag, alphabetically."""
            return self._run("nn_list_tags", self.tags.list_all)

        @self.mcp.tool(name="nn_add_tag")
        def nn_add_tag(note_id: str, tag_name: str) -> str:
            """Attach a tag to a note, creating the tag if needed.
            Args:
                note_id: The ID of the note
                tag_name: The tag name (case-sensitive)
            """
            return self._run(
                "nn_add_tag",
                lambda: self.tags.attach(note_id, tag_name),
                note_id=note_id,
            )

        @self.mcp.tool(name="nn_remove_tag")
        def nn_remove_tag(note_id: str, tag_name: str) -> str:
            """Detach a tag from a note. The tag itself is kept.
            Args:
                note_id: The ID of the note
                tag_name: The tag name (case-sensitive)
            """
            return self._run(
                "nn_remove_tag",
                lambda: {
                    "note_id": note_id,
                    "tag": tag_name,
                    "removed": self.tags.detach(note_id, tag_name),
                },
                note_id=note_id,
            )

        # Search

        @self.mcp.tool(name="nn_search")
        def nn_search(query: str = "") -> str:
            """Case-insensitive substring search over notes, notebooks and tags.

            Each result is {"type": "note" | "notebook", "data": {...}}.
            Args:
                query: Text to look for (empty matches everything)
            """
            return self._run(
                "nn_search",
                lambda: self.search_service.search(query),
                query=query[:30],
            )

        @self.mcp.tool(name="nn_backlinks")
        def nn_backlinks(note_id: str) -> str:
            """List notes whose markdown mentions the given note id.
            Args:
                note_id: The ID of the referenced note
            """
            return self._run(
                "nn_backlinks",
                lambda: self.search_service.backlinks(note_id),
                note_id=note_id,
            )

    def run(self) -> None:
        """Run the MCP server."""
        self.mcp.run()
