"""Storage layer for the NexusNotes data layer."""

from nexus_notes.storage.base import Repository
from nexus_notes.storage.engine import StorageEngine
from nexus_notes.storage.note_repository import NoteRepository
from nexus_notes.storage.notebook_repository import NotebookRepository
from nexus_notes.storage.tag_repository import TagRepository

__all__ = [
    "Repository",
    "StorageEngine",
    "NotebookRepository",
    "NoteRepository",
    "TagRepository",
]
