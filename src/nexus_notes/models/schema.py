"""Data models for the NexusNotes data layer."""

import datetime
import uuid
from datetime import timezone
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Current time with UTC timezone info attached.
    """
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(dt_value: Optional[datetime.datetime]) -> datetime.datetime:
    """Ensure a datetime is timezone-aware, treating naive datetimes as UTC.

    SQLite drops tzinfo on the way in, so every timestamp read back from
    the database is naive and is assumed to be UTC.

    Args:
        dt_value: A datetime that may or may not have timezone info.

    Returns:
        The same datetime with UTC timezone if it was naive, otherwise unchanged.
    """
    if dt_value is None:
        return utc_now()
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value


def new_id() -> str:
    """Generate an opaque unique identifier (UUID4 text)."""
    return str(uuid.uuid4())


def is_blank(value: Optional[str]) -> bool:
    """True for None, empty and whitespace-only strings."""
    return value is None or not value.strip()


class Notebook(BaseModel):
    """A notebook in the hierarchy. Roots have no parent."""

    id: str = Field(default_factory=new_id, description="Unique ID of the notebook")
    parent_id: Optional[str] = Field(
        default=None, description="Parent notebook ID, None for roots"
    )
    title: str = Field(..., description="Title of the notebook")
    icon: Optional[str] = Field(default=None, description="Optional glyph or text")
    sort_order: int = Field(default=0, description="Position among siblings")
    created_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the notebook was created (UTC)"
    )

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Validate that the title is not empty."""
        if not v.strip():
            raise ValueError("Notebook title cannot be empty")
        return v


class Note(BaseModel):
    """A markdown note owned by a notebook."""

    id: str = Field(default_factory=new_id, description="Unique ID of the note")
    notebook_id: str = Field(..., description="ID of the owning notebook")
    title: str = Field(..., description="Title of the note")
    markdown: str = Field(default="", description="Markdown body")
    priority: int = Field(default=0, description="Priority, higher is more urgent")
    date: Optional[datetime.date] = Field(
        default=None, description="Optional calendar date"
    )
    created_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the note was created (UTC)"
    )
    updated_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the note was last updated (UTC)"
    )

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Validate that the title is not empty."""
        if not v.strip():
            raise ValueError("Note title cannot be empty")
        return v


class Tag(BaseModel):
    """A tag for categorizing notes."""

    id: str = Field(default_factory=new_id, description="Unique ID of the tag")
    name: str = Field(..., description="Tag name (unique, case-sensitive)")

    model_config = {"validate_assignment": True, "frozen": True}

    def __str__(self) -> str:
        """Return string representation of tag."""
        return self.name


class NoteVersion(BaseModel):
    """A snapshot of a note body written when the note was updated."""

    id: str = Field(default_factory=new_id)
    note_id: str
    markdown: str
    saved_at: datetime.datetime = Field(default_factory=utc_now)

    model_config = {"frozen": True}


class NotebookNode(BaseModel):
    """A notebook together with its child notebooks."""

    notebook: Notebook
    children: List["NotebookNode"] = Field(default_factory=list)


class NoteMatch(BaseModel):
    """Search hit on a note."""

    type: Literal["note"] = "note"
    data: Note


class NotebookMatch(BaseModel):
    """Search hit on a notebook."""

    type: Literal["notebook"] = "notebook"
    data: Notebook


NotebookNode.model_rebuild()

SearchResult = Annotated[Union[NoteMatch, NotebookMatch], Field(discriminator="type")]
