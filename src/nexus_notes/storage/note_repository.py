"""Repository for note storage and retrieval."""
import datetime
import logging
from typing import List, Optional, Union

from sqlalchemy import delete, select

from nexus_notes.exceptions import ErrorCode, ValidationError
from nexus_notes.models.db_models import DBNote, DBVersion
from nexus_notes.models.schema import (
    Note,
    NoteVersion,
    ensure_timezone_aware,
    is_blank,
    new_id,
    utc_now,
)
from nexus_notes.storage.base import Repository
from nexus_notes.storage.engine import StorageEngine

logger = logging.getLogger(__name__)

DateInput = Union[datetime.date, str, None]


def _require_title(title: Optional[str]) -> None:
    if is_blank(title):
        raise ValidationError(
            "Note title cannot be empty.",
            field="title",
            code=ErrorCode.NOTE_TITLE_REQUIRED,
        )


def _coerce_date(value: DateInput) -> Optional[datetime.date]:
    """Accept a date, an ISO 'YYYY-MM-DD' string, or None/empty."""
    if value is None or isinstance(value, datetime.date):
        return value
    if not value.strip():
        return None
    try:
        return datetime.date.fromisoformat(value.strip())
    except ValueError as e:
        raise ValidationError(
            "Note date must be an ISO date (YYYY-MM-DD).",
            code=ErrorCode.NOTE_DATE_INVALID,
            field="date",
            value=value,
        ) from e


def note_from_db(db_note: DBNote) -> Note:
    """Convert DBNote to Note model."""
    return Note(
        id=db_note.id,
        notebook_id=db_note.notebook_id,
        title=db_note.title,
        markdown=db_note.markdown,
        priority=db_note.priority,
        date=db_note.date,
        created_at=ensure_timezone_aware(db_note.created_at),
        updated_at=ensure_timezone_aware(db_note.updated_at),
    )


def _next_timestamp(previous: Optional[datetime.datetime]) -> datetime.datetime:
    """Current time, nudged forward so it is strictly after ``previous``."""
    now = utc_now()
    if previous is None:
        return now
    previous = ensure_timezone_aware(previous)
    if now <= previous:
        return previous + datetime.timedelta(microseconds=1)
    return now


class NoteRepository(Repository):
    """Repository for notes scoped to a notebook.

    Every update refreshes ``updated_at`` and, when version recording is
    enabled, appends the new body to the versions table in the same
    transaction.
    """

    def __init__(self, storage: StorageEngine, record_versions: Optional[bool] = None):
        """Initialize the repository.

        Args:
            storage: Open storage engine shared by all repositories.
            record_versions: Write a versions row on every update. Defaults
                to the storage configuration.
        """
        super().__init__(storage)
        self.record_versions = (
            storage.config.record_versions if record_versions is None else record_versions
        )

    def list_by_notebook(self, notebook_id: str) -> List[Note]:
        """Get the notes of a notebook, most recently updated first."""
        with self.transaction("list_notes") as session:
            rows = session.scalars(
                select(DBNote)
                .where(DBNote.notebook_id == notebook_id)
                .order_by(DBNote.updated_at.desc())
            ).all()
            return [note_from_db(row) for row in rows]

    def get(self, id: str) -> Optional[Note]:
        """Get a note by ID, or None if it does not exist."""
        with self.transaction("get_note") as session:
            row = session.get(DBNote, id)
            return note_from_db(row) if row else None

    def create(self, notebook_id: str, title: str, markdown: str = "") -> Note:
        """Create a note in a notebook.

        Returns:
            The note as persisted (priority 0, no date).

        Raises:
            ValidationError: If the title is blank.
            StorageError: If the notebook does not exist.
        """
        _require_title(title)
        now = utc_now()
        with self.transaction("create_note", write=True) as session:
            db_note = DBNote(
                id=new_id(),
                notebook_id=notebook_id,
                title=title,
                markdown=markdown or "",
                priority=0,
                date=None,
                created_at=now,
                updated_at=now,
            )
            session.add(db_note)
            session.flush()
            session.refresh(db_note)
            note = note_from_db(db_note)

        logger.info(f"Created note: {note.id} in notebook {notebook_id}")
        return note

    def update(
        self,
        id: str,
        title: str,
        markdown: str,
        priority: int = 0,
        date: DateInput = None,
    ) -> bool:
        """Overwrite title, markdown, priority and date, refreshing updated_at.

        Returns:
            True if a note was updated, False if ``id`` does not exist.

        Raises:
            ValidationError: If the title is blank or the date is malformed.
        """
        _require_title(title)
        note_date = _coerce_date(date)

        with self.transaction("update_note", write=True) as session:
            db_note = session.get(DBNote, id)
            if db_note is None:
                logger.debug(f"update_note: no note with id {id}")
                return False

            db_note.title = title
            db_note.markdown = markdown or ""
            db_note.priority = priority
            db_note.date = note_date
            db_note.updated_at = _next_timestamp(db_note.updated_at)

            if self.record_versions:
                session.add(
                    DBVersion(
                        id=new_id(),
                        note_id=id,
                        markdown=db_note.markdown,
                        saved_at=db_note.updated_at,
                    )
                )
            return True

    def delete(self, id: str) -> bool:
        """Delete a note with its tag associations and versions.

        Returns:
            True if a note was deleted, False if ``id`` does not exist.
        """
        with self.transaction("delete_note", write=True) as session:
            result = session.execute(delete(DBNote).where(DBNote.id == id))
            deleted = result.rowcount > 0
        if deleted:
            logger.info(f"Deleted note: {id}")
        return deleted

    def list_versions(self, note_id: str) -> List[NoteVersion]:
        """Get the saved bodies of a note, newest first."""
        with self.transaction("list_versions") as session:
            rows = session.scalars(
                select(DBVersion)
                .where(DBVersion.note_id == note_id)
                .order_by(DBVersion.saved_at.desc())
            ).all()
            return [
                NoteVersion(
                    id=row.id,
                    note_id=row.note_id,
                    markdown=row.markdown,
                    saved_at=ensure_timezone_aware(row.saved_at),
                )
                for row in rows
            ]
