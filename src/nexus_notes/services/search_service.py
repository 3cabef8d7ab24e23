"""Service for substring search and backlink lookup across notes and notebooks."""

import logging
from typing import List

from sqlalchemy import func, or_, select

from nexus_notes.models.db_models import DBNote, DBNotebook, DBTag, note_tags
from nexus_notes.models.schema import Note, NotebookMatch, NoteMatch, SearchResult
from nexus_notes.storage.base import Repository
from nexus_notes.storage.note_repository import note_from_db
from nexus_notes.storage.notebook_repository import notebook_from_db
from nexus_notes.utils import contains_pattern

logger = logging.getLogger(__name__)


class SearchService(Repository):
    """Read-only queries spanning notes, notebooks and tags."""

    def search(self, query: str) -> List[SearchResult]:
        """Case-insensitive substring search.

        Runs three queries in one transaction and concatenates the results:

        1. notes whose title or markdown contains the query
        2. notebooks whose title contains the query
        3. notes carrying a tag whose name contains the query, skipping
           notes already returned by (1)

        An empty query matches every note and notebook.
        """
        pattern = contains_pattern((query or "").lower())

        with self.transaction("search") as session:
            text_notes = session.scalars(
                select(DBNote).where(
                    or_(
                        func.py_lower(DBNote.title).like(pattern, escape="\\"),
                        func.py_lower(DBNote.markdown).like(pattern, escape="\\"),
                    )
                )
            ).all()
            notebooks = session.scalars(
                select(DBNotebook).where(
                    func.py_lower(DBNotebook.title).like(pattern, escape="\\")
                )
            ).all()
            tagged_notes = session.scalars(
                select(DBNote)
                .join(note_tags, DBNote.id == note_tags.c.note_id)
                .join(DBTag, note_tags.c.tag_id == DBTag.id)
                .where(func.py_lower(DBTag.name).like(pattern, escape="\\"))
                .distinct()
            ).all()

            results: List[SearchResult] = [
                NoteMatch(data=note_from_db(row)) for row in text_notes
            ]
            seen_ids = {row.id for row in text_notes}
            results.extend(
                NotebookMatch(data=notebook_from_db(row))
                for row in notebooks
            )
            results.extend(
                NoteMatch(data=note_from_db(row))
                for row in tagged_notes
                if row.id not in seen_ids
            )

        logger.debug(
            f"search({query!r}): {len(text_notes)} text, {len(notebooks)} notebooks, "
            f"{len(tagged_notes)} tagged"
        )
        return results

    def backlinks(self, note_id: str) -> List[Note]:
        """Find other notes whose markdown mentions ``note_id``.

        This is a literal, case-sensitive text scan rather than a link
        index, so an ID that happens to appear in unrelated text matches too.
        The note itself is never returned.
        """
        with self.transaction("backlinks") as session:
            rows = session.scalars(
                select(DBNote).where(
                    func.instr(DBNote.markdown, note_id) > 0,
                    DBNote.id != note_id,
                )
            ).all()
            return [note_from_db(row) for row in rows]
