"""Repository for tags and their association with notes."""
import logging
from typing import List

from sqlalchemy import delete, select, text

from nexus_notes.exceptions import ErrorCode, ValidationError
from nexus_notes.models.db_models import DBTag, note_tags
from nexus_notes.models.schema import Tag, is_blank, new_id
from nexus_notes.storage.base import Repository

logger = logging.getLogger(__name__)


class TagRepository(Repository):
    """Repository for managing tags.

    Tags are created on first use and shared across notes. Their lifetime
    is independent of any note: detaching the last association leaves the
    tag row in place.
    """

    def list_for_note(self, note_id: str) -> List[Tag]:
        """Get all tags attached to a note, ordered by name.

        Args:
            note_id: The note ID.

        Returns:
            List of Tag objects.
        """
        with self.transaction("list_note_tags") as session:
            result = session.execute(
                select(DBTag.id, DBTag.name)
                .join(note_tags, DBTag.id == note_tags.c.tag_id)
                .where(note_tags.c.note_id == note_id)
                .order_by(DBTag.name)
            ).all()
            return [Tag(id=row.id, name=row.name) for row in result]

    def list_all(self) -> List[Tag]:
        """Get every tag, ordered alphabetically by name."""
        with self.transaction("list_tags") as session:
            db_tags = session.scalars(select(DBTag).order_by(DBTag.name)).all()
            return [Tag(id=tag.id, name=tag.name) for tag in db_tags]

    def attach(self, note_id: str, tag_name: str) -> Tag:
        """Attach a tag to a note, creating the tag if it does not exist.

        Attaching a tag that is already on the note is a no-op.

        Args:
            note_id: The note ID.
            tag_name: Exact (case-sensitive) tag name.

        Returns:
            The attached Tag.

        Raises:
            ValidationError: If the tag name is blank.
            StorageError: If the note does not exist.
        """
        if is_blank(tag_name):
            raise ValidationError(
                "Tag name cannot be empty.", field="tag_name", code=ErrorCode.TAG_INVALID
            )

        with self.transaction("attach_tag", write=True) as session:
            # INSERT OR IGNORE handles a concurrent creation of the same name
            session.execute(
                text("INSERT OR IGNORE INTO tags (id, name) VALUES (:id, :name)"),
                {"id": new_id(), "name": tag_name}
            )
            db_tag = session.scalar(select(DBTag).where(DBTag.name == tag_name))
            session.execute(
                text(
                    "INSERT OR IGNORE INTO note_tags (note_id, tag_id) "
                    "VALUES (:note_id, :tag_id)"
                ),
                {"note_id": note_id, "tag_id": db_tag.id}
            )
            tag = Tag(id=db_tag.id, name=db_tag.name)

        logger.debug(f"Attached tag '{tag_name}' to note {note_id}")
        return tag

    def detach(self, note_id: str, tag_name: str) -> bool:
        """Remove a tag from a note. The tag row itself is kept.

        Returns:
            True if an association was removed, False if there was none.
        """
        with self.transaction("detach_tag", write=True) as session:
            tag_id = (
                select(DBTag.id).where(DBTag.name == tag_name).scalar_subquery()
            )
            result = session.execute(
                delete(note_tags).where(
                    note_tags.c.note_id == note_id,
                    note_tags.c.tag_id == tag_id,
                )
            )
            return result.rowcount > 0
